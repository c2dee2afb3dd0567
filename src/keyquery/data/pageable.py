# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Sort criteria, result limits and keyset page requests."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import TYPE_CHECKING

from keyquery.data.metadata import PropertyPath

if TYPE_CHECKING:
    from keyquery.data.cursor import KeysetCursor


class Direction(str, Enum):
    ASC = "asc"
    DESC = "desc"

    def reversed(self) -> Direction:
        return Direction.DESC if self is Direction.ASC else Direction.ASC


class TraversalDirection(str, Enum):
    FORWARD = "forward"
    BACKWARD = "backward"


@dataclass(frozen=True)
class SortCriterion:
    """A single sort criterion: property path, direction and case sensitivity."""

    property: PropertyPath
    direction: Direction = Direction.ASC
    ignore_case: bool = False

    @staticmethod
    def asc(property: str | PropertyPath, ignore_case: bool = False) -> SortCriterion:
        """Create an ascending criterion for the given property."""
        return SortCriterion(PropertyPath.of(property), Direction.ASC, ignore_case)

    @staticmethod
    def desc(property: str | PropertyPath, ignore_case: bool = False) -> SortCriterion:
        """Create a descending criterion for the given property."""
        return SortCriterion(PropertyPath.of(property), Direction.DESC, ignore_case)

    def reversed(self) -> SortCriterion:
        return replace(self, direction=self.direction.reversed())

    def __str__(self) -> str:
        suffix = " ignore_case" if self.ignore_case else ""
        return f"{self.property} {self.direction.value}{suffix}"


@dataclass(frozen=True)
class Sort:
    """Ordered collection of sort criteria with unique property paths."""

    criteria: tuple[SortCriterion, ...] = ()

    def __post_init__(self) -> None:
        seen: set[PropertyPath] = set()
        for criterion in self.criteria:
            if criterion.property in seen:
                raise ValueError(f"Duplicate sort property '{criterion.property}'")
            seen.add(criterion.property)

    @staticmethod
    def by(*properties: str) -> Sort:
        """Create ascending sort by properties."""
        return Sort(tuple(SortCriterion.asc(p) for p in properties))

    @staticmethod
    def of(*criteria: SortCriterion) -> Sort:
        return Sort(tuple(criteria))

    @staticmethod
    def unsorted() -> Sort:
        return Sort()

    @property
    def paths(self) -> tuple[PropertyPath, ...]:
        return tuple(c.property for c in self.criteria)

    def reversed(self) -> Sort:
        """Return the same criteria with every direction flipped."""
        return Sort(tuple(c.reversed() for c in self.criteria))

    def __len__(self) -> int:
        return len(self.criteria)

    def __bool__(self) -> bool:
        return bool(self.criteria)

    def __iter__(self):
        return iter(self.criteria)


@dataclass(frozen=True)
class Limit:
    """Call-time bound on the results of a non-paged query.

    ``start_at`` is 1-based, so ``Limit.range(11, 20)`` returns results 11..20.
    """

    max_results: int
    start_at: int = 1

    def __post_init__(self) -> None:
        if self.max_results < 1:
            raise ValueError(f"max_results must be >= 1, got {self.max_results}")
        if self.start_at < 1:
            raise ValueError(f"start_at must be >= 1, got {self.start_at}")

    @staticmethod
    def of(max_results: int) -> Limit:
        return Limit(max_results=max_results)

    @staticmethod
    def range(start_at: int, end_at: int) -> Limit:
        """Limit to results ``start_at`` through ``end_at`` inclusive."""
        return Limit(max_results=end_at - start_at + 1, start_at=start_at)

    @property
    def offset(self) -> int:
        return self.start_at - 1


@dataclass(frozen=True)
class PageRequest:
    """Keyset page request: size, optional sort, optional cursor and direction.

    An initial request has no cursor. Requests after the first are normally
    obtained from :meth:`PageResult.next_request` and
    :meth:`PageResult.previous_request` rather than built by hand.
    """

    size: int = 20
    sort: Sort = field(default_factory=Sort)
    cursor: KeysetCursor | None = None
    direction: TraversalDirection = TraversalDirection.FORWARD

    def __post_init__(self) -> None:
        if self.size < 1:
            raise ValueError(f"size must be >= 1, got {self.size}")

    @staticmethod
    def of_size(size: int, sort: Sort | None = None) -> PageRequest:
        return PageRequest(size=size, sort=sort or Sort())

    def with_sort(self, sort: Sort) -> PageRequest:
        return replace(self, sort=sort)

    def after(self, cursor: KeysetCursor) -> PageRequest:
        """Request the page following *cursor*."""
        return replace(self, cursor=cursor, direction=TraversalDirection.FORWARD)

    def before(self, cursor: KeysetCursor) -> PageRequest:
        """Request the page preceding *cursor*."""
        return replace(self, cursor=cursor, direction=TraversalDirection.BACKWARD)

    @property
    def is_initial(self) -> bool:
        return self.cursor is None
