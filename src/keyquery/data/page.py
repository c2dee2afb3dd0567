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
"""Keyset page results."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from keyquery.data.cursor import KeysetCursor
from keyquery.data.pageable import PageRequest, TraversalDirection
from keyquery.kernel.exceptions import EmptyCursorNavigationException

T = TypeVar("T")
U = TypeVar("U")


class TraversalState(str, Enum):
    """Where a traversal stands after a page request."""

    INITIAL = "initial"
    HAS_RESULTS = "has_results"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class PageResult(Generic[T]):
    """A page of results from a keyset-paginated query.

    Items are always presented in sort order, whichever direction the
    traversal moved in. Cursors are taken from the first and last items and
    are absent on an empty page.

    Attributes:
        items: The items on this page (at most ``request.size``).
        has_next: Whether rows exist after the last item.
        has_previous: Whether rows exist before the first item.
        next_cursor: Sort-key values of the last item.
        previous_cursor: Sort-key values of the first item.
        request: The request this page answers.
    """

    items: list[T]
    has_next: bool
    has_previous: bool
    next_cursor: KeysetCursor | None
    previous_cursor: KeysetCursor | None
    request: PageRequest

    def __post_init__(self) -> None:
        if not self.items and (self.next_cursor is not None or self.previous_cursor is not None):
            raise ValueError("An empty page cannot carry cursors")

    @property
    def size(self) -> int:
        return self.request.size

    @property
    def total(self) -> int | None:
        """Always ``None``: row totals are unknown under keyset pagination."""
        return None

    @property
    def total_pages(self) -> int | None:
        """Always ``None``: page totals are unknown under keyset pagination."""
        return None

    @property
    def is_empty(self) -> bool:
        return not self.items

    @property
    def state(self) -> TraversalState:
        """Traversal state in the direction this page was requested."""
        more = self.has_next if self.request.direction is TraversalDirection.FORWARD else self.has_previous
        return TraversalState.HAS_RESULTS if more else TraversalState.EXHAUSTED

    def next_request(self) -> PageRequest:
        """Request for the page after this one.

        Raises:
            EmptyCursorNavigationException: if this page is empty.
        """
        if self.next_cursor is None:
            raise EmptyCursorNavigationException(
                "Cannot request the next page of an empty page",
                context={"size": self.size},
            )
        return self.request.after(self.next_cursor)

    def previous_request(self) -> PageRequest:
        """Request for the page before this one.

        Raises:
            EmptyCursorNavigationException: if this page is empty.
        """
        if self.previous_cursor is None:
            raise EmptyCursorNavigationException(
                "Cannot request the previous page of an empty page",
                context={"size": self.size},
            )
        return self.request.before(self.previous_cursor)

    def map(self, func: Callable[[T], U]) -> PageResult[U]:
        """Transform items, keeping cursors and navigation flags."""
        return PageResult(
            items=[func(item) for item in self.items],
            has_next=self.has_next,
            has_previous=self.has_previous,
            next_cursor=self.next_cursor,
            previous_cursor=self.previous_cursor,
            request=self.request,
        )
