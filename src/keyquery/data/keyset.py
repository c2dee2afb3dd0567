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
"""Keyset pagination engine.

Pages are located by comparing against the sort-key values of the last
row seen rather than by a numeric offset, so rows inserted or deleted at
positions already traversed never shift later pages.

For a sort ``[(p1, d1), ..., (pn, dn)]`` and cursor values ``[v1, ..., vn]``
the appended predicate is the disjunction over ``k = 1..n`` of::

    p1 = v1 AND ... AND p(k-1) = v(k-1) AND pk <cmp> vk

where moving forward ``<cmp>`` is ``>`` for ascending and ``<`` for
descending criteria, and moving backward every comparison is inverted.
``None`` sorts below every other value: a null cursor value turns the
comparisons into ``IS NULL`` / ``IS NOT NULL`` tests, and "below v" also
admits nulls. A backward fetch runs in reversed sort order and the page is
flipped back before it is returned, so items are always presented in sort
order.

Known limitation: a row whose sort-key values change after it was seen, or
a deleted row that is inserted again, may be returned twice or skipped.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from keyquery.data.cursor import KeysetCursor
from keyquery.data.metadata import EntityMetadata
from keyquery.data.page import PageResult
from keyquery.data.pageable import Direction, PageRequest, Sort, SortCriterion, TraversalDirection
from keyquery.data.predicate import And, Clause, Operator, Or, Predicate
from keyquery.kernel.exceptions import InvalidCursorException, PartialOrderingException

_logger = logging.getLogger(__name__)


def _equal(criterion: SortCriterion, value: Any) -> Predicate:
    if value is None:
        return Clause(criterion.property, Operator.NULL)
    return Clause(criterion.property, Operator.EQUAL, ignore_case=criterion.ignore_case, literals=(value,))


def _greater(criterion: SortCriterion, value: Any) -> Predicate:
    """Rows ordered after *value* when nulls sort lowest."""
    if value is None:
        return Clause(criterion.property, Operator.NULL, negated=True)
    return Clause(criterion.property, Operator.GREATER_THAN, ignore_case=criterion.ignore_case, literals=(value,))


def _less(criterion: SortCriterion, value: Any) -> Predicate | None:
    """Rows ordered before *value* when nulls sort lowest; ``None`` when there are none."""
    if value is None:
        return None
    below = Clause(criterion.property, Operator.LESS_THAN, ignore_case=criterion.ignore_case, literals=(value,))
    return below | Clause(criterion.property, Operator.NULL)


@dataclass(frozen=True)
class KeysetQuery:
    """What a backend must add to the base query to fetch one page.

    Attributes:
        predicate: Keyset comparison to AND onto the base predicate, or
            ``None`` for an initial request.
        sort: Fetch ordering (reversed for backward traversal).
        limit: Rows to fetch (page size plus one probe row when probing).
    """

    predicate: Predicate | None
    sort: Sort
    limit: int


class KeysetPaginator:
    """Stateless keyset pagination; all traversal state lives in the cursor."""

    def __init__(self, metadata: EntityMetadata, *, probe: bool = True) -> None:
        self._metadata = metadata
        self._probe = probe

    @property
    def probe(self) -> bool:
        return self._probe

    def require_unique(self, entity: type, sort: Sort, *, method: str = "") -> None:
        """Reject sorts that do not totally order the rows.

        Raises:
            PartialOrderingException: no criterion is the identifier or a
                unique property of *entity*.
        """
        if any(self._metadata.is_unique(entity, c.property) for c in sort.criteria):
            return
        raise PartialOrderingException(
            f"{method or entity.__name__}: keyset sort [{', '.join(str(c) for c in sort.criteria)}] "
            f"must include the identifier or a unique property",
            context={"entity": entity.__name__, "method": method, "sort": [str(p) for p in sort.paths]},
        )

    @staticmethod
    def keyset_predicate(sort: Sort, cursor: KeysetCursor, direction: TraversalDirection) -> Predicate:
        """Build the lexicographic "after the cursor" disjunction."""
        if not cursor.matches(sort):
            raise InvalidCursorException(
                f"Cursor keys [{', '.join(str(p) for p in cursor.paths)}] do not match sort "
                f"[{', '.join(str(p) for p in sort.paths)}]",
                context={"cursor": [str(p) for p in cursor.paths], "sort": [str(p) for p in sort.paths]},
            )

        values = cursor.values
        disjuncts: list[Predicate] = []
        for k, criterion in enumerate(sort.criteria):
            conjuncts: list[Predicate] = [
                _equal(prior, value) for prior, value in zip(sort.criteria[:k], values[:k], strict=True)
            ]
            ascending = criterion.direction is Direction.ASC
            if direction is TraversalDirection.BACKWARD:
                ascending = not ascending
            beyond = _greater(criterion, values[k]) if ascending else _less(criterion, values[k])
            if beyond is None:
                continue
            conjuncts.append(beyond)
            disjuncts.append(conjuncts[0] if len(conjuncts) == 1 else And(tuple(conjuncts)))
        if not disjuncts:
            # Nothing can follow the cursor; an always-false predicate.
            first = sort.criteria[0].property
            return And((Clause(first, Operator.NULL), Clause(first, Operator.NULL, negated=True)))
        return disjuncts[0] if len(disjuncts) == 1 else Or(tuple(disjuncts))

    @staticmethod
    def fetch_sort(sort: Sort, direction: TraversalDirection) -> Sort:
        return sort.reversed() if direction is TraversalDirection.BACKWARD else sort

    def prepare(self, entity: type, request: PageRequest, sort: Sort, *, method: str = "") -> KeysetQuery:
        """Derive the keyset predicate, fetch ordering and row limit for *request*."""
        self.require_unique(entity, sort, method=method)
        predicate = None
        if request.cursor is not None:
            predicate = self.keyset_predicate(sort, request.cursor, request.direction)
        limit = request.size + 1 if self._probe else request.size
        return KeysetQuery(predicate=predicate, sort=self.fetch_sort(sort, request.direction), limit=limit)

    def assemble(self, rows: Sequence[Any], request: PageRequest, sort: Sort) -> PageResult[Any]:
        """Turn fetched rows into a page with cursors and navigation flags.

        ``has_next`` / ``has_previous`` in the traversal direction come from
        the probe row; without probing a full page is taken to have more
        rows, which is inexact. In the opposite direction they are true
        whenever the request carried a cursor.
        """
        more = len(rows) > request.size if self._probe else len(rows) == request.size
        items = list(rows[: request.size])
        forward = request.direction is TraversalDirection.FORWARD
        if not forward:
            items.reverse()

        came_from_cursor = request.cursor is not None
        has_next = more if forward else came_from_cursor
        has_previous = came_from_cursor if forward else more

        next_cursor = previous_cursor = None
        if items:
            next_cursor = KeysetCursor.from_item(sort, items[-1])
            previous_cursor = KeysetCursor.from_item(sort, items[0])

        _logger.debug(
            "Keyset page assembled: %d item(s) %s, has_next=%s has_previous=%s",
            len(items),
            request.direction.value,
            has_next,
            has_previous,
        )
        return PageResult(
            items=items,
            has_next=has_next,
            has_previous=has_previous,
            next_cursor=next_cursor,
            previous_cursor=previous_cursor,
            request=request,
        )
