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
"""In-memory query backend.

Stores entities in per-type lists and evaluates the abstract predicate tree
directly against them. Comparisons involving ``None`` are false, as in SQL,
and ``None`` sorts before every other value in ascending order.
"""

from __future__ import annotations

import functools
import logging
import re
from collections.abc import Callable, Iterable, Sequence
from typing import Any

from keyquery.data.pageable import Direction, Sort
from keyquery.data.ports.backend import QueryExecution
from keyquery.data.predicate import And, Clause, Operator, Or, Predicate
from keyquery.kernel.exceptions import UnsupportedByProviderException

_logger = logging.getLogger(__name__)


def _fold(value: Any, ignore_case: bool) -> Any:
    if ignore_case and isinstance(value, str):
        return value.casefold()
    return value


@functools.lru_cache(maxsize=256)
def _like_pattern(pattern: str, ignore_case: bool) -> re.Pattern[str]:
    parts = []
    for char in pattern:
        if char == "%":
            parts.append(".*")
        elif char == "_":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("".join(parts), re.DOTALL | (re.IGNORECASE if ignore_case else 0))


def _compare(test: Callable[[Any, Any], bool]) -> Callable[[Any, tuple[Any, ...]], bool]:
    def evaluate(value: Any, operands: tuple[Any, ...]) -> bool:
        if value is None or operands[0] is None:
            return False
        return test(value, operands[0])

    return evaluate


def _between(value: Any, operands: tuple[Any, ...]) -> bool:
    low, high = operands
    if value is None or low is None or high is None:
        return False
    return low <= value <= high


def _contains(value: Any, operands: tuple[Any, ...]) -> bool:
    if value is None or operands[0] is None:
        return False
    return operands[0] in value


def _empty(value: Any, operands: tuple[Any, ...]) -> bool:
    return value is None or len(value) == 0


_EVALUATORS: dict[Operator, Callable[[Any, tuple[Any, ...]], bool]] = {
    Operator.EQUAL: _compare(lambda v, o: v == o),
    Operator.LESS_THAN: _compare(lambda v, o: v < o),
    Operator.GREATER_THAN: _compare(lambda v, o: v > o),
    Operator.LESS_THAN_EQUAL: _compare(lambda v, o: v <= o),
    Operator.GREATER_THAN_EQUAL: _compare(lambda v, o: v >= o),
    Operator.BETWEEN: _between,
    Operator.STARTS_WITH: _compare(lambda v, o: v.startswith(o)),
    Operator.ENDS_WITH: _compare(lambda v, o: v.endswith(o)),
    Operator.CONTAINS: _contains,
    Operator.IN: lambda v, o: v is not None and v in o[0],
    Operator.NULL: lambda v, o: v is None,
    Operator.TRUE: lambda v, o: v is True,
    Operator.FALSE: lambda v, o: v is False,
    Operator.EMPTY: _empty,
}


class InMemoryBackend:
    """:class:`~keyquery.data.ports.backend.QueryBackendPort` over plain Python lists.

    Explicit query text cannot be evaluated and raises
    :class:`UnsupportedByProviderException`.
    """

    def __init__(self, items: Iterable[Any] = ()) -> None:
        self._store: dict[type, list[Any]] = {}
        self.add_all(items)

    def add(self, item: Any) -> Any:
        self._store.setdefault(type(item), []).append(item)
        return item

    def add_all(self, items: Iterable[Any]) -> None:
        for item in items:
            self.add(item)

    def remove(self, item: Any) -> None:
        rows = self._store.get(type(item), [])
        rows[:] = [r for r in rows if r is not item]

    def all(self, entity: type) -> list[Any]:
        return list(self._store.get(entity, []))

    # ------------------------------------------------------------------
    # QueryBackendPort
    # ------------------------------------------------------------------

    async def fetch(self, execution: QueryExecution) -> Sequence[Any]:
        rows = self._sorted(self._matching(execution), execution.sort)
        end = None if execution.limit is None else execution.offset + execution.limit
        return rows[execution.offset : end]

    async def count(self, execution: QueryExecution) -> int:
        return len(self._matching(execution))

    async def delete(self, execution: QueryExecution) -> int:
        doomed = self._matching(execution)
        ids = {id(r) for r in doomed}
        rows = self._store.get(execution.entity, [])
        rows[:] = [r for r in rows if id(r) not in ids]
        _logger.debug("Deleted %d %s row(s) in memory", len(doomed), execution.entity.__name__)
        return len(doomed)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def _matching(self, execution: QueryExecution) -> list[Any]:
        if execution.plan.query_text is not None:
            raise UnsupportedByProviderException(
                f"{execution.plan.method}: the in-memory backend cannot run query text",
                context={"method": execution.plan.method},
            )
        rows = self._store.get(execution.entity, [])
        if execution.predicate is None:
            return list(rows)
        return [r for r in rows if self._test(execution.predicate, r, execution.arguments)]

    def _test(self, predicate: Predicate, item: Any, arguments: Sequence[Any]) -> bool:
        if isinstance(predicate, And):
            return all(self._test(p, item, arguments) for p in predicate.operands)
        if isinstance(predicate, Or):
            return any(self._test(p, item, arguments) for p in predicate.operands)
        if isinstance(predicate, Clause):
            return self._test_clause(predicate, item, arguments)
        raise UnsupportedByProviderException(f"Unknown predicate node {type(predicate).__name__}")

    @staticmethod
    def _test_clause(clause: Clause, item: Any, arguments: Sequence[Any]) -> bool:
        value = clause.path.value_of(item)
        operands = clause.operands(arguments)
        if clause.operator is Operator.LIKE:
            matched = (
                value is not None
                and operands[0] is not None
                and _like_pattern(operands[0], clause.ignore_case).fullmatch(value) is not None
            )
        else:
            if clause.ignore_case:
                value = _fold(value, True)
                if clause.operator is Operator.IN:
                    operands = (tuple(_fold(o, True) for o in operands[0]),)
                else:
                    operands = tuple(_fold(o, True) for o in operands)
            matched = _EVALUATORS[clause.operator](value, operands)
        return not matched if clause.negated else matched

    @staticmethod
    def _sorted(rows: list[Any], sort: Sort) -> list[Any]:
        if not sort:
            return rows

        def compare(left: Any, right: Any) -> int:
            for criterion in sort.criteria:
                a = _fold(criterion.property.value_of(left), criterion.ignore_case)
                b = _fold(criterion.property.value_of(right), criterion.ignore_case)
                if a == b:
                    continue
                if a is None:
                    result = -1
                elif b is None:
                    result = 1
                else:
                    result = -1 if a < b else 1
                return result if criterion.direction is Direction.ASC else -result
            return 0

        return sorted(rows, key=functools.cmp_to_key(compare))
