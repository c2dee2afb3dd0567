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
"""Abstract predicate tree and the precedence-aware predicate builder.

The tree is provider-neutral: leaves are :class:`Clause` objects naming a
property path, an operator and where its operands come from; inner nodes
are :class:`And` / :class:`Or`. Rendering backends walk the tree and emit
their own query representation.

Operands come either from the invocation arguments (``parameter`` is the
index of the first operand among the non-special method parameters) or
from literal values fixed when the clause was built (keyset comparisons).
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from keyquery.data.metadata import PropertyPath
from keyquery.kernel.exceptions import ArityMismatchException


class Operator(str, Enum):
    """Comparison operators with a fixed operand arity."""

    EQUAL = "equal"
    LESS_THAN = "less_than"
    GREATER_THAN = "greater_than"
    LESS_THAN_EQUAL = "less_than_equal"
    GREATER_THAN_EQUAL = "greater_than_equal"
    BETWEEN = "between"
    LIKE = "like"
    STARTS_WITH = "starts_with"
    ENDS_WITH = "ends_with"
    CONTAINS = "contains"
    IN = "in"
    NULL = "null"
    TRUE = "true"
    FALSE = "false"
    EMPTY = "empty"

    @property
    def arity(self) -> int:
        if self is Operator.BETWEEN:
            return 2
        if self in _NULLARY:
            return 0
        return 1


_NULLARY = frozenset({Operator.NULL, Operator.TRUE, Operator.FALSE, Operator.EMPTY})


class Connector(str, Enum):
    AND = "and"
    OR = "or"


class Predicate:
    """Base for predicate tree nodes; supports ``&`` and ``|`` composition."""

    def clauses(self) -> Iterator[Clause]:
        raise NotImplementedError

    @property
    def arity(self) -> int:
        """Number of invocation arguments the tree consumes."""
        return sum(c.arity for c in self.clauses() if c.literals is None)

    def __and__(self, other: Predicate) -> Predicate:
        return And(_flatten(And, (self, other)))

    def __or__(self, other: Predicate) -> Predicate:
        return Or(_flatten(Or, (self, other)))


@dataclass(frozen=True)
class Clause(Predicate):
    """Leaf comparison on one property path.

    ``ignore_case`` changes comparison semantics only, never arity.
    """

    path: PropertyPath
    operator: Operator = Operator.EQUAL
    ignore_case: bool = False
    negated: bool = False
    parameter: int | None = None
    literals: tuple[Any, ...] | None = None

    @property
    def arity(self) -> int:  # type: ignore[override]
        return self.operator.arity

    def clauses(self) -> Iterator[Clause]:
        yield self

    def operands(self, arguments: Sequence[Any]) -> tuple[Any, ...]:
        """Operand values for this clause, taken from literals or *arguments*."""
        if self.literals is not None:
            return self.literals
        if self.arity == 0:
            return ()
        start = self.parameter or 0
        return tuple(arguments[start : start + self.arity])

    def __str__(self) -> str:
        parts = [self.operator.value]
        if self.negated:
            parts.insert(0, "not")
        if self.ignore_case:
            parts.append("ignore_case")
        return f"{'_'.join(parts)}({self.path})"


@dataclass(frozen=True)
class And(Predicate):
    operands: tuple[Predicate, ...]

    def clauses(self) -> Iterator[Clause]:
        for operand in self.operands:
            yield from operand.clauses()

    def __str__(self) -> str:
        return "(" + " and ".join(str(o) for o in self.operands) + ")"


@dataclass(frozen=True)
class Or(Predicate):
    operands: tuple[Predicate, ...]

    def clauses(self) -> Iterator[Clause]:
        for operand in self.operands:
            yield from operand.clauses()

    def __str__(self) -> str:
        return "(" + " or ".join(str(o) for o in self.operands) + ")"


def _flatten(kind: type, nodes: Sequence[Predicate]) -> tuple[Predicate, ...]:
    flat: list[Predicate] = []
    for node in nodes:
        if isinstance(node, kind):
            flat.extend(node.operands)  # type: ignore[attr-defined]
        else:
            flat.append(node)
    return tuple(flat)


# ---------------------------------------------------------------------------
# Builder
# ---------------------------------------------------------------------------


def build_predicate(clauses: Sequence[Clause], connectors: Sequence[Connector]) -> Predicate | None:
    """Combine clauses so that ``And`` binds tighter than ``Or``.

    Maximal runs of clauses joined by ``And`` become one :class:`And` node;
    the runs are then joined by a single :class:`Or`. ``A and B or C`` is
    therefore ``(A and B) or C``.
    """
    if not clauses:
        return None
    if len(connectors) != len(clauses) - 1:
        raise ValueError(f"{len(clauses)} clauses need {len(clauses) - 1} connectors, got {len(connectors)}")

    runs: list[list[Predicate]] = [[clauses[0]]]
    for connector, clause in zip(connectors, clauses[1:], strict=True):
        if connector is Connector.AND:
            runs[-1].append(clause)
        else:
            runs.append([clause])

    groups = [run[0] if len(run) == 1 else And(tuple(run)) for run in runs]
    return groups[0] if len(groups) == 1 else Or(tuple(groups))


def validate_arity(predicate: Predicate | None, operand_names: Sequence[str], *, method: str = "") -> None:
    """Check that the declared operand parameters match what the predicate consumes.

    Raises:
        ArityMismatchException: when the counts differ.
    """
    expected = predicate.arity if predicate is not None else 0
    if expected != len(operand_names):
        raise ArityMismatchException(
            f"{method or 'query method'} consumes {expected} argument(s) but declares "
            f"{len(operand_names)}: {list(operand_names)}",
            context={"method": method, "expected": expected, "declared": list(operand_names)},
        )
