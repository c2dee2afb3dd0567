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
"""SQLAlchemy query backend: renders the predicate tree into column expressions.

Supports single-segment property paths only. ``EMPTY`` has no portable
column rendering and is rejected, as is keyset pagination or dynamic
sorting over explicit query text.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from sqlalchemy import and_, delete, func, not_, or_, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from keyquery.data.metadata import PropertyPath
from keyquery.data.pageable import Direction, Sort
from keyquery.data.ports.backend import QueryExecution
from keyquery.data.predicate import And, Clause, Operator, Or, Predicate
from keyquery.kernel.exceptions import UnsupportedByProviderException

_logger = logging.getLogger(__name__)


class SqlAlchemyBackend:
    """:class:`~keyquery.data.ports.backend.QueryBackendPort` executing on an :class:`AsyncSession`.

    Returns, per port method:

    * ``fetch``  -> ``list[T]`` of mapped entities
    * ``count``  -> ``int``
    * ``delete`` -> ``int`` (number of deleted rows)
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def fetch(self, execution: QueryExecution) -> Sequence[Any]:
        entity = execution.entity
        if execution.plan.query_text is not None:
            self._require_plain_text(execution)
            stmt: Any = select(entity).from_statement(text(execution.plan.query_text))
            result = await self._session.execute(stmt, execution.named_arguments)
            rows = list(result.scalars().all())
            end = None if execution.limit is None else execution.offset + execution.limit
            return rows[execution.offset : end]

        stmt = select(entity)
        stmt = self._apply_where(stmt, execution)
        stmt = self._apply_order(stmt, entity, execution.sort)
        if execution.offset:
            stmt = stmt.offset(execution.offset)
        if execution.limit is not None:
            stmt = stmt.limit(execution.limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def count(self, execution: QueryExecution) -> int:
        if execution.plan.query_text is not None:
            self._require_plain_text(execution)
            result = await self._session.execute(text(execution.plan.query_text), execution.named_arguments)
            return int(result.scalar_one())
        stmt = select(func.count()).select_from(execution.entity)
        stmt = self._apply_where(stmt, execution)
        result = await self._session.execute(stmt)
        return result.scalar_one()

    async def delete(self, execution: QueryExecution) -> int:
        if execution.plan.query_text is not None:
            self._require_plain_text(execution)
            result: Any = await self._session.execute(text(execution.plan.query_text), execution.named_arguments)
        else:
            stmt = self._apply_where(delete(execution.entity), execution)
            result = await self._session.execute(stmt)
        deleted = result.rowcount or 0
        _logger.debug("Deleted %d %s row(s)", deleted, execution.entity.__name__)
        return deleted

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------

    @staticmethod
    def _require_plain_text(execution: QueryExecution) -> None:
        if execution.keyset or execution.sort:
            raise UnsupportedByProviderException(
                f"{execution.plan.method}: keyset pagination and dynamic sorting are not supported over query text",
                context={"method": execution.plan.method},
            )

    def _apply_where(self, stmt: Any, execution: QueryExecution) -> Any:
        if execution.predicate is None:
            return stmt
        return stmt.where(self._render(execution.predicate, execution.entity, execution.arguments))

    def _render(self, predicate: Predicate, entity: type, arguments: Sequence[Any]) -> Any:
        if isinstance(predicate, And):
            return and_(*(self._render(p, entity, arguments) for p in predicate.operands))
        if isinstance(predicate, Or):
            return or_(*(self._render(p, entity, arguments) for p in predicate.operands))
        if isinstance(predicate, Clause):
            col = self._column(entity, predicate.path)
            clause = self._build_clause(col, predicate, predicate.operands(arguments))
            return not_(clause) if predicate.negated else clause
        raise UnsupportedByProviderException(f"Unknown predicate node {type(predicate).__name__}")

    @staticmethod
    def _column(entity: type, path: PropertyPath) -> Any:
        if len(path.segments) != 1:
            raise UnsupportedByProviderException(
                f"Embedded path '{path}' is not supported by the SQLAlchemy backend",
                context={"entity": entity.__name__, "path": str(path)},
            )
        return getattr(entity, path.leaf)

    @staticmethod
    def _build_clause(col: Any, clause: Clause, operands: tuple[Any, ...]) -> Any:
        """Build a single SQLAlchemy expression for one clause."""
        op = clause.operator
        if clause.ignore_case:
            col = func.lower(col)
            if op is Operator.IN:
                operands = ([o.lower() if isinstance(o, str) else o for o in operands[0]],)
            else:
                operands = tuple(o.lower() if isinstance(o, str) else o for o in operands)

        if op is Operator.EQUAL:
            return col == operands[0]
        if op is Operator.GREATER_THAN:
            return col > operands[0]
        if op is Operator.GREATER_THAN_EQUAL:
            return col >= operands[0]
        if op is Operator.LESS_THAN:
            return col < operands[0]
        if op is Operator.LESS_THAN_EQUAL:
            return col <= operands[0]
        if op is Operator.LIKE:
            return col.like(operands[0])
        if op is Operator.STARTS_WITH:
            return col.startswith(operands[0], autoescape=True)
        if op is Operator.ENDS_WITH:
            return col.endswith(operands[0], autoescape=True)
        if op is Operator.CONTAINS:
            return col.contains(operands[0], autoescape=True)
        if op is Operator.IN:
            return col.in_(operands[0])
        if op is Operator.BETWEEN:
            return col.between(operands[0], operands[1])
        if op is Operator.NULL:
            return col.is_(None)
        if op is Operator.TRUE:
            return col.is_(True)
        if op is Operator.FALSE:
            return col.is_(False)

        raise UnsupportedByProviderException(
            f"Operator {op.value} is not supported by the SQLAlchemy backend",
            context={"operator": op.value, "path": str(clause.path)},
        )

    def _apply_order(self, stmt: Any, entity: type, sort: Sort) -> Any:
        for criterion in sort.criteria:
            col = self._column(entity, criterion.property)
            if criterion.ignore_case:
                col = func.lower(col)
            # Nulls sort lowest, matching the keyset comparisons.
            if criterion.direction is Direction.ASC:
                stmt = stmt.order_by(col.asc().nulls_first())
            else:
                stmt = stmt.order_by(col.desc().nulls_last())
        return stmt
