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
"""Call-time dispatch of query plans to a rendering backend.

The dispatcher holds no per-call state: every invocation binds its own
arguments, resolves its own sort and, for paged methods, threads keyset
state through the :class:`PageRequest` it was given and the
:class:`PageResult` it returns.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import replace
from typing import Any

from keyquery.data.keyset import KeysetPaginator
from keyquery.data.metadata import EntityMetadata, resolve_path
from keyquery.data.page import PageResult
from keyquery.data.pageable import PageRequest, Sort, SortCriterion
from keyquery.data.plan import BoundArguments, QueryPlan, ResultShape
from keyquery.data.ports.backend import QueryBackendPort, QueryExecution
from keyquery.data.properties import KeysetProperties
from keyquery.data.sort_resolver import SortResolver

_logger = logging.getLogger(__name__)


class QueryDispatcher:
    """Execute :class:`QueryPlan` objects against a :class:`QueryBackendPort`.

    Returns, by result shape:

    * ``COUNT``  -> ``int``
    * ``EXISTS`` -> ``bool``
    * ``DELETE`` -> ``int`` (number of deleted rows)
    * ``SINGLE`` -> entity or ``None``
    * ``MANY``   -> ``list[T]``
    * ``PAGE``   -> ``PageResult[T]``
    """

    def __init__(
        self,
        backend: QueryBackendPort,
        metadata: EntityMetadata,
        *,
        properties: KeysetProperties | None = None,
        resolver: SortResolver | None = None,
        paginator: KeysetPaginator | None = None,
    ) -> None:
        self._backend = backend
        self._metadata = metadata
        self._properties = properties or KeysetProperties()
        self._resolver = resolver or SortResolver()
        self._paginator = paginator or KeysetPaginator(metadata, probe=self._properties.probe)

    async def invoke(self, plan: QueryPlan, args: Sequence[Any] = (), kwargs: Mapping[str, Any] | None = None) -> Any:
        bound = plan.parameters.bind(args, kwargs)
        dynamic = self._resolver.dynamic_sort(plan.method, bound.sort, bound.page_request)
        if dynamic:
            dynamic = Sort(tuple(self._canonical(plan.entity, c) for c in dynamic.criteria))
        sort = self._resolver.resolve(plan.sort, dynamic)

        if plan.shape is ResultShape.PAGE:
            return await self._page(plan, bound, sort)

        execution = self._execution(plan, bound, sort)
        if plan.shape is ResultShape.COUNT:
            return await self._backend.count(execution)
        if plan.shape is ResultShape.EXISTS:
            return await self._backend.count(execution) > 0
        if plan.shape is ResultShape.DELETE:
            return await self._backend.delete(execution)
        if plan.shape is ResultShape.SINGLE:
            rows = await self._backend.fetch(_with_limit(execution, 1))
            return rows[0] if rows else None
        return list(await self._backend.fetch(execution))

    def _execution(self, plan: QueryPlan, bound: BoundArguments, sort: Sort) -> QueryExecution:
        limit = plan.first
        offset = 0
        if bound.limit is not None:
            offset = bound.limit.offset
            # A Limit argument can narrow a findFirst<N> bound, never widen it.
            limit = bound.limit.max_results if limit is None else min(limit, bound.limit.max_results)
        return QueryExecution(
            plan=plan,
            arguments=bound.operands,
            named_arguments=bound.named_operands(plan.parameters.operand_names),
            predicate=plan.predicate,
            sort=sort,
            limit=limit,
            offset=offset,
        )

    async def _page(self, plan: QueryPlan, bound: BoundArguments, sort: Sort) -> PageResult[Any]:
        request = bound.page_request or PageRequest(size=self._properties.default_size)
        if request.size > self._properties.max_size:
            raise ValueError(f"page size {request.size} exceeds the configured maximum {self._properties.max_size}")

        keyset = self._paginator.prepare(plan.entity, request, sort, method=plan.method)
        predicate = plan.predicate
        if keyset.predicate is not None:
            predicate = keyset.predicate if predicate is None else predicate & keyset.predicate

        execution = QueryExecution(
            plan=plan,
            arguments=bound.operands,
            named_arguments=bound.named_operands(plan.parameters.operand_names),
            predicate=predicate,
            sort=keyset.sort,
            limit=keyset.limit,
            keyset=keyset.predicate is not None,
        )
        rows = await self._backend.fetch(execution)
        _logger.debug("Fetched %d row(s) for %s.%s", len(rows), plan.entity.__name__, plan.method)
        return self._paginator.assemble(rows, request, sort)

    def _canonical(self, entity: type, criterion: SortCriterion) -> SortCriterion:
        path = resolve_path(self._metadata, entity, criterion.property)
        return SortCriterion(path, criterion.direction, criterion.ignore_case)


def _with_limit(execution: QueryExecution, limit: int) -> QueryExecution:
    return replace(execution, limit=limit if execution.limit is None else min(limit, execution.limit))
