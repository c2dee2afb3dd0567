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
"""Query backend port: shared protocol for all rendering backends.

A backend receives a fully resolved :class:`QueryExecution` and renders
it into its own query representation. It must raise
:class:`~keyquery.kernel.exceptions.UnsupportedByProviderException` for
any operator or mode it cannot honour rather than degrade silently.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

from keyquery.data.pageable import Sort
from keyquery.data.plan import QueryPlan
from keyquery.data.predicate import Predicate


@dataclass(frozen=True)
class QueryExecution:
    """One invocation, ready to render.

    Attributes:
        plan: The method's declaration-time plan.
        arguments: Operand values, in declaration order.
        named_arguments: Operands by parameter name, for query text.
        predicate: Plan predicate with any keyset comparison ANDed on.
        sort: Effective ordering (already reversed for backward pages).
        limit: Maximum rows to return, or ``None``.
        offset: Rows to skip before the first returned row.
        keyset: Whether ``predicate`` carries a keyset comparison.
    """

    plan: QueryPlan
    arguments: tuple[Any, ...] = ()
    named_arguments: dict[str, Any] = field(default_factory=dict)
    predicate: Predicate | None = None
    sort: Sort = field(default_factory=Sort)
    limit: int | None = None
    offset: int = 0
    keyset: bool = False

    @property
    def entity(self) -> type:
        return self.plan.entity


@runtime_checkable
class QueryBackendPort(Protocol):
    """Execute rendered queries. Implementations may block on I/O; calls are awaited."""

    async def fetch(self, execution: QueryExecution) -> Sequence[Any]: ...

    async def count(self, execution: QueryExecution) -> int: ...

    async def delete(self, execution: QueryExecution) -> int: ...
