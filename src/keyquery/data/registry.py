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
"""Registry of query plans keyed by repository method.

Each declared method is compiled once, when its repository is registered,
and looked up by ``(repository, method name)`` on every call afterwards.
Concurrent registration of the same repository is safe: plans are
deterministic, so a duplicate build is wasted work and the first stored
plan wins.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Iterable
from typing import Any

from keyquery.data.plan import QueryPlan, QueryPlanBuilder
from keyquery.data.query import QUERY_ATTR

_logger = logging.getLogger(__name__)

# Names that indicate a derived query method, camelCase or snake_case.
DERIVED_NAME_RE = re.compile(r"^(find|count|exists|delete)((First\d*)?By|(_first(_\d+)?)?_by(_|$))")


def is_stub(method: Any) -> bool:
    """Return ``True`` if *method* appears to be a stub (body is ``...`` or ``pass``).

    A method is considered a stub when its code object contains no
    meaningful constants beyond ``None`` (which is the implicit return
    for ``pass`` bodies) and ``Ellipsis``.
    """
    func = method
    if isinstance(func, (staticmethod, classmethod)):
        func = func.__func__
    if hasattr(func, "__wrapped__"):
        func = func.__wrapped__

    code = getattr(func, "__code__", None)
    if code is None:
        return False

    consts = set(code.co_consts)
    consts.discard(None)
    consts.discard(Ellipsis)
    # A docstring is the first constant of a function that has one.
    if func.__doc__ is not None:
        consts.discard(func.__doc__)
    return len(consts) == 0


def is_query_method(name: str, attr: Any) -> bool:
    """Whether *attr* declares a query: ``@query`` text, or a derived-name stub."""
    if not callable(attr):
        return False
    if getattr(attr, QUERY_ATTR, None) is not None:
        return True
    return DERIVED_NAME_RE.match(name) is not None and is_stub(attr)


class QueryMethodRegistry:
    """Thread-safe lookup table from ``(repository, method)`` to :class:`QueryPlan`."""

    def __init__(self, builder: QueryPlanBuilder) -> None:
        self._builder = builder
        self._plans: dict[tuple[type, str], QueryPlan] = {}
        self._lock = threading.Lock()

    def register(self, repository: type, entity: type, *, exclude: Iterable[str] = ()) -> dict[str, QueryPlan]:
        """Compile every query method declared on *repository*.

        Args:
            repository: Repository class to scan.
            entity: Entity type the methods query.
            exclude: Attribute names never treated as query methods
                (typically those of the repository base class).

        Returns:
            Plans by method name.

        Raises:
            DeclarationException: any method fails validation; nothing from
                this repository is registered in that case.
        """
        excluded = set(exclude)
        built: dict[str, QueryPlan] = {}
        for name in dir(repository):
            if name.startswith("_") or name in excluded:
                continue
            attr = getattr(repository, name, None)
            if not is_query_method(name, attr):
                continue
            existing = self.plan_for(repository, name)
            built[name] = existing if existing is not None else self._builder.build(entity, attr, name=name)

        with self._lock:
            for name, plan in built.items():
                built[name] = self._plans.setdefault((repository, name), plan)

        _logger.debug("Registered %d query method(s) on %s", len(built), repository.__name__)
        return built

    def plan_for(self, repository: type, method: str) -> QueryPlan | None:
        return self._plans.get((repository, method))

    def __contains__(self, key: tuple[type, str]) -> bool:
        return key in self._plans

    def __len__(self) -> int:
        return len(self._plans)
