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
"""Repository base class and the post-processor that wires query methods.

Declare query methods as stubs on a :class:`Repository` subclass; the
:class:`RepositoryPostProcessor` compiles each one into a
:class:`~keyquery.data.plan.QueryPlan` and replaces the stub on the
instance with an async callable that dispatches to the backend.

Usage::

    class ProductRepository(Repository[Product]):

        @order_by("price", descending=True)
        async def findByNameLikeAndPriceLessThan(self, name: str, price: float) -> list[Product]: ...

    repo = RepositoryPostProcessor().after_init(ProductRepository(backend), "productRepository")
    await repo.findByNameLikeAndPriceLessThan("%Phone%", 900.0)
"""

from __future__ import annotations

import logging
from typing import Any, Generic, TypeVar, cast, get_args, get_origin

from keyquery.data.execution import QueryDispatcher
from keyquery.data.keyset import KeysetPaginator
from keyquery.data.metadata import DataclassMetadata, EntityMetadata
from keyquery.data.plan import QueryPlan, QueryPlanBuilder
from keyquery.data.ports.backend import QueryBackendPort
from keyquery.data.properties import KeysetProperties
from keyquery.data.registry import QueryMethodRegistry

_logger = logging.getLogger(__name__)

T = TypeVar("T")


class Repository(Generic[T]):
    """Base for repositories with derived and explicit query methods.

    Type Parameters:
        T: The entity type.

    Usage::

        class PersonRepository(Repository[Person]):
            async def findByAddressZipCode(self, zip: str, page: PageRequest) -> PageResult[Person]: ...
    """

    _entity_type: type | None = None

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        for base in getattr(cls, "__orig_bases__", []):
            if get_origin(base) is Repository:
                args = get_args(base)
                if args and not isinstance(args[0], TypeVar):
                    cls._entity_type = args[0]
                break

    def __init__(self, backend: QueryBackendPort | None = None, model: type[T] | None = None) -> None:
        resolved = model or getattr(type(self), "_entity_type", None)
        if resolved is None:
            raise TypeError(
                f"{type(self).__name__} requires either a Repository[Entity] declaration or an explicit model argument"
            )
        self._model: type[T] = cast(type[T], resolved)
        self._backend = backend

    def _require_backend(self) -> QueryBackendPort:
        if self._backend is None:
            raise RuntimeError(f"No query backend configured for {type(self).__name__}")
        return self._backend


class RepositoryPostProcessor:
    """Replace stub query methods on :class:`Repository` instances with dispatching callables.

    Plans are compiled once per repository class and shared by every
    instance; declaration errors surface from :meth:`after_init`.
    """

    def __init__(
        self,
        metadata: EntityMetadata | None = None,
        *,
        registry: QueryMethodRegistry | None = None,
        properties: KeysetProperties | None = None,
    ) -> None:
        self._metadata = metadata or DataclassMetadata()
        self._properties = properties or KeysetProperties()
        self._paginator = KeysetPaginator(self._metadata, probe=self._properties.probe)
        self._registry = registry or QueryMethodRegistry(
            QueryPlanBuilder(self._metadata, paginator=self._paginator)
        )

    @property
    def registry(self) -> QueryMethodRegistry:
        return self._registry

    def before_init(self, bean: Any, bean_name: str) -> Any:
        return bean

    def after_init(self, bean: Any, bean_name: str) -> Any:
        if not isinstance(bean, Repository):
            return bean

        cls = type(bean)
        plans = self._registry.register(cls, bean._model, exclude=dir(Repository))
        for name, plan in plans.items():
            setattr(bean, name, self._wrap(plan).__get__(bean, cls))
        _logger.debug("Wired %d query method(s) on %s", len(plans), bean_name)
        return bean

    def _wrap(self, plan: QueryPlan) -> Any:
        metadata, properties, paginator = self._metadata, self._properties, self._paginator

        async def wrapper(self_arg: Repository[Any], *args: Any, **kwargs: Any) -> Any:
            dispatcher = QueryDispatcher(
                self_arg._require_backend(), metadata, properties=properties, paginator=paginator
            )
            return await dispatcher.invoke(plan, args, kwargs)

        wrapper.__name__ = plan.method
        wrapper.__qualname__ = plan.method
        return wrapper
