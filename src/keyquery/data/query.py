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
"""Method declarations: explicit query text and static sort criteria.

Usage::

    from keyquery.data.query import order_by, query

    class ProductRepository(Repository[Product]):

        @order_by("price", descending=True)
        @order_by("name")
        async def findByNameLike(self, pattern: str) -> list[Product]: ...

        @query("SELECT p FROM Product p WHERE p.price < :max ORDER BY p.name")
        async def cheap_products(self, max: float) -> list[Product]: ...

Stacked ``@order_by`` decorators apply in the order they are written.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from keyquery.data.pageable import Sort, SortCriterion
from keyquery.kernel.exceptions import ConflictingSortSourceException

QUERY_ATTR = "__keyquery_query__"
ORDER_BY_ATTR = "__keyquery_order_by__"


def query(text: str) -> Callable:
    """Mark a repository method with explicit query text.

    The text is opaque to the engine; it is handed to the backend with
    the method's arguments bound by parameter name (``:name``). It skips
    method-name parsing but still takes part in sort resolution and keyset
    pagination.

    Returns:
        A decorator that stores the text on the wrapped function via
        ``__keyquery_query__``.
    """

    def decorator(func: Callable) -> Callable:
        setattr(func, QUERY_ATTR, text)
        return func

    return decorator


def order_by(property: str, *, descending: bool = False, ignore_case: bool = False) -> Callable:
    """Declare a static sort criterion for a repository method."""
    criterion = SortCriterion.desc(property, ignore_case) if descending else SortCriterion.asc(property, ignore_case)

    def decorator(func: Callable) -> Callable:
        # Decorators run bottom-up, so prepend to keep source order.
        existing: tuple[SortCriterion, ...] = getattr(func, ORDER_BY_ATTR, ())
        setattr(func, ORDER_BY_ATTR, (criterion, *existing))
        return func

    return decorator


def query_text_of(func: Any) -> str | None:
    return getattr(func, QUERY_ATTR, None)


def static_sort_of(func: Any) -> Sort | None:
    """The ``@order_by`` criteria of *func*, or ``None`` when it declares none."""
    criteria: tuple[SortCriterion, ...] = getattr(func, ORDER_BY_ATTR, ())
    if not criteria:
        return None
    paths = [c.property for c in criteria]
    if len(set(paths)) != len(paths):
        raise ConflictingSortSourceException(
            f"{getattr(func, '__name__', func)} declares @order_by for the same property more than once",
            context={"method": getattr(func, "__name__", str(func))},
        )
    return Sort(criteria)

