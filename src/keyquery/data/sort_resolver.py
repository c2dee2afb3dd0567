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
"""Sort precedence: static criteria first, dynamic criteria break ties."""

from __future__ import annotations

import re

from keyquery.data.metadata import PropertyPath
from keyquery.data.pageable import PageRequest, Sort, SortCriterion
from keyquery.kernel.exceptions import ConflictingDynamicSortException, ConflictingSortSourceException

_ORDER_BY_RE = re.compile(r"\border\s+by\b", re.IGNORECASE)


def has_order_clause(query_text: str) -> bool:
    """Whether explicit query text already orders its results."""
    return _ORDER_BY_RE.search(query_text) is not None


class SortResolver:
    """Merge static and dynamic sort criteria and police their sources."""

    def resolve(self, static: Sort | None, dynamic: Sort | None) -> Sort:
        """Concatenate *static* then *dynamic*, dropping later duplicates by path.

        ``resolve([type asc], [age desc])`` is ``[type asc, age desc]``;
        ``resolve([type asc], [type desc])`` is ``[type asc]``.
        """
        merged: list[SortCriterion] = []
        seen: set[PropertyPath] = set()
        for source in (static, dynamic):
            for criterion in source or ():
                if criterion.property in seen:
                    continue
                seen.add(criterion.property)
                merged.append(criterion)
        return Sort(tuple(merged))

    @staticmethod
    def validate_sources(
        method: str,
        *,
        query_text: str | None = None,
        static: Sort | None = None,
        sort_parameters: int = 0,
        page_parameters: int = 0,
    ) -> None:
        """Declaration-time checks on where a method's sort criteria come from.

        Raises:
            ConflictingDynamicSortException: more than one dynamic sort source
                is declared (sort parameters plus a page-request parameter,
                or several of either).
            ConflictingSortSourceException: query text with its own ORDER BY
                clause alongside any other sort source.
        """
        if sort_parameters + page_parameters > 1:
            raise ConflictingDynamicSortException(
                f"{method} declares {sort_parameters} sort and {page_parameters} page-request parameter(s); "
                f"sort criteria may come from one dynamic source only",
                context={"method": method},
            )
        if query_text is not None and has_order_clause(query_text) and (static or sort_parameters or page_parameters):
            raise ConflictingSortSourceException(
                f"{method} query text has an ORDER BY clause; no other sort source may be supplied",
                context={"method": method},
            )

    @staticmethod
    def dynamic_sort(method: str, sort: Sort | None, page_request: PageRequest | None) -> Sort | None:
        """Pick the call-time sort from whichever source carries one.

        Raises:
            ConflictingDynamicSortException: both sources carry criteria.
        """
        page_sort = page_request.sort if page_request is not None else None
        if sort and page_sort:
            raise ConflictingDynamicSortException(
                f"{method} received sort criteria from both a sort argument and the page request",
                context={"method": method},
            )
        return sort or page_sort or None
