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
"""Tests for the @query and @order_by method declarations."""

import pytest

from keyquery.data.pageable import Direction
from keyquery.data.query import order_by, query, query_text_of, static_sort_of
from keyquery.kernel.exceptions import ConflictingSortSourceException


class TestQueryDecorator:
    def test_stores_text(self):
        @query("SELECT * FROM t WHERE a = :a")
        async def method(self, a): ...

        assert query_text_of(method) == "SELECT * FROM t WHERE a = :a"

    def test_plain_function_has_no_text(self):
        async def method(self): ...

        assert query_text_of(method) is None


class TestOrderByDecorator:
    def test_no_criteria(self):
        async def method(self): ...

        assert static_sort_of(method) is None

    def test_stacked_in_source_order(self):
        @order_by("lastName")
        @order_by("firstName", descending=True, ignore_case=True)
        async def method(self): ...

        sort = static_sort_of(method)
        assert [str(p) for p in sort.paths] == ["lastName", "firstName"]
        assert sort.criteria[0].direction is Direction.ASC
        assert sort.criteria[1].direction is Direction.DESC
        assert sort.criteria[1].ignore_case is True

    def test_duplicate_property_rejected(self):
        @order_by("name")
        @order_by("name", descending=True)
        async def method(self): ...

        with pytest.raises(ConflictingSortSourceException):
            static_sort_of(method)
