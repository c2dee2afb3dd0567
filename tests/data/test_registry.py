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
"""Tests for QueryMethodRegistry: stub detection, build-once and idempotent registration."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import pytest

from keyquery.data.metadata import DataclassMetadata
from keyquery.data.plan import QueryPlanBuilder
from keyquery.data.query import query
from keyquery.data.registry import QueryMethodRegistry, is_query_method, is_stub
from keyquery.kernel.exceptions import InvalidPropertyException


@dataclass
class Book:
    id: int
    title: str
    author: str


class BookRepository:
    async def findByTitle(self, title: str) -> list[Book]: ...

    async def find_by_author(self, author: str) -> list[Book]:
        """Books by one author."""

    async def countByAuthor(self, author: str) -> int:
        pass

    @query("SELECT * FROM books WHERE author = :author")
    async def by_author(self, author: str) -> list[Book]: ...

    async def findByTitleConcrete(self, title: str) -> list[Book]:
        return [Book(id=1, title=title, author="n/a")]

    def helper(self) -> str:
        return "not a query"


class BrokenRepository:
    async def findByIsbn(self, isbn: str) -> list[Book]: ...


@pytest.fixture
def registry():
    return QueryMethodRegistry(QueryPlanBuilder(DataclassMetadata()))


class TestStubDetection:
    def test_ellipsis_body(self):
        assert is_stub(BookRepository.findByTitle)

    def test_docstring_only_body(self):
        assert is_stub(BookRepository.find_by_author)

    def test_pass_body(self):
        assert is_stub(BookRepository.countByAuthor)

    def test_concrete_body(self):
        assert not is_stub(BookRepository.findByTitleConcrete)

    def test_query_methods(self):
        assert is_query_method("findByTitle", BookRepository.findByTitle)
        assert is_query_method("by_author", BookRepository.by_author)
        assert not is_query_method("helper", BookRepository.helper)
        assert not is_query_method("findByTitleConcrete", BookRepository.findByTitleConcrete)
        assert not is_query_method("findByTitle", "not callable")


class TestRegistry:
    def test_register_builds_query_methods_only(self, registry):
        plans = registry.register(BookRepository, Book)
        assert sorted(plans) == ["by_author", "countByAuthor", "findByTitle", "find_by_author"]
        assert len(registry) == 4

    def test_plan_lookup(self, registry):
        registry.register(BookRepository, Book)
        plan = registry.plan_for(BookRepository, "findByTitle")
        assert plan is not None
        assert plan.entity is Book
        assert (BookRepository, "findByTitle") in registry
        assert registry.plan_for(BookRepository, "helper") is None

    def test_exclude(self, registry):
        plans = registry.register(BookRepository, Book, exclude=["findByTitle"])
        assert "findByTitle" not in plans

    def test_registration_is_idempotent(self, registry):
        first = registry.register(BookRepository, Book)
        second = registry.register(BookRepository, Book)
        assert all(first[name] is second[name] for name in first)
        assert len(registry) == 4

    def test_concurrent_registration_shares_plans(self, registry):
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: registry.register(BookRepository, Book), range(16)))
        plan = registry.plan_for(BookRepository, "findByTitle")
        assert all(result["findByTitle"] is plan for result in results)

    def test_declaration_errors_propagate(self, registry):
        with pytest.raises(InvalidPropertyException):
            registry.register(BrokenRepository, Book)
        assert len(registry) == 0
