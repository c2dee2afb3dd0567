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
"""Tests for the SQLAlchemy backend and mapper metadata, on aiosqlite."""

from __future__ import annotations

import pytest
from sqlalchemy import Integer, String, UniqueConstraint
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from keyquery.data.adapters.sqlalchemy import SqlAlchemyBackend, SqlAlchemyMetadata
from keyquery.data.metadata import PropertyPath
from keyquery.data.page import PageResult
from keyquery.data.pageable import PageRequest, Sort, SortCriterion
from keyquery.data.query import order_by, query
from keyquery.data.repository import Repository, RepositoryPostProcessor
from keyquery.kernel.exceptions import InvalidPropertyException, PartialOrderingException, UnsupportedByProviderException

# ---------------------------------------------------------------------------
# Test entities
# ---------------------------------------------------------------------------


class Base(DeclarativeBase):
    pass


class Gadget(Base):
    __tablename__ = "kq_gadgets"
    __table_args__ = (UniqueConstraint("serial"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    category: Mapped[str] = mapped_column(String(50))
    price: Mapped[float] = mapped_column(default=0.0)
    sku: Mapped[str] = mapped_column(String(20), unique=True)
    serial: Mapped[str] = mapped_column(String(20))
    description: Mapped[str | None] = mapped_column(String(200), default=None)


class GadgetRepository(Repository[Gadget]):
    @order_by("price", descending=True)
    async def findByNameLikeAndPriceLessThan(self, name: str, price: float) -> list[Gadget]: ...

    async def findByCategory(self, category: str, page: PageRequest) -> PageResult[Gadget]: ...

    async def findByNameIgnoreCase(self, name: str) -> Gadget | None: ...

    async def findByNameStartsWithAndDescriptionIsNotNull(self, prefix: str) -> list[Gadget]: ...

    async def findByCategoryInOrderByIdDesc(self, categories: list[str]) -> list[Gadget]: ...

    async def findByPriceBetween(self, low: float, high: float, sort: Sort) -> list[Gadget]: ...

    async def findByNameEmpty(self) -> list[Gadget]: ...

    async def countByCategory(self, category: str) -> int: ...

    async def existsBySku(self, sku: str) -> bool: ...

    async def deleteByCategory(self, category: str) -> int: ...

    @query("SELECT * FROM kq_gadgets WHERE price < :max_price")
    async def cheap(self, max_price: float) -> list[Gadget]: ...

    @query("SELECT COUNT(*) FROM kq_gadgets WHERE category = :category")
    async def count_in(self, category: str) -> int: ...

    @query("SELECT * FROM kq_gadgets WHERE category = :category")
    async def page_in(self, category: str, page: PageRequest) -> PageResult[Gadget]: ...


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    factory = async_sessionmaker(engine, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest.fixture
async def seeded_session(session: AsyncSession) -> AsyncSession:
    session.add_all(
        [
            Gadget(id=1, name="Phone X", category="phones", price=999.0, sku="G-1", serial="S-1",
                   description="flagship"),
            Gadget(id=2, name="Phone Lite", category="phones", price=399.0, sku="G-2", serial="S-2"),
            Gadget(id=3, name="Phone Mini", category="phones", price=499.0, sku="G-3", serial="S-3",
                   description="small"),
            Gadget(id=4, name="Tablet", category="tablets", price=599.0, sku="G-4", serial="S-4"),
            Gadget(id=5, name="Charger", category="accessories", price=29.0, sku="G-5", serial="S-5"),
        ]
    )
    await session.flush()
    return session


@pytest.fixture
def repo(seeded_session) -> GadgetRepository:
    processor = RepositoryPostProcessor(SqlAlchemyMetadata())
    return processor.after_init(GadgetRepository(SqlAlchemyBackend(seeded_session)), "gadgetRepository")


# ---------------------------------------------------------------------------
# Metadata
# ---------------------------------------------------------------------------


class TestSqlAlchemyMetadata:
    def test_property_names(self):
        names = SqlAlchemyMetadata().property_names(Gadget)
        assert names == ["id", "name", "category", "price", "sku", "serial", "description"]

    def test_resolve_property(self):
        info = SqlAlchemyMetadata().resolve_property(Gadget, "price")
        assert info is not None
        assert info.type is float
        assert info.embedded is False
        assert SqlAlchemyMetadata().resolve_property(Gadget, "missing") is None

    def test_unmapped_class(self):
        assert SqlAlchemyMetadata().property_names(str) == []
        with pytest.raises(InvalidPropertyException):
            SqlAlchemyMetadata().identifier_property(str)

    def test_identifier(self):
        assert SqlAlchemyMetadata().identifier_property(Gadget) == PropertyPath(("id",))

    def test_unique(self):
        metadata = SqlAlchemyMetadata()
        assert metadata.is_unique(Gadget, PropertyPath(("id",)))
        assert metadata.is_unique(Gadget, PropertyPath(("sku",)))
        assert metadata.is_unique(Gadget, PropertyPath(("serial",)))
        assert not metadata.is_unique(Gadget, PropertyPath(("price",)))

    def test_paged_sort_without_unique_key_rejected(self):
        class BadRepository(Repository[Gadget]):
            @order_by("price")
            async def findByCategory(self, category: str, page: PageRequest) -> PageResult[Gadget]: ...

        with pytest.raises(PartialOrderingException):
            RepositoryPostProcessor(SqlAlchemyMetadata()).after_init(BadRepository(), "bad")


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestSqlAlchemyQueries:
    async def test_like_and_less_than(self, repo):
        result = await repo.findByNameLikeAndPriceLessThan("Phone%", 900.0)
        assert [g.id for g in result] == [3, 2]

    async def test_ignore_case(self, repo):
        gadget = await repo.findByNameIgnoreCase("TABLET")
        assert gadget is not None and gadget.id == 4

    async def test_starts_with_and_not_null(self, repo):
        result = await repo.findByNameStartsWithAndDescriptionIsNotNull("Phone")
        assert sorted(g.id for g in result) == [1, 3]

    async def test_in_with_order_by(self, repo):
        result = await repo.findByCategoryInOrderByIdDesc(["tablets", "accessories"])
        assert [g.id for g in result] == [5, 4]

    async def test_between_with_dynamic_sort(self, repo):
        result = await repo.findByPriceBetween(300.0, 600.0, Sort.of(SortCriterion.desc("price")))
        assert [g.id for g in result] == [4, 3, 2]

    async def test_count_exists_delete(self, repo):
        assert await repo.countByCategory("phones") == 3
        assert await repo.existsBySku("G-5") is True
        assert await repo.existsBySku("G-9") is False
        assert await repo.deleteByCategory("phones") == 3
        assert await repo.countByCategory("phones") == 0

    async def test_empty_operator_unsupported(self, repo):
        with pytest.raises(UnsupportedByProviderException):
            await repo.findByNameEmpty()

    async def test_query_text(self, repo):
        result = await repo.cheap(450.0)
        assert sorted(g.id for g in result) == [2, 5]
        assert await repo.count_in("phones") == 3

    async def test_keyset_over_query_text_unsupported(self, repo):
        with pytest.raises(UnsupportedByProviderException):
            await repo.page_in("phones", PageRequest.of_size(2, Sort.by("id")))


class TestSqlAlchemyKeysetPagination:
    async def test_forward_and_backward(self, repo):
        sort = Sort.of(SortCriterion.desc("price"), SortCriterion.asc("id"))
        first = await repo.findByCategory("phones", PageRequest.of_size(2, sort))
        assert [g.id for g in first.items] == [1, 3]
        assert first.has_next is True

        second = await repo.findByCategory("phones", first.next_request())
        assert [g.id for g in second.items] == [2]
        assert second.has_next is False
        assert second.has_previous is True

        back = await repo.findByCategory("phones", second.previous_request())
        assert [g.id for g in back.items] == [1, 3]
        assert back.has_previous is False

    async def test_stable_under_insert(self, repo, seeded_session):
        sort = Sort.of(SortCriterion.asc("price"), SortCriterion.asc("id"))
        first = await repo.findByCategory("phones", PageRequest.of_size(2, sort))
        assert [g.id for g in first.items] == [2, 3]
        seeded_session.add(Gadget(id=6, name="Phone Old", category="phones", price=99.0, sku="G-6", serial="S-6"))
        await seeded_session.flush()
        second = await repo.findByCategory("phones", first.next_request())
        assert [g.id for g in second.items] == [1]

    async def test_traverses_nullable_sort_key(self, repo):
        sort = Sort.of(SortCriterion.asc("description"), SortCriterion.asc("id"))
        page = await repo.findByCategory("phones", PageRequest.of_size(1, sort))
        seen = [g.id for g in page.items]
        while page.has_next:
            page = await repo.findByCategory("phones", page.next_request())
            seen.extend(g.id for g in page.items)
        assert seen == [2, 1, 3]

        back = await repo.findByCategory("phones", page.previous_request())
        assert [g.id for g in back.items] == [1]
        back = await repo.findByCategory("phones", back.previous_request())
        assert [g.id for g in back.items] == [2]
        assert back.has_previous is False
