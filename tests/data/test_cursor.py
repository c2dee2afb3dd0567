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
"""Tests for KeysetCursor capture and serialization."""

import datetime as dt
import uuid
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

import pytest

from keyquery.data.cursor import KeysetCursor
from keyquery.data.metadata import PropertyPath
from keyquery.data.pageable import Sort, SortCriterion
from keyquery.kernel.exceptions import InvalidCursorException


class Tier(Enum):
    GOLD = 1
    SILVER = "silver"


@dataclass
class Person:
    id: int
    firstName: str
    lastName: str


class TestKeysetCursor:
    def test_from_item_follows_sort_order(self):
        sort = Sort.of(SortCriterion.asc("lastName"), SortCriterion.asc("firstName"), SortCriterion.asc("id"))
        cursor = KeysetCursor.from_item(sort, Person(id=2, firstName="C", lastName="A"))
        assert cursor == KeysetCursor.of(lastName="A", firstName="C", id=2)
        assert cursor.values == ("A", "C", 2)
        assert cursor.matches(sort)

    def test_matches_requires_same_paths_in_order(self):
        cursor = KeysetCursor.of(lastName="A", id=2)
        assert not cursor.matches(Sort.by("id", "lastName"))
        assert not cursor.matches(Sort.by("lastName"))

    def test_empty_cursor_rejected(self):
        with pytest.raises(InvalidCursorException):
            KeysetCursor(())

    def test_str(self):
        assert str(KeysetCursor.of(lastName="A", id=2)) == "lastName='A', id=2"


class TestCursorSerialization:
    def test_to_list_is_flat_and_typed(self):
        cursor = KeysetCursor.of(lastName="A", id=2)
        assert cursor.to_list() == [["lastName", "str", "A"], ["id", "int", 2]]

    def test_round_trip_preserves_types(self):
        cursor = KeysetCursor(
            (
                (PropertyPath.of("name"), "Ana"),
                (PropertyPath.of("active"), True),
                (PropertyPath.of("score"), 0.1),
                (PropertyPath.of("price"), Decimal("19.99")),
                (PropertyPath.of("created"), dt.datetime(2024, 5, 1, 12, 30, tzinfo=dt.timezone.utc)),
                (PropertyPath.of("born"), dt.date(1990, 1, 2)),
                (PropertyPath.of("opens"), dt.time(9, 15)),
                (PropertyPath.of("ref"), uuid.UUID("12345678-1234-5678-1234-567812345678")),
                (PropertyPath.of("blob"), b"\x00\xff"),
                (PropertyPath.of("address.zipCode"), None),
            )
        )
        restored = KeysetCursor.from_list(cursor.to_list())
        assert restored == cursor
        assert type(restored.values[1]) is bool
        assert type(restored.values[3]) is Decimal

    def test_token_round_trip(self):
        cursor = KeysetCursor.of(lastName="A", firstName="C", id=2)
        token = cursor.encode()
        assert "=" not in token
        assert KeysetCursor.decode(token) == cursor

    def test_enum_round_trip_keeps_member(self):
        cursor = KeysetCursor.of(tier=Tier.GOLD, id=2)
        assert cursor.to_list() == [["tier", "enum", f"{Tier.__module__}:Tier.GOLD"], ["id", "int", 2]]
        assert KeysetCursor.from_list(cursor.to_list()) == cursor
        decoded = KeysetCursor.decode(KeysetCursor.of(tier=Tier.SILVER).encode())
        assert decoded.values == (Tier.SILVER,)

    def test_unknown_enum_member_rejected(self):
        with pytest.raises(InvalidCursorException):
            KeysetCursor.from_list([["tier", "enum", f"{Tier.__module__}:Tier.BRONZE"]])

    def test_local_enum_rejected(self):
        class Local(Enum):
            A = 1

        with pytest.raises(InvalidCursorException):
            KeysetCursor.of(level=Local.A).to_list()

    def test_unsupported_value_type(self):
        with pytest.raises(InvalidCursorException):
            KeysetCursor.of(tags=["a"]).to_list()

    def test_malformed_token(self):
        with pytest.raises(InvalidCursorException):
            KeysetCursor.decode("not-a-token!")

    def test_unknown_type_tag(self):
        with pytest.raises(InvalidCursorException):
            KeysetCursor.from_list([["id", "complex", "1+2j"]])

    def test_malformed_entry(self):
        with pytest.raises(InvalidCursorException):
            KeysetCursor.from_list([["id", 2]])
