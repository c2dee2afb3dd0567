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
"""Tests for Sort, SortCriterion, Limit and PageRequest value objects."""

import pytest

from keyquery.data.cursor import KeysetCursor
from keyquery.data.metadata import PropertyPath
from keyquery.data.pageable import Direction, Limit, PageRequest, Sort, SortCriterion, TraversalDirection


class TestSortCriterion:
    def test_factories(self):
        assert SortCriterion.asc("name").direction is Direction.ASC
        assert SortCriterion.desc("name").direction is Direction.DESC
        assert SortCriterion.asc("address.zipCode").property == PropertyPath(("address", "zipCode"))

    def test_reversed(self):
        criterion = SortCriterion.asc("name", ignore_case=True)
        flipped = criterion.reversed()
        assert flipped.direction is Direction.DESC
        assert flipped.ignore_case is True

    def test_str(self):
        assert str(SortCriterion.desc("price")) == "price desc"


class TestSort:
    def test_by_is_ascending(self):
        sort = Sort.by("lastName", "id")
        assert sort.paths == (PropertyPath(("lastName",)), PropertyPath(("id",)))
        assert all(c.direction is Direction.ASC for c in sort)

    def test_duplicate_paths_rejected(self):
        with pytest.raises(ValueError):
            Sort.of(SortCriterion.asc("name"), SortCriterion.desc("name"))

    def test_empty_sort_is_falsy(self):
        assert not Sort.unsorted()
        assert len(Sort()) == 0
        assert Sort.by("id")

    def test_reversed_flips_every_criterion(self):
        sort = Sort.of(SortCriterion.asc("lastName"), SortCriterion.desc("id"))
        assert sort.reversed() == Sort.of(SortCriterion.desc("lastName"), SortCriterion.asc("id"))

    def test_structural_equality(self):
        assert Sort.by("a", "b") == Sort.by("a", "b")
        assert Sort.by("a", "b") != Sort.by("b", "a")


class TestLimit:
    def test_of(self):
        limit = Limit.of(10)
        assert limit.max_results == 10
        assert limit.offset == 0

    def test_range_is_inclusive_and_one_based(self):
        limit = Limit.range(11, 20)
        assert limit.max_results == 10
        assert limit.offset == 10

    def test_invalid(self):
        with pytest.raises(ValueError):
            Limit.of(0)
        with pytest.raises(ValueError):
            Limit(max_results=5, start_at=0)


class TestPageRequest:
    def test_defaults(self):
        request = PageRequest()
        assert request.size == 20
        assert not request.sort
        assert request.is_initial
        assert request.direction is TraversalDirection.FORWARD

    def test_size_must_be_positive(self):
        with pytest.raises(ValueError):
            PageRequest(size=0)

    def test_after_and_before(self):
        cursor = KeysetCursor.of(id=5)
        request = PageRequest.of_size(10, Sort.by("id"))
        after = request.after(cursor)
        before = request.before(cursor)
        assert after.cursor == cursor and after.direction is TraversalDirection.FORWARD
        assert before.cursor == cursor and before.direction is TraversalDirection.BACKWARD
        assert before.size == 10
        assert before.sort == Sort.by("id")
        assert request.is_initial

    def test_with_sort(self):
        request = PageRequest.of_size(5).with_sort(Sort.by("name"))
        assert request.sort == Sort.by("name")
