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
"""Entity metadata read from SQLAlchemy mappers.

Only column attributes are exposed; relationships and composites are not
traversed, so every resolved path has a single segment.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import UniqueConstraint, inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.orm import ColumnProperty, Mapper

from keyquery.data.metadata import PropertyInfo, PropertyPath
from keyquery.kernel.exceptions import InvalidPropertyException


class SqlAlchemyMetadata:
    """:class:`~keyquery.data.metadata.EntityMetadata` for declaratively mapped classes."""

    @staticmethod
    def _mapper(entity: type) -> Mapper[Any] | None:
        try:
            return inspect(entity)
        except NoInspectionAvailable:
            return None

    def property_names(self, entity: type) -> list[str]:
        mapper = self._mapper(entity)
        if mapper is None:
            return []
        return [attr.key for attr in mapper.column_attrs]

    def resolve_property(self, entity: type, name: str) -> PropertyInfo | None:
        mapper = self._mapper(entity)
        if mapper is None:
            return None
        attr = mapper.column_attrs.get(name)
        if attr is None:
            return None
        try:
            python_type: Any = attr.columns[0].type.python_type
        except NotImplementedError:
            python_type = Any
        return PropertyInfo(attr.key, python_type)

    def identifier_property(self, entity: type) -> PropertyPath:
        mapper = self._mapper(entity)
        if mapper is None or len(mapper.primary_key) != 1:
            raise InvalidPropertyException(
                f"{entity.__name__} has no single-column primary key",
                context={"entity": entity.__name__},
            )
        return PropertyPath((mapper.get_property_by_column(mapper.primary_key[0]).key,))

    def is_unique(self, entity: type, path: PropertyPath) -> bool:
        mapper = self._mapper(entity)
        if mapper is None or len(path.segments) != 1:
            return False
        attr = mapper.column_attrs.get(path.leaf)
        if not isinstance(attr, ColumnProperty):
            return False
        column = attr.columns[0]
        if column.primary_key and len(mapper.primary_key) == 1:
            return True
        if column.unique:
            return True
        table = getattr(column, "table", None)
        for constraint in getattr(table, "constraints", ()):
            if isinstance(constraint, UniqueConstraint) and [c.key for c in constraint.columns] == [column.key]:
                return True
        return False
