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
"""Entity metadata port and the default dataclass-backed provider.

The engine never inspects entities directly. Property names, their types,
the identifier and unique keys are all read through :class:`EntityMetadata`,
so any mapping layer (dataclasses, SQLAlchemy mappers, ...) can supply them.
"""

from __future__ import annotations

import dataclasses
import types
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar, Protocol, Union, get_args, get_origin, get_type_hints, runtime_checkable

from keyquery.kernel.exceptions import InvalidPropertyException


@dataclass(frozen=True)
class PropertyPath:
    """Ordered property-name segments, e.g. ``("address", "zipCode")``."""

    segments: tuple[str, ...]

    def __post_init__(self) -> None:
        if not self.segments or any(not s for s in self.segments):
            raise ValueError(f"Invalid property path: {self.segments!r}")

    @staticmethod
    def of(path: str | PropertyPath) -> PropertyPath:
        """Build a path from a dotted string (``"address.zipCode"``)."""
        if isinstance(path, PropertyPath):
            return path
        return PropertyPath(tuple(path.split(".")))

    @property
    def leaf(self) -> str:
        return self.segments[-1]

    def value_of(self, item: Any) -> Any:
        """Read this path from an entity instance or a mapping row."""
        current = item
        for segment in self.segments:
            if current is None:
                return None
            if isinstance(current, Mapping):
                current = current[segment]
            else:
                current = getattr(current, segment)
        return current

    def __str__(self) -> str:
        return ".".join(self.segments)


@dataclass(frozen=True)
class PropertyInfo:
    """Resolved property: declared name, Python type and whether it is embedded."""

    name: str
    type: Any
    embedded: bool = False


@runtime_checkable
class EntityMetadata(Protocol):
    """Port supplying entity structure to the parser and the keyset engine."""

    def property_names(self, entity: type) -> list[str]: ...

    def resolve_property(self, entity: type, name: str) -> PropertyInfo | None: ...

    def identifier_property(self, entity: type) -> PropertyPath: ...

    def is_unique(self, entity: type, path: PropertyPath) -> bool: ...


def resolve_path(metadata: EntityMetadata, entity: type, path: str | PropertyPath) -> PropertyPath:
    """Validate a caller-supplied dotted path segment by segment.

    Raises:
        InvalidPropertyException: when a segment does not exist on the type
            reached by the previous segment.
    """
    path = PropertyPath.of(path)
    current = entity
    for index, segment in enumerate(path.segments):
        info = metadata.resolve_property(current, segment)
        if info is None:
            raise InvalidPropertyException(
                f"'{segment}' is not a property of {getattr(current, '__name__', current)} (path '{path}')",
                context={"entity": entity.__name__, "path": str(path)},
            )
        if index < len(path.segments) - 1:
            if not info.embedded:
                raise InvalidPropertyException(
                    f"'{segment}' is not an embedded type, cannot traverse '{path}'",
                    context={"entity": entity.__name__, "path": str(path)},
                )
            current = info.type
    return path


# ---------------------------------------------------------------------------
# Dataclass provider
# ---------------------------------------------------------------------------

ID_MARKER = "id"
UNIQUE_MARKER = "unique"


def _unwrap_optional(tp: Any) -> Any:
    origin = get_origin(tp)
    if origin is Union or origin is types.UnionType:
        args = [a for a in get_args(tp) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return tp


class DataclassMetadata:
    """Metadata provider reading dataclass fields and their type hints.

    A field whose type is itself a dataclass is treated as embedded. The
    identifier is the field declared with ``field(metadata={"id": True})``,
    or the field named ``id``. Unique keys are declared with
    ``field(metadata={"unique": True})``.

    Usage::

        @dataclass
        class Person:
            ssn: str = field(metadata={"id": True})
            email: str = field(metadata={"unique": True})
            address: Address | None = None
    """

    def __init__(self) -> None:
        self._hints: dict[type, dict[str, Any]] = {}

    def _fields(self, entity: type) -> dict[str, Any]:
        hints = self._hints.get(entity)
        if hints is None:
            raw = get_type_hints(entity)
            hints = {
                name: _unwrap_optional(tp)
                for name, tp in raw.items()
                if not name.startswith("_") and get_origin(tp) is not ClassVar and tp is not ClassVar
            }
            self._hints[entity] = hints
        return hints

    def property_names(self, entity: type) -> list[str]:
        return list(self._fields(entity))

    def resolve_property(self, entity: type, name: str) -> PropertyInfo | None:
        tp = self._fields(entity).get(name)
        if tp is None:
            return None
        embedded = isinstance(tp, type) and dataclasses.is_dataclass(tp)
        return PropertyInfo(name=name, type=tp, embedded=embedded)

    def identifier_property(self, entity: type) -> PropertyPath:
        for name in self._fields(entity):
            if self._marker(entity, name, ID_MARKER):
                return PropertyPath((name,))
        if "id" in self._fields(entity):
            return PropertyPath(("id",))
        raise InvalidPropertyException(
            f"{entity.__name__} declares no identifier property",
            context={"entity": entity.__name__},
        )

    def is_unique(self, entity: type, path: PropertyPath) -> bool:
        try:
            if path == self.identifier_property(entity):
                return True
        except InvalidPropertyException:
            pass
        owner = entity
        for segment in path.segments[:-1]:
            info = self.resolve_property(owner, segment)
            if info is None or not info.embedded:
                return False
            owner = info.type
        # A unique key inside an embedded value is only unique per owner row.
        return len(path.segments) == 1 and self._marker(owner, path.leaf, UNIQUE_MARKER)

    @staticmethod
    def _marker(entity: type, name: str, marker: str) -> bool:
        if not dataclasses.is_dataclass(entity):
            return False
        for f in dataclasses.fields(entity):
            if f.name == name:
                return bool(f.metadata.get(marker, False))
        return False

