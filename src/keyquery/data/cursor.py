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
"""Keyset cursor: the last observed sort-key values of a page.

A cursor is an immutable, ordered list of ``(property path, value)`` pairs,
one per sort criterion. For transport across process or page-link
boundaries it converts to a flat list of typed entries::

    [["lastName", "str", "A"], ["id", "int", 2]]

and to an opaque URL-safe token wrapping that list. Both forms restore an
equal cursor, value types included. Enum members are stored by
module, class and member name and are rebuilt on decode.
"""

from __future__ import annotations

import base64
import binascii
import datetime as dt
import importlib
import json
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any

from keyquery.data.metadata import PropertyPath
from keyquery.data.pageable import Sort
from keyquery.kernel.exceptions import InvalidCursorException


def _encode_enum(member: Enum) -> str:
    cls = type(member)
    if "<locals>" in cls.__qualname__:
        raise InvalidCursorException(
            f"Enum {cls.__qualname__} is not importable and cannot be stored in a cursor",
            context={"type": cls.__qualname__},
        )
    return f"{cls.__module__}:{cls.__qualname__}.{member.name}"


def _decode_enum(raw: str) -> Enum:
    module_name, _, dotted = raw.partition(":")
    qualname, _, name = dotted.rpartition(".")
    target: Any = importlib.import_module(module_name)
    for part in qualname.split("."):
        target = getattr(target, part)
    if not (isinstance(target, type) and issubclass(target, Enum)):
        raise TypeError(f"{qualname} is not an Enum")
    return target[name]


# Type tag -> (python type, encoder, decoder). ``enum`` comes first so
# str/int enums keep their class; ``bool`` precedes ``int`` and ``datetime``
# precedes ``date`` because of subclassing.
_CODECS: list[tuple[str, type, Callable[[Any], Any], Callable[[Any], Any]]] = [
    ("enum", Enum, _encode_enum, _decode_enum),
    ("bool", bool, lambda v: v, bool),
    ("int", int, lambda v: v, int),
    ("float", float, repr, float),
    ("str", str, lambda v: v, str),
    ("decimal", Decimal, str, Decimal),
    ("datetime", dt.datetime, lambda v: v.isoformat(), dt.datetime.fromisoformat),
    ("date", dt.date, lambda v: v.isoformat(), dt.date.fromisoformat),
    ("time", dt.time, lambda v: v.isoformat(), dt.time.fromisoformat),
    ("uuid", uuid.UUID, str, uuid.UUID),
    ("bytes", bytes, lambda v: base64.b64encode(v).decode("ascii"), lambda v: base64.b64decode(v)),
]
_DECODERS = {tag: decode for tag, _, _, decode in _CODECS}


def _encode_value(value: Any) -> tuple[str, Any]:
    if value is None:
        return "none", None
    for tag, tp, encode, _ in _CODECS:
        if isinstance(value, tp):
            return tag, encode(value)
    raise InvalidCursorException(
        f"Cursor values of type {type(value).__name__} cannot be serialized",
        context={"type": type(value).__name__},
    )


def _decode_value(tag: str, raw: Any) -> Any:
    if tag == "none":
        return None
    decoder = _DECODERS.get(tag)
    if decoder is None:
        raise InvalidCursorException(f"Unknown cursor value type '{tag}'", context={"type": tag})
    try:
        return decoder(raw)
    except (TypeError, ValueError, KeyError, AttributeError, ImportError, binascii.Error) as exc:
        raise InvalidCursorException(f"Malformed cursor value {raw!r} for type '{tag}'") from exc


@dataclass(frozen=True)
class KeysetCursor:
    """Ordered ``(property path, last observed value)`` pairs."""

    entries: tuple[tuple[PropertyPath, Any], ...]

    def __post_init__(self) -> None:
        if not self.entries:
            raise InvalidCursorException("A keyset cursor needs at least one key")

    @staticmethod
    def of(**values: Any) -> KeysetCursor:
        """Build a cursor from keyword pairs in sort order: ``KeysetCursor.of(lastName="A", id=2)``."""
        return KeysetCursor(tuple((PropertyPath.of(k), v) for k, v in values.items()))

    @staticmethod
    def from_item(sort: Sort, item: Any) -> KeysetCursor:
        """Capture the sort-key values of *item*, in sort order."""
        return KeysetCursor(tuple((c.property, c.property.value_of(item)) for c in sort.criteria))

    @property
    def paths(self) -> tuple[PropertyPath, ...]:
        return tuple(path for path, _ in self.entries)

    @property
    def values(self) -> tuple[Any, ...]:
        return tuple(value for _, value in self.entries)

    def matches(self, sort: Sort) -> bool:
        """Whether this cursor was taken for exactly the criteria of *sort*."""
        return self.paths == sort.paths

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_list(self) -> list[list[Any]]:
        """Flatten to ``[[path, type tag, encoded value], ...]`` (JSON-safe)."""
        flat: list[list[Any]] = []
        for path, value in self.entries:
            tag, raw = _encode_value(value)
            flat.append([str(path), tag, raw])
        return flat

    @staticmethod
    def from_list(flat: Sequence[Sequence[Any]]) -> KeysetCursor:
        entries = []
        for entry in flat:
            if len(entry) != 3 or not isinstance(entry[0], str) or not isinstance(entry[1], str):
                raise InvalidCursorException(f"Malformed cursor entry {entry!r}")
            path, tag, raw = entry
            entries.append((PropertyPath.of(path), _decode_value(tag, raw)))
        return KeysetCursor(tuple(entries))

    def encode(self) -> str:
        """Opaque URL-safe token for page links."""
        payload = json.dumps(self.to_list(), separators=(",", ":")).encode("utf-8")
        return base64.urlsafe_b64encode(payload).decode("ascii").rstrip("=")

    @staticmethod
    def decode(token: str) -> KeysetCursor:
        padded = token + "=" * (-len(token) % 4)
        try:
            flat = json.loads(base64.urlsafe_b64decode(padded.encode("ascii")))
        except (ValueError, binascii.Error) as exc:
            raise InvalidCursorException("Cursor token is not valid") from exc
        if not isinstance(flat, list):
            raise InvalidCursorException("Cursor token is not valid")
        return KeysetCursor.from_list(flat)

    def __str__(self) -> str:
        return ", ".join(f"{path}={value!r}" for path, value in self.entries)
