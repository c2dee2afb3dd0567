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
"""Derived query method parser.

Parses method names like ``findByNameLikeAndPriceLessThanOrderByPriceDesc``
into a :class:`ParsedMethod`: the subject, a predicate tree and a static sort.
Property tokens are resolved against :class:`EntityMetadata` while parsing,
so every error surfaces when the method is declared, not when it is called.

Grammar
-------
**Subjects:** ``findBy``, ``findFirstBy``, ``findFirst<N>By``, ``countBy``,
``existsBy``, ``deleteBy``

**Connectors:** ``And``, ``Or`` (``And`` binds tighter)

**Operators (suffix on property):**
    - *(none)* = equals
    - ``GreaterThan`` / ``GreaterThanEqual`` / ``LessThan`` / ``LessThanEqual``
    - ``Between`` (takes 2 args)
    - ``Like`` / ``StartsWith`` / ``EndsWith`` / ``Contains``
    - ``In`` (takes a collection arg)
    - ``Null`` / ``True`` / ``False`` / ``Empty`` (no arg), optionally ``Is``-prefixed

**Modifiers:** ``Not`` before the operator, ``IgnoreCase`` before or after it.

**Property paths:** ``Address_ZipCode`` is explicit; ``AddressZipCode``
is resolved by longest match into embedded types.

**Ordering suffix:** ``OrderBy<Property>[IgnoreCase](Asc|Desc)`` (can chain)

The same grammar is accepted in snake_case, where ``_`` separates words and
``__`` separates embedded path segments::

    find_by_address__zip_code_order_by_last_name_desc

Example::

    parser = MethodNameParser(DataclassMetadata())
    parsed = parser.parse("findByStatusAndRoleOrderByNameDesc", User)
"""

from __future__ import annotations

import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from enum import Enum

from keyquery.data.metadata import EntityMetadata, PropertyInfo, PropertyPath
from keyquery.data.pageable import Direction, Sort, SortCriterion
from keyquery.data.predicate import Clause, Connector, Operator, Predicate, build_predicate
from keyquery.kernel.exceptions import (
    AmbiguousPropertyException,
    ConflictingSortSourceException,
    InvalidPropertyException,
    UnsupportedSubjectException,
)


class Subject(str, Enum):
    FIND = "find"
    COUNT = "count"
    EXISTS = "exists"
    DELETE = "delete"


# Path delimiter token produced by the tokenizer for ``_`` (camelCase) or
# ``__`` (snake_case).
DELIM = "_"

# Operator keywords as lowercase word sequences, longest first so that
# ``GreaterThanEqual`` is tried before ``GreaterThan``.
OPERATORS: tuple[tuple[tuple[str, ...], Operator], ...] = (
    (("greater", "than", "equal"), Operator.GREATER_THAN_EQUAL),
    (("less", "than", "equal"), Operator.LESS_THAN_EQUAL),
    (("greater", "than"), Operator.GREATER_THAN),
    (("less", "than"), Operator.LESS_THAN),
    (("starts", "with"), Operator.STARTS_WITH),
    (("ends", "with"), Operator.ENDS_WITH),
    (("contains",), Operator.CONTAINS),
    (("between",), Operator.BETWEEN),
    (("like",), Operator.LIKE),
    (("in",), Operator.IN),
    (("null",), Operator.NULL),
    (("true",), Operator.TRUE),
    (("false",), Operator.FALSE),
    (("empty",), Operator.EMPTY),
)

_IGNORE_CASE = ("ignore", "case")

_CAMEL_SUBJECT_RE = re.compile(r"^(find|count|exists|delete)(?:(First)(\d*))?By(?=[A-Z_]|$)")
_SNAKE_SUBJECT_RE = re.compile(r"^(find|count|exists|delete)(?:_(first)(?:_(\d+))?)?_by(?:_|$)")
_CAMEL_WORD_RE = re.compile(r"[A-Z]+(?=[A-Z][a-z]|\d|\b|$)|[A-Z]?[a-z]+|[A-Z]+|\d+")


def _normalize(name: str) -> str:
    return name.replace("_", "").lower()


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParsedMethod:
    """Result of parsing a query method name.

    Structurally comparable: parsing the same name twice yields equal values.
    """

    name: str
    subject: Subject
    predicate: Predicate | None
    sort: Sort
    first: int | None = None

    @property
    def arity(self) -> int:
        return self.predicate.arity if self.predicate is not None else 0


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


class MethodNameParser:
    """Parse method names into predicate trees and static sorts.

    Examples::

        parse("findByEmail", User)                     -> email = ?
        parse("findByStatusAndRole", User)             -> status = ? AND role = ?
        parse("findByAgeGreaterThan", User)            -> age > ?
        parse("findByNameOrderByCreatedAtDesc", User)  -> name = ? ORDER BY createdAt DESC
        parse("countByActiveTrue", User)               -> count where active = true
        parse("find_by_address__city", User)           -> address.city = ?
    """

    def __init__(self, metadata: EntityMetadata) -> None:
        self._metadata = metadata

    def parse(self, method_name: str, entity: type, *, static_sort: Sort | None = None) -> ParsedMethod:
        """Parse *method_name* against *entity*.

        Args:
            method_name: camelCase or snake_case derived query name.
            entity: Entity type the properties are resolved against.
            static_sort: Sort declared separately (``@order_by``); must not
                coexist with an ``OrderBy`` clause in the name.

        Raises:
            UnsupportedSubjectException: unknown or missing subject prefix.
            InvalidPropertyException: a property token does not resolve.
            AmbiguousPropertyException: a property token resolves more than one way.
            ConflictingSortSourceException: ``OrderBy`` plus a separate static sort.
        """
        subject, first, body = self._split_subject(method_name)
        tokens = self._tokenize(body, snake=self._is_snake(method_name))

        segments, connectors, order_tokens = self._split_segments(tokens, entity)

        clauses: list[Clause] = []
        parameter = 0
        if segments != [[]] or connectors:
            for segment in segments:
                clause = self._parse_clause(segment, entity, parameter, method_name)
                clauses.append(clause)
                parameter += clause.arity

        sort = Sort()
        if order_tokens is not None:
            if static_sort:
                raise ConflictingSortSourceException(
                    f"{method_name} declares OrderBy in its name and a separate static sort",
                    context={"method": method_name},
                )
            sort = self._parse_order(order_tokens, entity, method_name)
        elif static_sort is not None:
            sort = static_sort

        return ParsedMethod(
            name=method_name,
            subject=subject,
            predicate=build_predicate(clauses, connectors),
            sort=sort,
            first=first,
        )

    # ------------------------------------------------------------------
    # Tokenizing
    # ------------------------------------------------------------------

    @staticmethod
    def _is_snake(method_name: str) -> bool:
        return method_name == method_name.lower()

    @classmethod
    def _split_subject(cls, method_name: str) -> tuple[Subject, int | None, str]:
        match = (_SNAKE_SUBJECT_RE if cls._is_snake(method_name) else _CAMEL_SUBJECT_RE).match(method_name)
        if match is None:
            raise UnsupportedSubjectException(
                f"Method name must start with findBy, countBy, existsBy or deleteBy: {method_name}",
                context={"method": method_name},
            )
        subject = Subject(match.group(1))
        first: int | None = None
        if match.group(2):
            if subject is not Subject.FIND:
                raise UnsupportedSubjectException(
                    f"First is only supported on find methods: {method_name}",
                    context={"method": method_name},
                )
            first = int(match.group(3)) if match.group(3) else 1
            if first < 1:
                raise UnsupportedSubjectException(f"First must be positive: {method_name}")
        return subject, first, method_name[match.end() :]

    @staticmethod
    def _tokenize(body: str, *, snake: bool) -> list[str]:
        """Split *body* into lowercase words and :data:`DELIM` markers."""
        tokens: list[str] = []
        if snake:
            for part in body.split("_"):
                tokens.append(part if part else DELIM)
            return [t for t in tokens if t]
        for index, chunk in enumerate(body.split("_")):
            if index:
                tokens.append(DELIM)
            tokens.extend(word.lower() for word in _CAMEL_WORD_RE.findall(chunk))
        return tokens

    def _split_segments(
        self, tokens: list[str], entity: type
    ) -> tuple[list[list[str]], list[Connector], list[str] | None]:
        """Split tokens on And/Or connectors and the OrderBy suffix.

        A connector word is only a connector when no known property name
        covers it: ``findByColorOrSize`` on an entity with a ``colorOrSize``
        property is one equality clause, not two.
        """
        keys = self._known_keys(entity)
        segments: list[list[str]] = []
        connectors: list[Connector] = []
        order_tokens: list[str] | None = None
        start = p = 0
        while p < len(tokens):
            if tokens[p] == "order" and p + 1 < len(tokens) and tokens[p + 1] == "by":
                order_tokens = tokens[p + 2 :]
                break
            end = self._longest_key_match(tokens, p, keys)
            if end is not None and tokens[end - 1] == "order" and end < len(tokens) and tokens[end] == "by":
                end -= 1
            if end is not None and end > p:
                p = end
                continue
            if tokens[p] in ("and", "or") and p > start:
                segments.append(tokens[start:p])
                connectors.append(Connector(tokens[p]))
                start = p = p + 1
                continue
            p += 1
        segments.append(tokens[start:p])
        return segments, connectors, order_tokens

    @staticmethod
    def _longest_key_match(tokens: Sequence[str], start: int, keys: set[str]) -> int | None:
        end = start
        while end < len(tokens) and tokens[end] != DELIM:
            end += 1
        for stop in range(end, start, -1):
            if "".join(tokens[start:stop]) in keys:
                return stop
        return None

    def _known_keys(self, entity: type) -> set[str]:
        """Normalized names of every property reachable from *entity*."""
        keys: set[str] = set()
        pending = [entity]
        visited: set[type] = set()
        while pending:
            owner = pending.pop()
            if owner in visited:
                continue
            visited.add(owner)
            for name in self._metadata.property_names(owner):
                keys.add(_normalize(name))
                info = self._metadata.resolve_property(owner, name)
                if info is not None and info.embedded:
                    pending.append(info.type)
        return keys

    # ------------------------------------------------------------------
    # Clauses
    # ------------------------------------------------------------------

    def _parse_clause(self, words: list[str], entity: type, parameter: int, method_name: str) -> Clause:
        """Peel operator keywords off *words* and resolve the residual property."""
        if not words:
            raise InvalidPropertyException(
                f"{method_name} has an empty property expression",
                context={"method": method_name},
            )

        # A property whose name ends in a keyword wins over the keyword.
        whole = self._candidates(entity, words)
        if len(whole) == 1:
            return Clause(path=whole[0], parameter=parameter)

        residual = list(words)
        ignore_case = self._strip_suffix(residual, _IGNORE_CASE)
        operator = Operator.EQUAL
        for keyword, candidate in OPERATORS:
            if self._strip_suffix(residual, keyword):
                operator = candidate
                break
        negated = self._strip_suffix(residual, ("not",))
        self._strip_suffix(residual, ("is",))
        ignore_case = self._strip_suffix(residual, _IGNORE_CASE) or ignore_case

        path = self._resolve(entity, residual, method_name)
        return Clause(
            path=path,
            operator=operator,
            ignore_case=ignore_case,
            negated=negated,
            parameter=parameter if operator.arity else None,
        )

    @staticmethod
    def _strip_suffix(words: list[str], suffix: tuple[str, ...]) -> bool:
        """Remove *suffix* from *words* in place if it ends them and leaves something behind."""
        n = len(suffix)
        if len(words) > n and tuple(words[-n:]) == suffix:
            del words[-n:]
            return True
        return False

    # ------------------------------------------------------------------
    # Property resolution
    # ------------------------------------------------------------------

    def _resolve(self, entity: type, words: list[str], method_name: str) -> PropertyPath:
        """Resolve a property token to exactly one path or raise."""
        candidates = self._candidates(entity, words)
        token = self._display(words)
        if not candidates:
            raise InvalidPropertyException(
                f"{method_name}: '{token}' is not a property of {entity.__name__}",
                context={"method": method_name, "entity": entity.__name__, "token": token},
            )
        if len(candidates) > 1:
            options = sorted(str(c) for c in candidates)
            raise AmbiguousPropertyException(
                f"{method_name}: '{token}' matches several properties of {entity.__name__}: {options}; "
                f"use '_' to separate path segments",
                context={"method": method_name, "entity": entity.__name__, "token": token, "candidates": options},
            )
        return candidates[0]

    def _candidates(self, entity: type, words: list[str]) -> list[PropertyPath]:
        """All paths *words* can denote, in resolution order.

        1. The whole token as one property (case-insensitive) is accepted alone.
        2. A ``_``-delimited token is resolved segment by segment, strictly.
        3. Otherwise every split into embedded types is collected.
        """
        if DELIM in words:
            return self._delimited(entity, words)
        info = self._match(entity, "".join(words), root=True)
        if info is not None:
            return [PropertyPath((info.name,))]
        return [PropertyPath(segments) for segments in self._splits(entity, words, root=True)]

    def _delimited(self, entity: type, words: list[str]) -> list[PropertyPath]:
        groups: list[list[str]] = [[]]
        for word in words:
            if word == DELIM:
                groups.append([])
            else:
                groups[-1].append(word)
        if any(not g for g in groups):
            return []
        segments: list[str] = []
        owner = entity
        for index, group in enumerate(groups):
            info = self._match(owner, "".join(group), root=index == 0)
            if info is None:
                return []
            segments.append(info.name)
            if index < len(groups) - 1:
                if not info.embedded:
                    return []
                owner = info.type
        return [PropertyPath(tuple(segments))]

    def _splits(self, owner: type, words: Sequence[str], *, root: bool) -> Iterator[tuple[str, ...]]:
        """Yield every resolution of *words* that descends through embedded types."""
        for cut in range(1, len(words)):
            head = self._match(owner, "".join(words[:cut]), root=root)
            if head is None or not head.embedded:
                continue
            tail = words[cut:]
            leaf = self._match(head.type, "".join(tail), root=False)
            if leaf is not None:
                yield (head.name, leaf.name)
            for rest in self._splits(head.type, tail, root=False):
                yield (head.name, *rest)

    def _match(self, owner: type, key: str, *, root: bool) -> PropertyInfo | None:
        """Case-insensitive exact match of a normalized key on *owner*."""
        for name in self._metadata.property_names(owner):
            if _normalize(name) == key:
                return self._metadata.resolve_property(owner, name)
        if root and key == "id":
            try:
                identifier = self._metadata.identifier_property(owner)
            except InvalidPropertyException:
                return None
            if len(identifier.segments) == 1:
                return self._metadata.resolve_property(owner, identifier.leaf)
        return None

    @staticmethod
    def _display(words: Sequence[str]) -> str:
        return "".join(w if w == DELIM else w.capitalize() for w in words)

    # ------------------------------------------------------------------
    # OrderBy
    # ------------------------------------------------------------------

    def _parse_order(self, tokens: list[str], entity: type, method_name: str) -> Sort:
        """Parse ``LastNameAscFirstNameDesc`` style groups into a :class:`Sort`."""
        if not tokens:
            raise InvalidPropertyException(f"{method_name}: OrderBy names no property", context={"method": method_name})

        keys = self._known_keys(entity)
        criteria: list[SortCriterion] = []
        current: list[str] = []

        def close(direction: Direction) -> None:
            words = list(current)
            current.clear()
            ignore_case = self._strip_suffix(words, _IGNORE_CASE)
            if not words:
                raise InvalidPropertyException(
                    f"{method_name}: OrderBy direction without a property",
                    context={"method": method_name},
                )
            path = self._resolve(entity, words, method_name)
            if any(c.property == path for c in criteria):
                raise ConflictingSortSourceException(
                    f"{method_name}: OrderBy lists '{path}' more than once",
                    context={"method": method_name, "property": str(path)},
                )
            criteria.append(SortCriterion(path, direction, ignore_case))

        p = 0
        while p < len(tokens):
            end = self._longest_key_match(tokens, p, keys)
            if end is not None:
                current.extend(tokens[p:end])
                p = end
                continue
            if tokens[p] in ("asc", "desc"):
                close(Direction(tokens[p]))
            else:
                current.append(tokens[p])
            p += 1
        if current:
            close(Direction.ASC)
        return Sort(tuple(criteria))
