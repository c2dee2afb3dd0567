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
"""Query plans and the declaration-time plan builder.

A :class:`QueryPlan` is everything the engine knows about one repository
method once its declaration has been validated: the result shape, the
predicate tree (or explicit query text), the static sort and the layout of
its parameters. Plans are immutable and built once per method; every
declaration error is raised by :meth:`QueryPlanBuilder.build`.
"""

from __future__ import annotations

import inspect
import logging
import re
import typing
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, get_args, get_origin

from keyquery.data.keyset import KeysetPaginator
from keyquery.data.metadata import EntityMetadata, resolve_path
from keyquery.data.pageable import Limit, PageRequest, Sort, SortCriterion
from keyquery.data.predicate import Predicate, validate_arity
from keyquery.data.query import query_text_of, static_sort_of
from keyquery.data.query_parser import MethodNameParser, Subject
from keyquery.data.sort_resolver import SortResolver
from keyquery.kernel.exceptions import ArityMismatchException

_logger = logging.getLogger(__name__)

_NAMED_PARAM_RE = re.compile(r"(?<!:):([A-Za-z_]\w*)")

_MISSING: Any = inspect.Parameter.empty


class ResultShape(str, Enum):
    """What a query method returns, chosen from its subject and return annotation."""

    COUNT = "count"
    EXISTS = "exists"
    DELETE = "delete"
    SINGLE = "single"
    MANY = "many"
    PAGE = "page"


class ParameterKind(str, Enum):
    OPERAND = "operand"
    LIMIT = "limit"
    SORT = "sort"
    PAGE = "page"


_SPECIAL_TYPES: dict[Any, ParameterKind] = {
    Limit: ParameterKind.LIMIT,
    Sort: ParameterKind.SORT,
    PageRequest: ParameterKind.PAGE,
}
_SPECIAL_NAMES: dict[str, ParameterKind] = {
    "limit": ParameterKind.LIMIT,
    "sort": ParameterKind.SORT,
    "page_request": ParameterKind.PAGE,
    "pageable": ParameterKind.PAGE,
}
_MANY_HEADS = frozenset({"list", "List", "Sequence", "Iterable", "tuple", "Tuple", "Collection"})


@dataclass(frozen=True)
class BoundArguments:
    """Invocation arguments split into predicate operands and special parameters."""

    operands: tuple[Any, ...]
    limit: Limit | None = None
    sort: Sort | None = None
    page_request: PageRequest | None = None

    def named_operands(self, names: Sequence[str]) -> dict[str, Any]:
        return dict(zip(names, self.operands, strict=True))


@dataclass(frozen=True)
class ParameterLayout:
    """Declared parameters of a query method, in declaration order (``self`` excluded)."""

    names: tuple[str, ...] = ()
    kinds: tuple[ParameterKind, ...] = ()
    defaults: tuple[Any, ...] = ()

    @property
    def operand_names(self) -> tuple[str, ...]:
        return tuple(n for n, k in zip(self.names, self.kinds, strict=True) if k is ParameterKind.OPERAND)

    def count(self, kind: ParameterKind) -> int:
        return sum(1 for k in self.kinds if k is kind)

    def bind(self, args: Sequence[Any], kwargs: Mapping[str, Any] | None = None) -> BoundArguments:
        """Match call arguments to declared parameters and split them by kind.

        Raises:
            TypeError: too many, missing or unexpected arguments.
        """
        kwargs = dict(kwargs or {})
        if len(args) > len(self.names):
            raise TypeError(f"expected at most {len(self.names)} arguments, got {len(args)}")
        values = list(args)
        rest = zip(self.names[len(args) :], self.kinds[len(args) :], self.defaults[len(args) :], strict=True)
        for name, kind, default in rest:
            if name in kwargs:
                values.append(kwargs.pop(name))
            elif default is not _MISSING:
                values.append(default)
            elif kind is not ParameterKind.OPERAND:
                values.append(None)
            else:
                raise TypeError(f"missing required argument '{name}'")
        if kwargs:
            raise TypeError(f"unexpected argument(s): {sorted(kwargs)}")

        operands: list[Any] = []
        special: dict[ParameterKind, Any] = {}
        for kind, value in zip(self.kinds, values, strict=True):
            if kind is ParameterKind.OPERAND:
                operands.append(value)
            else:
                special[kind] = value
        return BoundArguments(
            operands=tuple(operands),
            limit=special.get(ParameterKind.LIMIT),
            sort=special.get(ParameterKind.SORT),
            page_request=special.get(ParameterKind.PAGE),
        )


@dataclass(frozen=True)
class QueryPlan:
    """Immutable, provider-neutral description of one repository method.

    Exactly one of ``predicate``-based derivation or ``query_text`` applies:
    a method with query text has no predicate, while a derived method with
    no criteria (``findByOrderByName``) has neither.
    """

    entity: type
    method: str
    subject: Subject
    shape: ResultShape
    parameters: ParameterLayout = field(default_factory=ParameterLayout)
    predicate: Predicate | None = None
    query_text: str | None = None
    sort: Sort = field(default_factory=Sort)
    first: int | None = None

    @property
    def is_paged(self) -> bool:
        return self.shape is ResultShape.PAGE

    @property
    def is_derived(self) -> bool:
        return self.query_text is None


class QueryPlanBuilder:
    """Compile a declared repository method into a :class:`QueryPlan`.

    Runs every declaration-time check: subject and property resolution,
    operand arity, sort sources and keyset ordering.
    """

    def __init__(
        self,
        metadata: EntityMetadata,
        *,
        parser: MethodNameParser | None = None,
        resolver: SortResolver | None = None,
        paginator: KeysetPaginator | None = None,
    ) -> None:
        self._metadata = metadata
        self._parser = parser or MethodNameParser(metadata)
        self._resolver = resolver or SortResolver()
        self._paginator = paginator or KeysetPaginator(metadata)

    def build(self, entity: type, func: Callable[..., Any], *, name: str | None = None) -> QueryPlan:
        method = name or func.__name__
        layout = self._layout(func, method)

        static = static_sort_of(func)
        if static is not None:
            static = Sort(tuple(self._canonical(entity, c) for c in static.criteria))

        text = query_text_of(func)
        sort_params = layout.count(ParameterKind.SORT)
        page_params = layout.count(ParameterKind.PAGE)
        self._resolver.validate_sources(
            method,
            query_text=text,
            static=static,
            sort_parameters=sort_params,
            page_parameters=page_params,
        )
        if page_params and layout.count(ParameterKind.LIMIT):
            raise ArityMismatchException(
                f"{method} declares both a Limit and a PageRequest parameter",
                context={"method": method},
            )

        if text is not None:
            subject = self._subject_of_text(text, func)
            predicate = None
            sort = static or Sort()
            first = None
            self._check_named_parameters(method, text, layout)
        else:
            parsed = self._parser.parse(method, entity, static_sort=static)
            validate_arity(parsed.predicate, layout.operand_names, method=method)
            subject, predicate, sort, first = parsed.subject, parsed.predicate, parsed.sort, parsed.first

        shape = self._shape(method, subject, func, page_params > 0)
        if shape is ResultShape.PAGE and sort:
            self._paginator.require_unique(entity, sort, method=method)

        plan = QueryPlan(
            entity=entity,
            method=method,
            subject=subject,
            shape=shape,
            parameters=layout,
            predicate=predicate,
            query_text=text,
            sort=sort,
            first=first,
        )
        _logger.debug(
            "Built query plan for %s.%s: shape=%s predicate=%s sort=[%s]",
            entity.__name__,
            method,
            shape.value,
            predicate,
            ", ".join(str(c) for c in sort.criteria),
        )
        return plan

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def _layout(self, func: Callable[..., Any], method: str) -> ParameterLayout:
        """Classify declared parameters; special parameters must trail the operands."""
        hints = self._hints(func)
        names: list[str] = []
        kinds: list[ParameterKind] = []
        defaults: list[Any] = []
        params = list(inspect.signature(func).parameters.values())
        if params and params[0].name in ("self", "cls"):
            params = params[1:]
        for param in params:
            if param.kind in (inspect.Parameter.VAR_POSITIONAL, inspect.Parameter.VAR_KEYWORD):
                raise ArityMismatchException(
                    f"{method} must declare its parameters explicitly, not *{param.name}",
                    context={"method": method},
                )
            kind = self._kind(param.name, hints.get(param.name, param.annotation))
            if kind is ParameterKind.OPERAND and any(k is not ParameterKind.OPERAND for k in kinds):
                raise ArityMismatchException(
                    f"{method}: parameter '{param.name}' follows a Limit/Sort/PageRequest parameter",
                    context={"method": method, "parameter": param.name},
                )
            names.append(param.name)
            kinds.append(kind)
            defaults.append(param.default)
        return ParameterLayout(names=tuple(names), kinds=tuple(kinds), defaults=tuple(defaults))

    @staticmethod
    def _hints(func: Callable[..., Any]) -> dict[str, Any]:
        # Locally declared entity types cannot be resolved; fall back to the
        # raw (possibly string) annotations.
        try:
            return typing.get_type_hints(func)
        except (NameError, TypeError):
            return dict(getattr(func, "__annotations__", {}))

    @staticmethod
    def _kind(name: str, annotation: Any) -> ParameterKind:
        if isinstance(annotation, str):
            head = annotation.replace("Optional[", "").replace("| None", "").strip(" ]").rsplit(".", 1)[-1]
            for tp, kind in _SPECIAL_TYPES.items():
                if head == tp.__name__:
                    return kind
        elif annotation is not _MISSING:
            candidates = [annotation, *get_args(annotation)]
            for tp, kind in _SPECIAL_TYPES.items():
                if tp in candidates:
                    return kind
        else:
            return _SPECIAL_NAMES.get(name, ParameterKind.OPERAND)
        return ParameterKind.OPERAND

    @staticmethod
    def _check_named_parameters(method: str, text: str, layout: ParameterLayout) -> None:
        missing = sorted(set(_NAMED_PARAM_RE.findall(text)) - set(layout.operand_names))
        if missing:
            raise ArityMismatchException(
                f"{method} query text references undeclared parameter(s) {missing}",
                context={"method": method, "missing": missing},
            )

    # ------------------------------------------------------------------
    # Sort and shape
    # ------------------------------------------------------------------

    def _canonical(self, entity: type, criterion: SortCriterion) -> SortCriterion:
        path = resolve_path(self._metadata, entity, criterion.property)
        return SortCriterion(path, criterion.direction, criterion.ignore_case)

    def _subject_of_text(self, text: str, func: Callable[..., Any]) -> Subject:
        """Subject of an explicit query: DELETE statements delete, otherwise the return type decides."""
        normalized = text.strip().upper()
        if normalized.startswith("DELETE"):
            return Subject.DELETE
        head = self._return_head(func)
        if head == "bool":
            return Subject.EXISTS
        if head == "int":
            return Subject.COUNT
        if head is None and normalized.startswith("SELECT COUNT"):
            return Subject.COUNT
        return Subject.FIND

    def _shape(self, method: str, subject: Subject, func: Callable[..., Any], has_page: bool) -> ResultShape:
        if subject is not Subject.FIND:
            if has_page:
                raise ArityMismatchException(
                    f"{method}: only find methods accept a PageRequest parameter",
                    context={"method": method},
                )
            return ResultShape(subject.value)

        returns_page = self._return_head(func) == "PageResult"
        if returns_page != has_page:
            raise ArityMismatchException(
                f"{method}: a PageResult return type and a PageRequest parameter must be declared together",
                context={"method": method},
            )
        if has_page:
            return ResultShape.PAGE
        head = self._return_head(func)
        if head is None or head in _MANY_HEADS:
            return ResultShape.MANY
        return ResultShape.SINGLE

    def _return_head(self, func: Callable[..., Any]) -> str | None:
        annotation = self._hints(func).get("return", _MISSING)
        if annotation is _MISSING or annotation is None:
            return None
        if isinstance(annotation, str):
            return annotation.split("[", 1)[0].strip().rsplit(".", 1)[-1]
        origin = get_origin(annotation) or annotation
        return getattr(origin, "__name__", None) or repr(origin)
