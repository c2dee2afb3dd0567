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
"""Unified exception hierarchy for keyquery.

All engine exceptions inherit from KeyQueryException, enabling unified
error handling across modules.

Categories:
- DeclarationException: a repository method whose declared shape can never
  be executed. Raised once, while the method is being registered.
- CallTimeException: an invocation the backend or the cursor state cannot
  honour. Reported to the caller, never retried.
"""

from __future__ import annotations


# =============================================================================
# Base Exception
# =============================================================================


class KeyQueryException(Exception):
    """Base exception for all keyquery errors.

    Carries an optional error code and context dict for structured error data.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code (e.g. "DECLARATION_INVALID_PROPERTY").
        context: Arbitrary key-value pairs for error context and debugging.
    """

    default_code: str | None = None

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code if code is not None else self.default_code
        self.context: dict = context if context is not None else {}


# =============================================================================
# Declaration Exceptions
# =============================================================================


class DeclarationException(KeyQueryException):
    """The declared query method is structurally invalid."""


class UnsupportedSubjectException(DeclarationException):
    """Method name does not start with a known subject keyword."""

    default_code = "DECLARATION_UNSUPPORTED_SUBJECT"


class InvalidPropertyException(DeclarationException):
    """A property token does not resolve against the entity metadata."""

    default_code = "DECLARATION_INVALID_PROPERTY"


class AmbiguousPropertyException(DeclarationException):
    """A property token resolves to more than one property path."""

    default_code = "DECLARATION_AMBIGUOUS_PROPERTY"


class ArityMismatchException(DeclarationException):
    """Declared parameters do not match the operands the predicate consumes."""

    default_code = "DECLARATION_ARITY_MISMATCH"


class ConflictingSortSourceException(DeclarationException):
    """Sort criteria are supplied by sources that must not coexist."""

    default_code = "DECLARATION_CONFLICTING_SORT_SOURCE"


class ConflictingDynamicSortException(DeclarationException):
    """More than one call-time parameter supplies sort criteria."""

    default_code = "DECLARATION_CONFLICTING_DYNAMIC_SORT"


class PartialOrderingException(DeclarationException):
    """Keyset sort criteria do not include a unique property."""

    default_code = "DECLARATION_PARTIAL_ORDERING"


# =============================================================================
# Call-time Exceptions
# =============================================================================


class CallTimeException(KeyQueryException):
    """An invocation that cannot be honoured."""


class UnsupportedByProviderException(CallTimeException):
    """The execution backend cannot honour a keyword or pagination mode."""

    default_code = "CALL_UNSUPPORTED_BY_PROVIDER"


class EmptyCursorNavigationException(CallTimeException):
    """Navigation was requested from a page that has no cursor."""

    default_code = "CALL_EMPTY_CURSOR_NAVIGATION"


class InvalidCursorException(CallTimeException):
    """A cursor token is malformed or does not match the sort criteria."""

    default_code = "CALL_INVALID_CURSOR"
