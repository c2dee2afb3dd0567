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
"""keyquery Data: query derivation and keyset pagination for repositories.

Shared abstractions (method-name parser, predicate tree, sort resolver,
keyset engine, query plans) are exported directly. Rendering backends live
under ``keyquery.data.adapters``; the in-memory backend is re-exported for
convenience.
"""

from keyquery.data.adapters.memory import InMemoryBackend
from keyquery.data.cursor import KeysetCursor
from keyquery.data.execution import QueryDispatcher
from keyquery.data.keyset import KeysetPaginator, KeysetQuery
from keyquery.data.metadata import DataclassMetadata, EntityMetadata, PropertyInfo, PropertyPath
from keyquery.data.page import PageResult, TraversalState
from keyquery.data.pageable import Direction, Limit, PageRequest, Sort, SortCriterion, TraversalDirection
from keyquery.data.plan import QueryPlan, QueryPlanBuilder, ResultShape
from keyquery.data.ports.backend import QueryBackendPort, QueryExecution
from keyquery.data.predicate import And, Clause, Connector, Operator, Or, Predicate, build_predicate
from keyquery.data.properties import KeysetProperties
from keyquery.data.query import order_by, query
from keyquery.data.query_parser import MethodNameParser, ParsedMethod, Subject
from keyquery.data.registry import QueryMethodRegistry
from keyquery.data.repository import Repository, RepositoryPostProcessor
from keyquery.data.sort_resolver import SortResolver

__all__ = [
    # Model
    "Direction",
    "KeysetCursor",
    "Limit",
    "PageRequest",
    "PageResult",
    "PropertyInfo",
    "PropertyPath",
    "Sort",
    "SortCriterion",
    "TraversalDirection",
    "TraversalState",
    # Metadata
    "DataclassMetadata",
    "EntityMetadata",
    # Predicates and parsing
    "And",
    "Clause",
    "Connector",
    "MethodNameParser",
    "Operator",
    "Or",
    "ParsedMethod",
    "Predicate",
    "Subject",
    "build_predicate",
    # Plans and execution
    "KeysetPaginator",
    "KeysetProperties",
    "KeysetQuery",
    "QueryDispatcher",
    "QueryMethodRegistry",
    "QueryPlan",
    "QueryPlanBuilder",
    "ResultShape",
    "SortResolver",
    # Declarations
    "order_by",
    "query",
    # Repositories and backends
    "InMemoryBackend",
    "QueryBackendPort",
    "QueryExecution",
    "Repository",
    "RepositoryPostProcessor",
]
