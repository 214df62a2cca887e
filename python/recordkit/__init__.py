"""RecordKit - an active-record ORM with a fluent query builder."""

from __future__ import annotations

from recordkit.base import Model, Pivot, accessor, mutator
from recordkit.casts import Cast, CastKind
from recordkit.config import DatabaseConfig
from recordkit.connection import Connection, SQLiteConnection, create_connection, transaction
from recordkit.exceptions import (
    ExecutionError,
    MassAssignmentError,
    MissingConnectionError,
    ModelNotFoundError,
    QueryCompilationError,
    RecordKitError,
    RelationContractError,
)
from recordkit.query import QueryBuilder
from recordkit.relationships import (
    BelongsTo,
    BelongsToMany,
    HasMany,
    HasOne,
    Relation,
    eager_load,
    relationship,
)
from recordkit.session import Query, Session, create_session

__version__ = "0.1.0"

__all__ = [
    # Core
    "create_connection",
    "create_session",
    "transaction",
    "Connection",
    "SQLiteConnection",
    "DatabaseConfig",
    "Session",
    "Query",
    "QueryBuilder",
    # Model definition
    "Model",
    "Pivot",
    "accessor",
    "mutator",
    "Cast",
    "CastKind",
    # Relationships
    "relationship",
    "Relation",
    "HasOne",
    "HasMany",
    "BelongsTo",
    "BelongsToMany",
    "eager_load",
    # Errors
    "RecordKitError",
    "MassAssignmentError",
    "QueryCompilationError",
    "ExecutionError",
    "RelationContractError",
    "ModelNotFoundError",
    "MissingConnectionError",
]
