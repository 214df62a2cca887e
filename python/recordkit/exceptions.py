"""Exception hierarchy for recordkit.

Every error derives from the built-in type a caller would naturally catch
(``ValueError`` for bad input, ``RuntimeError`` for failed execution, ...)
as well as from :class:`RecordKitError`.
"""

from __future__ import annotations

from typing import Any


class RecordKitError(Exception):
    """Base class for all recordkit errors."""


class MassAssignmentError(RecordKitError, ValueError):
    """A key passed to ``fill()`` is rejected on a totally guarded model."""

    def __init__(self, key: str, model: str) -> None:
        self.key = key
        self.model = model
        super().__init__(f"Add [{key}] to __fillable__ to allow mass assignment on [{model}].")


class QueryCompilationError(RecordKitError, ValueError):
    """The query builder was misused before anything reached the database."""


class ExecutionError(RecordKitError, RuntimeError):
    """A connection call failed.

    Wraps the driver error (available as ``__cause__``) together with the
    exact SQL text and bindings that were sent.
    """

    def __init__(self, sql: str, bindings: list[Any] | None, cause: BaseException) -> None:
        self.sql = sql
        self.bindings = list(bindings or [])
        self.cause = cause
        super().__init__(f"{cause} (SQL: {sql}) (bindings: {self.bindings!r})")


class RelationContractError(RecordKitError, TypeError):
    """A relationship method returned something other than a Relation."""


class ModelNotFoundError(RecordKitError, LookupError):
    """No row matched a ``*_or_fail`` lookup."""

    def __init__(self, model: str, ids: Any = None) -> None:
        self.model = model
        self.ids = ids
        if ids is None:
            super().__init__(f"No query results for model [{model}]")
        else:
            super().__init__(f"No query results for model [{model}] {ids!r}")


class MissingConnectionError(RecordKitError, RuntimeError):
    """A model or query needs a connection but none was injected."""
