"""Database connection contract and the bundled SQLite implementation."""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any, Protocol, runtime_checkable

from recordkit.exceptions import ExecutionError

logger = logging.getLogger(__name__)


@runtime_checkable
class Connection(Protocol):
    """What the query builder needs from a database driver.

    Placeholder syntax, ``LIMIT``/``OFFSET`` support and auto-increment
    retrieval are the implementation's business. The builder always emits
    ``?`` placeholders.
    """

    def execute(self, sql: str, bindings: list[Any] | None = None) -> list[dict[str, Any]]:
        """Run a select statement and return its rows."""
        ...

    def execute_statement(self, sql: str, bindings: list[Any] | None = None) -> int:
        """Run an update/delete statement and return the affected row count."""
        ...

    def insert(self, sql: str, bindings: list[Any] | None = None) -> bool:
        """Run an insert statement."""
        ...

    def last_insert_id(self) -> Any:
        """Return the id generated by the most recent insert."""
        ...

    def begin_transaction(self) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


class SQLiteConnection:
    """Connection backed by the standard library ``sqlite3`` driver.

    Transactions nest: only the outermost ``begin_transaction``/``commit``
    pair reaches SQLite, and an inner ``rollback`` just drops one level.

    Example:
        >>> conn = SQLiteConnection(":memory:")
        >>> _ = conn.execute_statement("CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT)")
        >>> _ = conn.insert("INSERT INTO users (name) VALUES (?)", ["Alice"])
        >>> conn.execute("SELECT * FROM users")
        [{'id': 1, 'name': 'Alice'}]
    """

    def __init__(
        self,
        database: str = ":memory:",
        *,
        timeout: float = 5.0,
        log_queries: bool = False,
    ) -> None:
        self.database = database
        self.log_queries = log_queries
        self._transactions = 0
        self._last_insert_id: Any = None
        # isolation_level=None: autocommit unless we issue BEGIN ourselves
        self._conn = sqlite3.connect(database, timeout=timeout, isolation_level=None)
        self._conn.row_factory = sqlite3.Row
        logger.info("Opened SQLite connection to %s", database)

    def __enter__(self) -> SQLiteConnection:
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<SQLiteConnection {self.database!r}>"

    @property
    def transaction_level(self) -> int:
        return self._transactions

    def in_transaction(self) -> bool:
        return self._transactions > 0

    def execute(self, sql: str, bindings: list[Any] | None = None) -> list[dict[str, Any]]:
        cursor = self._run(sql, bindings)
        return [dict(row) for row in cursor.fetchall()]

    def execute_statement(self, sql: str, bindings: list[Any] | None = None) -> int:
        cursor = self._run(sql, bindings)
        return cursor.rowcount if cursor.rowcount >= 0 else 0

    def insert(self, sql: str, bindings: list[Any] | None = None) -> bool:
        cursor = self._run(sql, bindings)
        self._last_insert_id = cursor.lastrowid
        return True

    def last_insert_id(self) -> Any:
        return self._last_insert_id

    def begin_transaction(self) -> None:
        if self._transactions == 0:
            self._run("BEGIN")
        self._transactions += 1

    def commit(self) -> None:
        if self._transactions == 1:
            self._run("COMMIT")
        self._transactions = max(0, self._transactions - 1)

    def rollback(self) -> None:
        if self._transactions == 1:
            self._run("ROLLBACK")
            self._transactions = 0
        else:
            self._transactions = max(0, self._transactions - 1)

    def close(self) -> None:
        self._conn.close()
        logger.info("Closed SQLite connection to %s", self.database)

    def _run(self, sql: str, bindings: list[Any] | None = None) -> sqlite3.Cursor:
        params = list(bindings or [])
        if self.log_queries:
            logger.debug("Executing SQL: %s | bindings=%r", sql, params)
        try:
            return self._conn.execute(sql, params)
        except sqlite3.Error as exc:
            raise ExecutionError(sql, params, exc) from exc


def create_connection(url: str, **options: Any) -> SQLiteConnection:
    """Create a connection from a database URL.

    Args:
        url: Database URL.
            - ``sqlite::memory:`` or ``sqlite://:memory:`` for an in-memory database
            - ``sqlite:///app.db`` for a path relative to the working directory
            - ``sqlite:////var/data/app.db`` for an absolute path
        **options: Passed through to the connection class (``timeout``,
            ``log_queries``).

    Raises:
        ValueError: If the URL scheme has no bundled driver.

    Example:
        >>> conn = create_connection("sqlite::memory:")
    """
    if url in ("sqlite::memory:", "sqlite://:memory:", "sqlite:///:memory:"):
        return SQLiteConnection(":memory:", **options)
    if url.startswith("sqlite:///"):
        return SQLiteConnection(url[len("sqlite:///"):], **options)
    scheme = url.split(":", 1)[0]
    raise ValueError(f"Unsupported database URL scheme: {scheme!r}")


@contextmanager
def transaction(connection: Connection) -> Iterator[Connection]:
    """Run a block inside a transaction that commits on success.

    Example:
        >>> with transaction(conn):
        ...     Post.create(conn, {"title": "Hello"})
        ...     # commits automatically, rolls back on exception
    """
    connection.begin_transaction()
    try:
        yield connection
    except BaseException:
        logger.warning("Rolling back transaction after error")
        connection.rollback()
        raise
    connection.commit()
