"""Fluent query builder that compiles to parameterized SQL."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from recordkit.exceptions import ExecutionError, MissingConnectionError, QueryCompilationError

if TYPE_CHECKING:
    from recordkit.connection import Connection

logger = logging.getLogger(__name__)

# Recognized where-clause operators; anything else passed in the operator
# slot is treated as the value of an implicit "=" comparison.
OPERATORS = frozenset({
    "=", "<", ">", "<=", ">=", "<>", "!=", "<=>",
    "like", "like binary", "not like", "ilike",
    "&", "|", "^", "<<", ">>", "&~", "is", "is not",
    "rlike", "not rlike", "regexp", "not regexp",
    "~", "~*", "!~", "!~*", "similar to",
    "not similar to", "not ilike", "~~*", "!~~*",
})

_MISSING: Any = object()


# ========== Query state ==========

@dataclass(frozen=True)
class BasicWhere:
    """``column operator ?``"""

    column: str
    operator: str
    value: Any
    boolean: str = "and"


@dataclass(frozen=True)
class InWhere:
    """``column [not] in (?, ...)``"""

    column: str
    values: tuple[Any, ...]
    negated: bool = False
    boolean: str = "and"


@dataclass(frozen=True)
class NullWhere:
    """``column is [not] null``"""

    column: str
    negated: bool = False
    boolean: str = "and"


@dataclass(frozen=True)
class BetweenWhere:
    """``column [not] between ? and ?``"""

    column: str
    low: Any
    high: Any
    negated: bool = False
    boolean: str = "and"


@dataclass(frozen=True)
class NestedWhere:
    """A parenthesized group built by a sub-query's where clauses."""

    query: QueryBuilder
    boolean: str = "and"


WhereClause = BasicWhere | InWhere | NullWhere | BetweenWhere | NestedWhere


@dataclass(frozen=True)
class JoinClause:
    """A ``JOIN ... ON first operator second`` clause."""

    kind: str
    table: str
    first: str
    operator: str
    second: str


# ========== Builder ==========

class QueryBuilder:
    """Accumulates select/where/join/order/limit state for one table.

    Chaining methods mutate the builder and return it. A builder is meant
    for a single logical query; use :meth:`clone` to branch.

    Example:
        >>> qb = QueryBuilder(conn, "posts")
        >>> qb.where("status", "=", "published").where("views", ">", 10)
        >>> qb.to_sql()
        'SELECT * FROM posts WHERE status = ? and views > ?'
        >>> qb.get_bindings()
        ['published', 10]
    """

    def __init__(
        self,
        connection: Connection | None,
        table: str | None = None,
        *,
        primary_key: str = "id",
    ) -> None:
        self.connection = connection
        self.primary_key = primary_key
        self.from_: str = table or ""
        self.columns: list[str] = ["*"]
        self.is_distinct = False
        self.wheres: list[WhereClause] = []
        self.joins: list[JoinClause] = []
        self.orders: list[tuple[str, str]] = []
        self.limit_value: int | None = None
        self.offset_value: int | None = None

    def __repr__(self) -> str:
        return f"<QueryBuilder {self.to_sql()!r}>"

    def clone(self) -> QueryBuilder:
        """Return an independent copy of this builder."""
        new = QueryBuilder(self.connection, self.from_, primary_key=self.primary_key)
        new.columns = list(self.columns)
        new.is_distinct = self.is_distinct
        new.wheres = list(self.wheres)
        new.joins = list(self.joins)
        new.orders = list(self.orders)
        new.limit_value = self.limit_value
        new.offset_value = self.offset_value
        return new

    def new_query(self) -> QueryBuilder:
        """Return an empty builder on the same connection."""
        return QueryBuilder(self.connection, primary_key=self.primary_key)

    # ========== Projection ==========

    def table(self, name: str) -> QueryBuilder:
        self.from_ = name
        return self

    def select(self, *columns: str | Iterable[str]) -> QueryBuilder:
        """Replace the projection list.

        Example:
            >>> qb.select("id", "title")
            >>> qb.select(["id", "title"])
        """
        self.columns = _flatten_columns(columns) or ["*"]
        return self

    def add_select(self, *columns: str | Iterable[str]) -> QueryBuilder:
        """Append columns to the projection list."""
        extra = _flatten_columns(columns)
        if self.columns == ["*"]:
            self.columns = extra
        else:
            self.columns = self.columns + extra
        return self

    def distinct(self) -> QueryBuilder:
        self.is_distinct = True
        return self

    # ========== Where clauses ==========

    def where(
        self,
        column: str | Mapping[str, Any] | Callable[[QueryBuilder], Any],
        operator: Any = _MISSING,
        value: Any = _MISSING,
        boolean: str = "and",
    ) -> QueryBuilder:
        """Add a basic where clause.

        ``where(col, value)`` implies ``=``. An unrecognized operator is taken
        as the value of an ``=`` comparison. A mapping adds one equality per
        key inside a single group, and a callable builds a nested group.

        Example:
            >>> qb.where("votes", 100)
            >>> qb.where("votes", ">=", 100)
            >>> qb.where({"status": "published", "featured": True})
            >>> qb.where(lambda q: q.where("a", 1).or_where("b", 2))
        """
        if isinstance(column, Mapping):
            return self._add_mapping_of_wheres(column, boolean)

        if callable(column) and operator is _MISSING:
            return self.where_nested(column, boolean)

        if operator is _MISSING:
            raise QueryCompilationError(f"where() on {column!r} needs a value")

        if value is _MISSING:
            value, operator = operator, "="
        elif _is_illegal_combination(operator, value):
            raise QueryCompilationError("Illegal operator and value combination.")

        if not _is_known_operator(operator):
            value, operator = operator, "="

        operator = operator.lower()

        if value is None:
            return self.where_null(column, boolean, negated=operator != "=")

        self.wheres.append(BasicWhere(column, operator, value, boolean))
        return self

    def or_where(
        self,
        column: str | Mapping[str, Any] | Callable[[QueryBuilder], Any],
        operator: Any = _MISSING,
        value: Any = _MISSING,
    ) -> QueryBuilder:
        return self.where(column, operator, value, "or")

    def where_in(
        self,
        column: str,
        values: Iterable[Any],
        boolean: str = "and",
        negated: bool = False,
    ) -> QueryBuilder:
        """Add ``column in (...)``. An empty list can never match."""
        if isinstance(values, (str, bytes)) or not isinstance(values, Iterable):
            values = [values]
        self.wheres.append(InWhere(column, tuple(values), negated, boolean))
        return self

    def where_not_in(self, column: str, values: Iterable[Any], boolean: str = "and") -> QueryBuilder:
        """Add ``column not in (...)``. An empty list always matches."""
        return self.where_in(column, values, boolean, negated=True)

    def or_where_in(self, column: str, values: Iterable[Any]) -> QueryBuilder:
        return self.where_in(column, values, "or")

    def or_where_not_in(self, column: str, values: Iterable[Any]) -> QueryBuilder:
        return self.where_in(column, values, "or", negated=True)

    def where_null(self, column: str, boolean: str = "and", negated: bool = False) -> QueryBuilder:
        self.wheres.append(NullWhere(column, negated, boolean))
        return self

    def where_not_null(self, column: str, boolean: str = "and") -> QueryBuilder:
        return self.where_null(column, boolean, negated=True)

    def or_where_null(self, column: str) -> QueryBuilder:
        return self.where_null(column, "or")

    def or_where_not_null(self, column: str) -> QueryBuilder:
        return self.where_null(column, "or", negated=True)

    def where_between(
        self,
        column: str,
        low: Any,
        high: Any,
        boolean: str = "and",
        negated: bool = False,
    ) -> QueryBuilder:
        self.wheres.append(BetweenWhere(column, low, high, negated, boolean))
        return self

    def where_not_between(self, column: str, low: Any, high: Any, boolean: str = "and") -> QueryBuilder:
        return self.where_between(column, low, high, boolean, negated=True)

    def where_nested(self, callback: Callable[[QueryBuilder], Any], boolean: str = "and") -> QueryBuilder:
        """Group the clauses added by ``callback`` in parentheses.

        The group is dropped when the callback adds nothing.
        """
        if not callable(callback):
            raise QueryCompilationError(
                f"Nested where expects a callable, got {type(callback).__name__}"
            )
        query = self.new_query().table(self.from_)
        callback(query)
        return self.add_nested_where_query(query, boolean)

    def add_nested_where_query(self, query: QueryBuilder, boolean: str = "and") -> QueryBuilder:
        if query.wheres:
            self.wheres.append(NestedWhere(query, boolean))
        return self

    def _add_mapping_of_wheres(self, pairs: Mapping[str, Any], boolean: str) -> QueryBuilder:
        def add_pairs(query: QueryBuilder) -> None:
            for key, value in pairs.items():
                query.where(key, "=", value)

        return self.where_nested(add_pairs, boolean)

    # ========== Joins ==========

    def join(
        self,
        table: str,
        first: str,
        operator: str | None = None,
        second: str | None = None,
        kind: str = "inner",
    ) -> QueryBuilder:
        """Add a join clause; ``join(table, a, b)`` implies ``a = b``.

        Example:
            >>> qb.join("comments", "posts.id", "comments.post_id")
            >>> qb.join("comments", "posts.id", "=", "comments.post_id")
        """
        if second is None:
            if operator is None:
                raise QueryCompilationError(f"Join on {table!r} needs a second column")
            second, operator = operator, "="
        self.joins.append(JoinClause(kind, table, first, operator or "=", second))
        return self

    def left_join(self, table: str, first: str, operator: str | None = None, second: str | None = None) -> QueryBuilder:
        return self.join(table, first, operator, second, "left")

    def right_join(self, table: str, first: str, operator: str | None = None, second: str | None = None) -> QueryBuilder:
        return self.join(table, first, operator, second, "right")

    # ========== Ordering and paging ==========

    def order_by(self, column: str, direction: str = "asc") -> QueryBuilder:
        normalized = direction.lower() if isinstance(direction, str) else direction
        if normalized not in ("asc", "desc"):
            raise QueryCompilationError('Order direction must be "asc" or "desc".')
        self.orders.append((column, normalized))
        return self

    def order_by_desc(self, column: str) -> QueryBuilder:
        return self.order_by(column, "desc")

    def limit(self, value: int) -> QueryBuilder:
        """Limit the number of rows; zero or negative means none."""
        self.limit_value = value if value > 0 else 0
        return self

    def take(self, value: int) -> QueryBuilder:
        return self.limit(value)

    def offset(self, value: int) -> QueryBuilder:
        self.offset_value = max(0, value)
        return self

    def skip(self, value: int) -> QueryBuilder:
        return self.offset(value)

    # ========== Execution ==========

    def get(self, columns: str | Iterable[str] | None = None) -> list[dict[str, Any]]:
        """Execute as a select and return the rows."""
        if columns is not None:
            flattened = _flatten_columns((columns,))
            if flattened and flattened != ["*"]:
                self.select(flattened)
        sql = self.to_sql()
        bindings = self.get_bindings()
        return self._run(sql, bindings, lambda conn: conn.execute(sql, bindings))

    def first(self, columns: str | Iterable[str] | None = None) -> dict[str, Any] | None:
        rows = self.take(1).get(columns)
        return rows[0] if rows else None

    def find(self, id: Any, columns: str | Iterable[str] | None = None) -> dict[str, Any] | None:
        """Shorthand for ``where(primary_key, "=", id).first()``."""
        return self.where(self.primary_key, "=", id).first(columns)

    def pluck(self, column: str) -> list[Any]:
        """Return the values of a single column.

        Example:
            >>> qb.pluck("title")
            ['Hello', 'World']
        """
        key = column.split(".")[-1]
        return [row.get(key) for row in self.get([column])]

    def count(self, column: str = "*") -> int:
        """Return ``COUNT(column)`` for the current constraints."""
        value = self.aggregate("COUNT", column)
        return int(value) if value is not None else 0

    def exists(self) -> bool:
        return self.count() > 0

    def sum(self, column: str) -> Any:
        return self.aggregate("SUM", column)

    def avg(self, column: str) -> Any:
        return self.aggregate("AVG", column)

    def min(self, column: str) -> Any:
        return self.aggregate("MIN", column)

    def max(self, column: str) -> Any:
        return self.aggregate("MAX", column)

    def aggregate(self, function: str, column: str = "*") -> Any:
        """Run an aggregate, temporarily swapping out the projection."""
        original = self.columns
        self.columns = [f"{function}({column}) as aggregate"]
        try:
            rows = self.get()
        finally:
            self.columns = original
        return rows[0].get("aggregate") if rows else None

    def insert(self, values: Mapping[str, Any] | Iterable[Mapping[str, Any]]) -> bool:
        """Insert one row or a list of rows, one statement per row.

        Example:
            >>> qb.insert({"title": "Hello"})
            >>> qb.insert([{"title": "Hello"}, {"title": "World"}])
        """
        records = _normalize_records(values)
        if not records:
            return True
        for record in records:
            sql = self.compile_insert(list(record.keys()))
            bindings = list(record.values())
            self._run(sql, bindings, lambda conn, s=sql, b=bindings: conn.insert(s, b))
        return True

    def insert_get_id(self, values: Mapping[str, Any]) -> Any:
        """Insert a single row and return the generated key."""
        columns = list(values.keys())
        sql = self.compile_insert(columns)
        bindings = list(values.values())

        def run(conn: Connection) -> Any:
            conn.insert(sql, bindings)
            return conn.last_insert_id()

        return self._run(sql, bindings, run)

    def update(self, values: Mapping[str, Any]) -> int:
        """Update matching rows; returns the affected row count."""
        if not values:
            return 0
        sql = self.compile_update(values)
        bindings = [*values.values(), *self.get_bindings()]
        return self._run(sql, bindings, lambda conn: conn.execute_statement(sql, bindings))

    def delete(self) -> int:
        """Delete matching rows; returns the affected row count."""
        sql = self.compile_delete()
        bindings = self.get_bindings()
        return self._run(sql, bindings, lambda conn: conn.execute_statement(sql, bindings))

    def _run(self, sql: str, bindings: list[Any], call: Callable[[Connection], Any]) -> Any:
        if self.connection is None:
            raise MissingConnectionError(f"No connection to run query on table {self.from_!r}")
        logger.debug("Executing SQL: %s | bindings=%r", sql, bindings)
        try:
            return call(self.connection)
        except ExecutionError:
            raise
        except Exception as exc:
            raise ExecutionError(sql, bindings, exc) from exc

    # ========== Compilation ==========

    def to_sql(self) -> str:
        """Compile the select statement."""
        sql = "SELECT "
        if self.is_distinct:
            sql += "DISTINCT "
        sql += ", ".join(self.columns)

        if self.from_:
            sql += f" FROM {self.from_}"

        if self.joins:
            sql += " " + self.compile_joins()

        if self.wheres:
            sql += " WHERE " + self.compile_wheres()

        if self.orders:
            sql += " ORDER BY " + ", ".join(f"{column} {direction}" for column, direction in self.orders)

        if self.limit_value is not None:
            sql += f" LIMIT {self.limit_value}"

        if self.offset_value is not None:
            sql += f" OFFSET {self.offset_value}"

        return sql

    def compile_wheres(self) -> str:
        """Render the where clauses without the leading ``WHERE``.

        The first clause never carries its connector.
        """
        parts = []
        for index, where in enumerate(self.wheres):
            fragment = _compile_where(where)
            parts.append(fragment if index == 0 else f"{where.boolean} {fragment}")
        return " ".join(parts)

    def compile_joins(self) -> str:
        return " ".join(
            f"{join.kind.upper()} JOIN {join.table} ON {join.first} {join.operator} {join.second}"
            for join in self.joins
        )

    def compile_insert(self, columns: list[str]) -> str:
        placeholders = ", ".join("?" for _ in columns)
        return f"INSERT INTO {self.from_} ({', '.join(columns)}) VALUES ({placeholders})"

    def compile_update(self, values: Mapping[str, Any]) -> str:
        assignments = ", ".join(f"{column} = ?" for column in values)
        sql = f"UPDATE {self.from_} SET {assignments}"
        if self.wheres:
            sql += " WHERE " + self.compile_wheres()
        return sql

    def compile_delete(self) -> str:
        sql = f"DELETE FROM {self.from_}"
        if self.wheres:
            sql += " WHERE " + self.compile_wheres()
        return sql

    def get_bindings(self) -> list[Any]:
        """Flatten where values in the same order the placeholders render."""
        bindings: list[Any] = []
        for where in self.wheres:
            match where:
                case BasicWhere(value=value):
                    bindings.append(value)
                case InWhere(values=values):
                    bindings.extend(values)
                case BetweenWhere(low=low, high=high):
                    bindings.extend((low, high))
                case NestedWhere(query=query):
                    bindings.extend(query.get_bindings())
        return bindings


def _compile_where(where: WhereClause) -> str:
    match where:
        case BasicWhere(column=column, operator=operator):
            return f"{column} {operator} ?"
        case InWhere(column=column, values=values, negated=negated):
            if not values:
                return "1 = 1" if negated else "0 = 1"
            placeholders = ",".join("?" for _ in values)
            keyword = "not in" if negated else "in"
            return f"{column} {keyword} ({placeholders})"
        case NullWhere(column=column, negated=negated):
            return f"{column} is not null" if negated else f"{column} is null"
        case BetweenWhere(column=column, negated=negated):
            keyword = "not between" if negated else "between"
            return f"{column} {keyword} ? and ?"
        case NestedWhere(query=query):
            return f"({query.compile_wheres()})"
    raise QueryCompilationError(f"Unknown where clause: {where!r}")


def _is_known_operator(operator: Any) -> bool:
    return isinstance(operator, str) and operator.lower() in OPERATORS


def _is_illegal_combination(operator: Any, value: Any) -> bool:
    return value is None and _is_known_operator(operator) and operator.lower() not in ("=", "<>", "!=")


def _flatten_columns(columns: Iterable[Any]) -> list[str]:
    flattened: list[str] = []
    for column in columns:
        if isinstance(column, str):
            flattened.append(column)
        else:
            flattened.extend(column)
    return flattened


def _normalize_records(values: Mapping[str, Any] | Iterable[Mapping[str, Any]]) -> list[Mapping[str, Any]]:
    if isinstance(values, Mapping):
        return [values] if values else []
    return [record for record in values if record]
