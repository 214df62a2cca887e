"""Session and model-level fluent queries."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Generic, TypeVar

from recordkit.connection import create_connection, transaction
from recordkit.exceptions import ModelNotFoundError
from recordkit.query import QueryBuilder
from recordkit.relationships import RelationSpec, eager_load

if TYPE_CHECKING:
    from recordkit.base import Model
    from recordkit.connection import Connection

logger = logging.getLogger(__name__)

T = TypeVar("T", bound="Model")


class Query(Generic[T]):
    """Fluent query for a model class.

    Wraps a :class:`~recordkit.query.QueryBuilder` on the model's table,
    hydrates rows into model instances and eager loads requested relations
    (plus the model's ``__with__`` defaults) after the main query.

    Example:
        >>> posts = (
        ...     Post.query(conn)
        ...     .where("status", "published")
        ...     .order_by_desc("created_at")
        ...     .with_("comments.user", "tags")
        ...     .get()
        ... )
    """

    def __init__(self, model: type[T], connection: Connection | None = None) -> None:
        self._model = model
        self._instance = model(connection=connection)
        self._builder = self._instance.new_query()
        self._eager_load: list[RelationSpec] = list(model.__with__)

    def __repr__(self) -> str:
        return f"<Query {self._model.__name__}: {self.to_sql()!r}>"

    def __iter__(self) -> Iterator[T]:
        return iter(self.get())

    @property
    def builder(self) -> QueryBuilder:
        return self._builder

    @property
    def model(self) -> type[T]:
        return self._model

    # ========== Constraints ==========

    def select(self, *columns: str | Iterable[str]) -> Query[T]:
        self._builder.select(*columns)
        return self

    def distinct(self) -> Query[T]:
        self._builder.distinct()
        return self

    def where(self, column: Any, *args: Any, **kwargs: Any) -> Query[T]:
        self._builder.where(column, *args, **kwargs)
        return self

    def or_where(self, column: Any, *args: Any) -> Query[T]:
        self._builder.or_where(column, *args)
        return self

    def where_in(self, column: str, values: Iterable[Any]) -> Query[T]:
        self._builder.where_in(column, values)
        return self

    def where_not_in(self, column: str, values: Iterable[Any]) -> Query[T]:
        self._builder.where_not_in(column, values)
        return self

    def where_null(self, column: str) -> Query[T]:
        self._builder.where_null(column)
        return self

    def where_not_null(self, column: str) -> Query[T]:
        self._builder.where_not_null(column)
        return self

    def where_between(self, column: str, low: Any, high: Any) -> Query[T]:
        self._builder.where_between(column, low, high)
        return self

    def where_not_between(self, column: str, low: Any, high: Any) -> Query[T]:
        self._builder.where_not_between(column, low, high)
        return self

    def join(self, table: str, first: str, operator: str | None = None, second: str | None = None) -> Query[T]:
        self._builder.join(table, first, operator, second)
        return self

    def left_join(self, table: str, first: str, operator: str | None = None, second: str | None = None) -> Query[T]:
        self._builder.left_join(table, first, operator, second)
        return self

    def order_by(self, column: str, direction: str = "asc") -> Query[T]:
        self._builder.order_by(column, direction)
        return self

    def order_by_desc(self, column: str) -> Query[T]:
        self._builder.order_by_desc(column)
        return self

    def latest(self, column: str | None = None) -> Query[T]:
        return self.order_by_desc(column or self._model.CREATED_AT or self._instance.get_key_name())

    def oldest(self, column: str | None = None) -> Query[T]:
        return self.order_by(column or self._model.CREATED_AT or self._instance.get_key_name())

    def limit(self, value: int) -> Query[T]:
        self._builder.limit(value)
        return self

    def take(self, value: int) -> Query[T]:
        return self.limit(value)

    def offset(self, value: int) -> Query[T]:
        self._builder.offset(value)
        return self

    def skip(self, value: int) -> Query[T]:
        return self.offset(value)

    def with_(self, *relations: RelationSpec) -> Query[T]:
        """Eager load relations once the main query has run.

        Accepts relation names, dotted nested names and mappings of name to
        a callback that constrains the relation query.

        Example:
            >>> Post.query(conn).with_("comments", {"tags": lambda r: r.order_by("name")})
        """
        self._eager_load.extend(relations)
        return self

    def without(self, *names: str) -> Query[T]:
        """Skip eager loads by name, including ``__with__`` defaults."""
        self._eager_load = [spec for spec in self._eager_load if not (isinstance(spec, str) and spec in names)]
        return self

    # ========== Execution ==========

    def get(self, columns: str | Iterable[str] | None = None) -> list[T]:
        """Execute and return hydrated models."""
        models = self._instance.hydrate(self._builder.get(columns))
        if models and self._eager_load:
            eager_load(models, *self._eager_load)
        return models  # type: ignore[return-value]

    def all(self) -> list[T]:
        return self.get()

    def first(self, columns: str | Iterable[str] | None = None) -> T | None:
        models = self.limit(1).get(columns)
        return models[0] if models else None

    def first_or_fail(self, columns: str | Iterable[str] | None = None) -> T:
        """Like :meth:`first` but raises ``ModelNotFoundError`` when empty."""
        model = self.first(columns)
        if model is None:
            raise ModelNotFoundError(self._model.__name__)
        return model

    def find(self, id: Any, columns: str | Iterable[str] | None = None) -> T | list[T] | None:
        """Find by primary key; a list of ids returns a list of models."""
        if isinstance(id, (list, tuple, set)):
            return self.find_many(id, columns)
        return self.where(self._instance.get_key_name(), "=", id).first(columns)

    def find_many(self, ids: Iterable[Any], columns: str | Iterable[str] | None = None) -> list[T]:
        ids = list(ids)
        if not ids:
            return []
        return self.where_in(self._instance.get_key_name(), ids).get(columns)

    def find_or_fail(self, id: Any, columns: str | Iterable[str] | None = None) -> T | list[T]:
        """Find by primary key or raise ``ModelNotFoundError``.

        For a list of ids, every id must be found.
        """
        result = self.find(id, columns)
        if isinstance(id, (list, tuple, set)):
            if len(result) != len(set(id)):  # type: ignore[arg-type]
                raise ModelNotFoundError(self._model.__name__, list(id))
            return result  # type: ignore[return-value]
        if result is None:
            raise ModelNotFoundError(self._model.__name__, id)
        return result

    def count(self) -> int:
        return self._builder.count()

    def exists(self) -> bool:
        return self._builder.exists()

    def pluck(self, column: str) -> list[Any]:
        return self._builder.pluck(column)

    def sum(self, column: str) -> Any:
        return self._builder.sum(column)

    def max(self, column: str) -> Any:
        return self._builder.max(column)

    def min(self, column: str) -> Any:
        return self._builder.min(column)

    def update(self, values: Mapping[str, Any]) -> int:
        """Bulk update matching rows without loading models or firing events."""
        return self._builder.update(values)

    def delete(self) -> int:
        """Bulk delete matching rows without loading models or firing events."""
        return self._builder.delete()

    def to_sql(self) -> str:
        return self._builder.to_sql()

    def get_bindings(self) -> list[Any]:
        return self._builder.get_bindings()


class Session:
    """Binds one connection to model operations.

    Example:
        >>> session = create_session("sqlite::memory:")
        >>> with session.transaction():
        ...     user = session.create(User, {"name": "Alice"})
        >>> session.query(User).where("name", "Alice").first()
        <User id=1>
    """

    def __init__(self, connection: Connection) -> None:
        self._connection = connection

    def __repr__(self) -> str:
        return f"<Session {self._connection!r}>"

    def __enter__(self) -> Session:
        return self

    def __exit__(self, exc_type: type[BaseException] | None, exc_val: BaseException | None, exc_tb: Any) -> None:
        self.close()

    @property
    def connection(self) -> Connection:
        return self._connection

    def query(self, model: type[T]) -> Query[T]:
        return Query(model, self._connection)

    def table(self, name: str) -> QueryBuilder:
        """A raw query builder for ``name``."""
        return QueryBuilder(self._connection, name)

    def make(self, model: type[T], attributes: Mapping[str, Any] | None = None) -> T:
        """Build an unsaved model bound to this session's connection."""
        return model(attributes, connection=self._connection)

    def create(self, model: type[T], attributes: Mapping[str, Any] | None = None) -> T:
        return model.create(self._connection, attributes)  # type: ignore[return-value]

    def find(self, model: type[T], id: Any) -> T | list[T] | None:
        return self.query(model).find(id)

    def find_or_fail(self, model: type[T], id: Any) -> T | list[T]:
        return self.query(model).find_or_fail(id)

    def load(self, models: list[Model], *relations: RelationSpec) -> list[Model]:
        """Eager load relations onto already fetched models."""
        for model in models:
            model.with_connection(self._connection)
        return eager_load(models, *relations)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Commit the block on success, roll it back on error.

        Example:
            >>> with session.transaction():
            ...     session.create(Post, {"title": "Hello"})
        """
        with transaction(self._connection):
            yield self

    def close(self) -> None:
        close = getattr(self._connection, "close", None)
        if close is not None:
            close()


def create_session(url: str, **options: Any) -> Session:
    """Create a session on a new connection.

    Example:
        >>> session = create_session("sqlite::memory:", log_queries=True)
    """
    logger.debug("Creating session for %s", url)
    return Session(create_connection(url, **options))
