"""Active-record base class for models."""

from __future__ import annotations

import json
import logging
import re
import sys
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, ClassVar

from recordkit.casts import DEFAULT_DATE_FORMAT, Cast, as_datetime, from_datetime
from recordkit.exceptions import (
    MassAssignmentError,
    MissingConnectionError,
    ModelNotFoundError,
    QueryCompilationError,
)
from recordkit.query import QueryBuilder
from recordkit.relationships import (
    BelongsTo,
    BelongsToMany,
    HasMany,
    HasOne,
    RelationSpec,
    eager_load,
    ensure_relation,
    register_model,
    resolve_model,
)

if TYPE_CHECKING:
    from recordkit.connection import Connection
    from recordkit.session import Query

logger = logging.getLogger(__name__)

EVENTS = ("saving", "saved", "creating", "created", "updating", "updated", "deleting", "deleted")

# A listener returning False for one of these cancels the operation
HALTING_EVENTS = frozenset({"saving", "creating", "updating", "deleting"})


def snake_case(name: str) -> str:
    """Convert a CamelCase class name to snake_case.

    Example:
        >>> snake_case("BlogPost")
        'blog_post'
    """
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def accessor(key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Register a method that computes the value read for ``key``.

    The method receives the raw stored value (``None`` for virtual keys).

    Example:
        >>> class User(Model):
        ...     @accessor("name")
        ...     def upper_name(self, value):
        ...         return value.upper()
    """

    def decorator(method: Callable[..., Any]) -> Callable[..., Any]:
        method.__accessor_for__ = key  # type: ignore[attr-defined]
        return method

    return decorator


def mutator(key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Register a method whose return value is stored when ``key`` is set."""

    def decorator(method: Callable[..., Any]) -> Callable[..., Any]:
        method.__mutator_for__ = key  # type: ignore[attr-defined]
        return method

    return decorator


class ModelMeta(type):
    """Metaclass for models that collects relationships, casts and hooks."""

    def __new__(
        mcs,
        name: str,
        bases: tuple[type, ...],
        namespace: dict[str, Any],
        **kwargs: Any,
    ) -> ModelMeta:
        cls = super().__new__(mcs, name, bases, namespace, **kwargs)

        tablename = namespace.get("__tablename__")
        if tablename is None:
            # Generate table name from class name
            tablename = snake_case(name) + "s"
        cls.__tablename__ = tablename  # type: ignore[attr-defined]

        relationships: dict[str, Callable[..., Any]] = {}
        accessors: dict[str, Callable[..., Any]] = {}
        mutators: dict[str, Callable[..., Any]] = {}

        for base in reversed(bases):
            relationships.update(getattr(base, "__relationships__", {}))
            accessors.update(getattr(base, "__accessors__", {}))
            mutators.update(getattr(base, "__mutators__", {}))

        for attr_name, attr_value in namespace.items():
            if getattr(attr_value, "__relationship__", False):
                relationships[attr_name] = attr_value
            if hasattr(attr_value, "__accessor_for__"):
                accessors[attr_value.__accessor_for__] = attr_value
            if hasattr(attr_value, "__mutator_for__"):
                mutators[attr_value.__mutator_for__] = attr_value

        # Parse casts up front so a bad declaration fails at import time
        casts = {key: Cast.parse(value) for key, value in getattr(cls, "__casts__", {}).items()}
        primary_key = getattr(cls, "__primary_key__", "id")
        if getattr(cls, "__incrementing__", True) and primary_key not in casts:
            casts[primary_key] = Cast.parse(getattr(cls, "__key_type__", "int"))

        cls.__relationships__ = relationships  # type: ignore[attr-defined]
        cls.__accessors__ = accessors  # type: ignore[attr-defined]
        cls.__mutators__ = mutators  # type: ignore[attr-defined]
        cls.__parsed_casts__ = casts  # type: ignore[attr-defined]
        cls.__listeners__ = {}  # type: ignore[attr-defined]

        # Register model (skip the abstract base)
        if bases:
            register_model(cls)  # type: ignore[arg-type]

        return cls


class Model(metaclass=ModelMeta):
    """Base class for all models.

    A model instance wraps one row: its current attributes, a snapshot of
    the attributes as last synced with the database (used for dirty
    tracking) and any loaded relations.

    Example:
        >>> class Post(Model):
        ...     __tablename__ = "posts"
        ...     __fillable__ = ("title", "body", "user_id")
        ...
        ...     @relationship
        ...     def comments(self) -> HasMany:
        ...         return self.has_many(Comment)
        >>> post = Post.create(conn, {"title": "Hello"})
        >>> post.exists
        True
    """

    __tablename__: ClassVar[str]
    __primary_key__: ClassVar[str] = "id"
    __key_type__: ClassVar[str] = "int"
    __incrementing__: ClassVar[bool] = True
    __timestamps__: ClassVar[bool] = True
    __fillable__: ClassVar[Iterable[str]] = ()
    __guarded__: ClassVar[Iterable[str]] = ("*",)
    __hidden__: ClassVar[Iterable[str]] = ()
    __visible__: ClassVar[Iterable[str]] = ()
    __casts__: ClassVar[dict[str, str]] = {}
    __dates__: ClassVar[Iterable[str]] = ()
    __date_format__: ClassVar[str] = DEFAULT_DATE_FORMAT
    __with__: ClassVar[Iterable[RelationSpec]] = ()

    CREATED_AT: ClassVar[str | None] = "created_at"
    UPDATED_AT: ClassVar[str | None] = "updated_at"

    # Populated by ModelMeta
    __relationships__: ClassVar[dict[str, Callable[..., Any]]]
    __accessors__: ClassVar[dict[str, Callable[..., Any]]]
    __mutators__: ClassVar[dict[str, Callable[..., Any]]]
    __parsed_casts__: ClassVar[dict[str, Cast]]
    __listeners__: ClassVar[dict[str, list[Callable[[Model], Any]]]]

    def __init__(
        self,
        attributes: Mapping[str, Any] | None = None,
        *,
        connection: Connection | None = None,
    ) -> None:
        self._attributes: dict[str, Any] = {}
        self._original: dict[str, Any] = {}
        self._changes: dict[str, Any] = {}
        self._relations: dict[str, Any] = {}
        self._connection = connection
        self.exists = False
        self.was_recently_created = False

        if attributes:
            self.fill(attributes)
        self.sync_original()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.get_key_name()}={self.get_key()!r}>"

    # ========== Connection ==========

    @property
    def connection(self) -> Connection | None:
        return self._connection

    def get_connection(self) -> Connection:
        """Return the injected connection.

        Raises:
            MissingConnectionError: If the model was built without one.
        """
        if self._connection is None:
            raise MissingConnectionError(
                f"{type(self).__name__} has no connection; pass connection= or use a Session"
            )
        return self._connection

    def with_connection(self, connection: Connection) -> Model:
        self._connection = connection
        return self

    def new_query(self) -> QueryBuilder:
        """A fresh builder for this model's table."""
        return QueryBuilder(self._connection, self.get_table(), primary_key=self.get_key_name())

    def new_instance(self, attributes: Mapping[str, Any] | None = None, exists: bool = False) -> Model:
        """A new instance of the same class sharing this model's connection."""
        model = type(self)(attributes, connection=self._connection)
        model.exists = exists
        return model

    def new_from_builder(self, attributes: Mapping[str, Any]) -> Model:
        """Build an existing model from a database row."""
        model = self.new_instance(exists=True)
        model.set_raw_attributes(attributes, sync=True)
        return model

    def hydrate(self, rows: Iterable[Mapping[str, Any]]) -> list[Model]:
        return [self.new_from_builder(row) for row in rows]

    # ========== Table and keys ==========

    def get_table(self) -> str:
        return self.__tablename__

    def get_key_name(self) -> str:
        return self.__primary_key__

    def get_qualified_key_name(self) -> str:
        return f"{self.get_table()}.{self.get_key_name()}"

    def get_key(self) -> Any:
        return self.get_attribute(self.get_key_name())

    def get_foreign_key(self) -> str:
        """Default foreign key name for this model, e.g. ``post_id``."""
        return f"{snake_case(type(self).__name__)}_{self.get_key_name()}"

    # ========== Mass assignment ==========

    def fill(self, attributes: Mapping[str, Any]) -> Model:
        """Set attributes, honoring ``__fillable__`` and ``__guarded__``.

        Raises:
            MassAssignmentError: If the model is totally guarded and a key
                is not fillable.
        """
        totally_guarded = self.totally_guarded()

        for key, value in self._fillable_from_dict(attributes).items():
            if self.is_fillable(key):
                self.set_attribute(key, value)
            elif totally_guarded:
                raise MassAssignmentError(key, type(self).__name__)

        return self

    def force_fill(self, attributes: Mapping[str, Any]) -> Model:
        """Set attributes without the mass-assignment checks."""
        for key, value in attributes.items():
            self.set_attribute(key, value)
        return self

    def is_fillable(self, key: str) -> bool:
        fillable = list(self.__fillable__)
        if key in fillable:
            return True
        if self.is_guarded(key):
            return False
        return not fillable and not key.startswith("_")

    def is_guarded(self, key: str) -> bool:
        guarded = list(self.__guarded__)
        return key in guarded or guarded == ["*"]

    def totally_guarded(self) -> bool:
        return not list(self.__fillable__) and list(self.__guarded__) == ["*"]

    def _fillable_from_dict(self, attributes: Mapping[str, Any]) -> dict[str, Any]:
        fillable = list(self.__fillable__)
        if fillable:
            return {key: value for key, value in attributes.items() if key in fillable}
        return dict(attributes)

    # ========== Attributes ==========

    def get(self, key: str, default: Any = None) -> Any:
        """Read an attribute or relation, returning ``default`` for ``None``."""
        value = self.get_attribute(key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> Model:
        return self.set_attribute(key, value)

    def get_attribute(self, key: str) -> Any:
        """Resolve ``key``: attribute or accessor, then loaded relation, then relationship method.

        Unknown keys resolve to ``None``.
        """
        if not key:
            return None

        if key in self._attributes or key in self.__accessors__:
            return self.get_attribute_value(key)

        if key in self._relations:
            return self._relations[key]

        if key in self.__relationships__:
            return self.get_relation_value(key)

        return None

    def get_attribute_value(self, key: str) -> Any:
        value = self._attributes.get(key)

        if key in self.__accessors__:
            return self.__accessors__[key](self, value)

        cast = self.__parsed_casts__.get(key)
        if cast is not None:
            return cast.read(value)

        if value is not None and key in self.get_dates():
            return as_datetime(value)

        return value

    def set_attribute(self, key: str, value: Any) -> Model:
        """Store a value, running mutators and normalizing JSON and dates."""
        if key in self.__mutators__:
            self._attributes[key] = self.__mutators__[key](self, value)
            return self

        cast = self.__parsed_casts__.get(key)
        if cast is not None and (cast.is_json or cast.is_date):
            value = cast.write(value, self.__date_format__)
        elif value is not None and key in self.get_dates():
            value = from_datetime(value, self.__date_format__)

        self._attributes[key] = value
        return self

    def has_attribute(self, key: str) -> bool:
        return key in self._attributes

    def unset(self, key: str) -> None:
        self._attributes.pop(key, None)
        self._relations.pop(key, None)

    def get_attributes(self) -> dict[str, Any]:
        return dict(self._attributes)

    def set_raw_attributes(self, attributes: Mapping[str, Any], sync: bool = False) -> Model:
        """Replace the attributes without mutators or casts."""
        self._attributes = dict(attributes)
        if sync:
            self.sync_original()
        return self

    def get_dates(self) -> list[str]:
        dates = [self.CREATED_AT, self.UPDATED_AT] if self.uses_timestamps() else []
        return [key for key in (*dates, *self.__dates__) if key]

    def get_casts(self) -> dict[str, Cast]:
        return dict(self.__parsed_casts__)

    def has_cast(self, key: str) -> bool:
        return key in self.__parsed_casts__

    # ========== Dirty tracking ==========

    def get_original(self, key: str | None = None, default: Any = None) -> Any:
        if key is None:
            return dict(self._original)
        return self._original.get(key, default)

    def sync_original(self) -> Model:
        self._original = dict(self._attributes)
        return self

    def sync_changes(self) -> Model:
        self._changes = self.get_dirty()
        return self

    def get_dirty(self) -> dict[str, Any]:
        """Attributes that differ from the last synced snapshot."""
        return {
            key: value
            for key, value in self._attributes.items()
            if not self._original_is_equivalent(key)
        }

    def is_dirty(self, *keys: str | Iterable[str]) -> bool:
        """Whether any attribute (or any of ``keys``) changed since the last sync."""
        return _has_changes(self.get_dirty(), keys)

    def is_clean(self, *keys: str | Iterable[str]) -> bool:
        return not self.is_dirty(*keys)

    def get_changes(self) -> dict[str, Any]:
        return dict(self._changes)

    def was_changed(self, *keys: str | Iterable[str]) -> bool:
        """Whether the last save changed any attribute (or any of ``keys``)."""
        return _has_changes(self._changes, keys)

    def _original_is_equivalent(self, key: str) -> bool:
        if key not in self._original:
            return False

        current = self._attributes.get(key)
        original = self._original.get(key)
        if current == original:
            return True
        if current is None or original is None:
            return False

        cast = self.__parsed_casts__.get(key)
        if cast is None:
            return False
        try:
            return cast.read(current) == cast.read(original)
        except (TypeError, ValueError):
            return False

    # ========== Relations ==========

    def get_relation_value(self, name: str) -> Any:
        if name in self._relations:
            return self._relations[name]
        return self.get_relationship_from_method(name)

    def get_relationship_from_method(self, name: str) -> Any:
        """Run a relationship method, cache its results and return them.

        Raises:
            RelationContractError: If the method does not return a Relation.
        """
        relation = ensure_relation(self, name, getattr(self, name)())
        results = relation.get_results()
        self.set_relation(name, results)
        return results

    def relation_loaded(self, name: str) -> bool:
        return name in self._relations

    def get_relation(self, name: str) -> Any:
        return self._relations.get(name)

    def set_relation(self, name: str, value: Any) -> Model:
        self._relations[name] = value
        return self

    def unset_relation(self, name: str) -> Model:
        self._relations.pop(name, None)
        return self

    def get_relations(self) -> dict[str, Any]:
        return dict(self._relations)

    def load(self, *relations: RelationSpec) -> Model:
        """Eager load relations onto this model.

        Example:
            >>> post.load("comments.user", "tags")
        """
        eager_load([self], *relations)
        return self

    def has_one(
        self,
        related: type[Model] | str,
        foreign_key: str | None = None,
        local_key: str | None = None,
    ) -> HasOne:
        """Define a one-to-one relation where the related table holds the key."""
        instance = self._new_related_instance(related)
        return HasOne(
            instance.new_query(),
            self,
            instance,
            foreign_key or self.get_foreign_key(),
            local_key or self.get_key_name(),
        )

    def has_many(
        self,
        related: type[Model] | str,
        foreign_key: str | None = None,
        local_key: str | None = None,
    ) -> HasMany:
        """Define a one-to-many relation.

        Example:
            >>> @relationship
            ... def comments(self) -> HasMany:
            ...     return self.has_many(Comment, "post_id", "id")
        """
        instance = self._new_related_instance(related)
        return HasMany(
            instance.new_query(),
            self,
            instance,
            foreign_key or self.get_foreign_key(),
            local_key or self.get_key_name(),
        )

    def belongs_to(
        self,
        related: type[Model] | str,
        foreign_key: str | None = None,
        owner_key: str | None = None,
        relation: str | None = None,
    ) -> BelongsTo:
        """Define the inverse of a one-to-one or one-to-many relation.

        The relation name defaults to the calling method's name and the
        foreign key to ``{relation}_{owner key}``.
        """
        if relation is None:
            relation = sys._getframe(1).f_code.co_name

        instance = self._new_related_instance(related)
        owner_key = owner_key or instance.get_key_name()
        foreign_key = foreign_key or f"{snake_case(relation)}_{owner_key}"

        return BelongsTo(instance.new_query(), self, instance, foreign_key, owner_key, relation)

    def belongs_to_many(
        self,
        related: type[Model] | str,
        table: str | None = None,
        foreign_pivot_key: str | None = None,
        related_pivot_key: str | None = None,
        parent_key: str | None = None,
        related_key: str | None = None,
        relation: str | None = None,
    ) -> BelongsToMany:
        """Define a many-to-many relation through a pivot table.

        The pivot table defaults to both models' snake_case names sorted
        alphabetically and joined with ``_`` (``post`` + ``tag`` -> ``post_tag``).
        """
        if relation is None:
            relation = sys._getframe(1).f_code.co_name

        instance = self._new_related_instance(related)
        if table is None:
            table = "_".join(sorted([snake_case(type(self).__name__), snake_case(type(instance).__name__)]))

        return BelongsToMany(
            instance.new_query(),
            self,
            instance,
            table,
            foreign_pivot_key or self.get_foreign_key(),
            related_pivot_key or instance.get_foreign_key(),
            parent_key or self.get_key_name(),
            related_key or instance.get_key_name(),
            relation,
        )

    def _new_related_instance(self, related: type[Model] | str) -> Model:
        return resolve_model(related)(connection=self._connection)

    # ========== Events ==========

    @classmethod
    def listen(cls, event: str, callback: Callable[[Model], Any] | None = None) -> Any:
        """Register a lifecycle listener for this model class.

        Listeners for ``saving``, ``creating``, ``updating`` and ``deleting``
        can return ``False`` to cancel the operation. Usable as a decorator.

        Example:
            >>> @Post.listen("saving")
            ... def require_title(post):
            ...     return bool(post.get("title"))
        """
        if event not in EVENTS:
            raise ValueError(f"Unknown model event: {event!r}")

        def register(fn: Callable[[Model], Any]) -> Callable[[Model], Any]:
            cls.__listeners__.setdefault(event, []).append(fn)
            return fn

        return register(callback) if callback is not None else register

    @classmethod
    def forget_listeners(cls, event: str | None = None) -> None:
        if event is None:
            cls.__listeners__.clear()
        else:
            cls.__listeners__.pop(event, None)

    def fire_model_event(self, event: str) -> bool:
        """Run listeners along the class hierarchy; False if one halted."""
        for klass in type(self).__mro__:
            listeners = klass.__dict__.get("__listeners__", {})
            for callback in listeners.get(event, []):
                result = callback(self)
                if event in HALTING_EVENTS and result is False:
                    logger.debug("%s listener halted %s", event, type(self).__name__)
                    return False
        return True

    # ========== Persistence ==========

    def save(self) -> bool:
        """Insert or update the row.

        Returns:
            False if a listener cancelled the save, True otherwise.
        """
        query = self.new_query()

        if not self.fire_model_event("saving"):
            return False

        if self.exists:
            saved = self._perform_update(query) if self.is_dirty() else True
        else:
            saved = self._perform_insert(query)

        if saved:
            self._finish_save()

        return saved

    def _finish_save(self) -> None:
        self.fire_model_event("saved")
        self.sync_original()

    def _perform_update(self, query: QueryBuilder) -> bool:
        if not self.fire_model_event("updating"):
            return False

        if self.uses_timestamps():
            self.update_timestamps()

        dirty = self.get_dirty()
        if dirty:
            self._set_keys_for_save_query(query).update(dirty)
            self.sync_changes()
            self.fire_model_event("updated")
            logger.debug("Updated %r (%s)", self, ", ".join(dirty))

        return True

    def _perform_insert(self, query: QueryBuilder) -> bool:
        if not self.fire_model_event("creating"):
            return False

        if self.uses_timestamps():
            self.update_timestamps()

        attributes = dict(self._attributes)
        if not attributes:
            return True

        if self.__incrementing__:
            key = query.insert_get_id(attributes)
            self.set_attribute(self.get_key_name(), key)
        else:
            query.insert(attributes)

        self.exists = True
        self.was_recently_created = True
        self.fire_model_event("created")
        logger.debug("Inserted %r", self)

        return True

    def _set_keys_for_save_query(self, query: QueryBuilder) -> QueryBuilder:
        key = self._original.get(self.get_key_name(), self._attributes.get(self.get_key_name()))
        if key is None:
            raise QueryCompilationError(f"No primary key value on {type(self).__name__}")
        return query.where(self.get_key_name(), "=", key)

    def update(self, attributes: Mapping[str, Any] | None = None) -> bool:
        """Fill and save an existing model; False if it does not exist."""
        if not self.exists:
            return False
        return self.fill(attributes or {}).save()

    def delete(self) -> bool:
        """Delete the row.

        Returns:
            False if the model does not exist or a listener cancelled it.
        """
        if not self.exists:
            return False

        if not self.fire_model_event("deleting"):
            return False

        self._set_keys_for_save_query(self.new_query()).delete()
        self.exists = False
        self.fire_model_event("deleted")
        logger.debug("Deleted %r", self)

        return True

    def fresh(self) -> Model | None:
        """Reload a new instance of this row, or None if it is gone."""
        if not self.exists:
            return None
        row = self.new_query().where(self.get_key_name(), "=", self.get_key()).first()
        return self.new_from_builder(row) if row is not None else None

    def refresh(self) -> Model:
        """Reload this instance's attributes from the database.

        Raises:
            ModelNotFoundError: If the row no longer exists.
        """
        if not self.exists:
            return self
        row = self.new_query().where(self.get_key_name(), "=", self.get_key()).first()
        if row is None:
            raise ModelNotFoundError(type(self).__name__, self.get_key())
        self.set_raw_attributes(row, sync=True)
        self._relations = {}
        return self

    def touch(self) -> bool:
        """Bump ``updated_at`` and save."""
        if not self.uses_timestamps():
            return False
        self.update_timestamps()
        return self.save()

    # ========== Timestamps ==========

    def uses_timestamps(self) -> bool:
        return self.__timestamps__

    def fresh_timestamp(self) -> datetime:
        return datetime.now(UTC).replace(tzinfo=None, microsecond=0)

    def update_timestamps(self) -> None:
        now = self.fresh_timestamp()

        if self.UPDATED_AT and (self.exists or self._attributes.get(self.UPDATED_AT) is None):
            if not self.is_dirty(self.UPDATED_AT):
                self.set_attribute(self.UPDATED_AT, now)

        if not self.exists and self.CREATED_AT and self._attributes.get(self.CREATED_AT) is None:
            self.set_attribute(self.CREATED_AT, now)

    # ========== Class-level API ==========

    @classmethod
    def query(cls, connection: Connection | None = None) -> Query[Any]:
        """Start a query for this model.

        Example:
            >>> Post.query(conn).where("status", "published").with_("comments").get()
        """
        from recordkit.session import Query

        return Query(cls, connection)

    @classmethod
    def create(cls, connection: Connection | None = None, attributes: Mapping[str, Any] | None = None) -> Model:
        """Build, fill and save a new model."""
        model = cls(attributes, connection=connection)
        model.save()
        return model

    @classmethod
    def find(cls, connection: Connection | None, id: Any) -> Any:
        return cls.query(connection).find(id)

    @classmethod
    def all(cls, connection: Connection | None = None) -> list[Any]:
        return cls.query(connection).get()

    # ========== Serialization ==========

    def to_dict(self) -> dict[str, Any]:
        """Attributes (through accessors and casts) plus loaded relations.

        ``__visible__``, when set, lists the only keys kept; ``__hidden__``
        keys are always dropped.
        """
        data: dict[str, Any] = {key: self.get_attribute_value(key) for key in self._attributes}

        for name, value in self._relations.items():
            if isinstance(value, Model):
                data[name] = value.to_dict()
            elif isinstance(value, list):
                data[name] = [item.to_dict() if isinstance(item, Model) else item for item in value]
            else:
                data[name] = value

        visible = list(self.__visible__)
        if visible:
            data = {key: value for key, value in data.items() if key in visible}

        hidden = set(self.__hidden__)
        return {key: value for key, value in data.items() if key not in hidden}

    def to_json(self, **kwargs: Any) -> str:
        return json.dumps(self.to_dict(), default=str, **kwargs)

    def is_same(self, other: Any) -> bool:
        """Whether ``other`` is a model for the same table and key."""
        return (
            isinstance(other, Model)
            and other.get_table() == self.get_table()
            and other.get_key() is not None
            and other.get_key() == self.get_key()
        )


class Pivot(Model):
    """A row of a many-to-many pivot table.

    Pivot instances are built by :class:`~recordkit.relationships.BelongsToMany`
    and carry the table they came from.
    """

    __tablename__ = "pivots"
    __timestamps__ = False
    __incrementing__ = False
    __guarded__ = ()

    def __init__(
        self,
        attributes: Mapping[str, Any] | None = None,
        *,
        connection: Connection | None = None,
        table: str | None = None,
    ) -> None:
        self._table = table
        super().__init__(attributes, connection=connection)

    def get_table(self) -> str:
        return self._table or self.__tablename__

    def new_instance(self, attributes: Mapping[str, Any] | None = None, exists: bool = False) -> Model:
        pivot = Pivot(attributes, connection=self._connection, table=self._table)
        pivot.exists = exists
        return pivot


def _has_changes(changes: Mapping[str, Any], keys: tuple[str | Iterable[str], ...]) -> bool:
    names: list[str] = []
    for key in keys:
        names.extend([key] if isinstance(key, str) else key)
    if not names:
        return bool(changes)
    return any(name in changes for name in names)
