"""Relationship definitions and eager loading for models."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, TypeVar

from recordkit.exceptions import RelationContractError

if TYPE_CHECKING:
    from recordkit.base import Model, Pivot
    from recordkit.query import QueryBuilder

logger = logging.getLogger(__name__)


# Global model registry - maps table names and class names to model classes
_model_registry: dict[str, type[Model]] = {}


def register_model(model_cls: type[Model]) -> None:
    """Register a model class so relations can refer to it by name."""
    _model_registry[model_cls.__tablename__] = model_cls
    _model_registry[model_cls.__name__] = model_cls


def get_model(name: str) -> type[Model] | None:
    """Get a model class by table name or class name."""
    return _model_registry.get(name)


def resolve_model(model: type[Model] | str) -> type[Model]:
    """Turn a model class or its registered name into the class."""
    if isinstance(model, str):
        resolved = get_model(model)
        if resolved is None:
            raise LookupError(f"Unknown model: {model!r}")
        return resolved
    return model


F = TypeVar("F", bound=Callable[..., Any])


def relationship(method: F) -> F:
    """Mark a model method as a relationship definition.

    The method must return one of the four relation kinds. Marked methods
    resolve lazily through ``model.get(name)`` and can be eager loaded.

    Example:
        >>> class Post(Model):
        ...     @relationship
        ...     def comments(self) -> HasMany:
        ...         return self.has_many(Comment, "post_id")
    """
    method.__relationship__ = True  # type: ignore[attr-defined]
    return method


_constraints_enabled: ContextVar[bool] = ContextVar("recordkit_relation_constraints", default=True)


def _dictionary_key(value: Any) -> Any:
    # Drivers may hand back "1" where the parent holds 1
    if isinstance(value, (int, str)) and not isinstance(value, bool):
        return str(value)
    return value


def _sorted_unique(values: Iterable[Any]) -> list[Any]:
    unique: dict[Any, Any] = {}
    for value in values:
        if value is not None:
            unique.setdefault(_dictionary_key(value), value)
    keys = list(unique.values())
    try:
        return sorted(keys)
    except TypeError:
        return keys


class Relation(ABC):
    """Base class for the four relation kinds.

    A relation owns one QueryBuilder already pointed at the related table.
    Constructing it adds the single-parent ("lazy") constraint unless
    :meth:`no_constraints` is active, in which case the eager path adds an
    ``IN`` constraint over a whole batch of parents instead.
    """

    def __init__(self, query: QueryBuilder, parent: Model, related: Model) -> None:
        self.query = query
        self.parent = parent
        self.related = related
        self.add_constraints()

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.query.to_sql()!r}>"

    @staticmethod
    @contextmanager
    def no_constraints() -> Iterator[None]:
        """Build relations without their single-parent constraint."""
        token = _constraints_enabled.set(False)
        try:
            yield
        finally:
            _constraints_enabled.reset(token)

    @staticmethod
    def constraints_enabled() -> bool:
        return _constraints_enabled.get()

    @abstractmethod
    def add_constraints(self) -> None:
        """Restrict the query to rows related to the parent."""

    @abstractmethod
    def add_eager_constraints(self, models: list[Model]) -> None:
        """Restrict the query to rows related to any of ``models``."""

    @abstractmethod
    def init_relation(self, models: list[Model], relation: str) -> list[Model]:
        """Give every model the empty value for this relation."""

    @abstractmethod
    def match(self, models: list[Model], results: list[Model], relation: str) -> list[Model]:
        """Attach eagerly loaded results to their parents."""

    @abstractmethod
    def get_results(self) -> Any:
        """Resolve the relation for the single parent."""

    # ========== Execution ==========

    def get(self, columns: str | Iterable[str] | None = None) -> list[Model]:
        return self.related.hydrate(self.query.get(columns))

    def get_eager(self) -> list[Model]:
        return self.get()

    def first(self, columns: str | Iterable[str] | None = None) -> Model | None:
        results = self.limit(1).get(columns)
        return results[0] if results else None

    def find(self, id: Any, columns: str | Iterable[str] | None = None) -> Model | list[Model] | None:
        if isinstance(id, (list, tuple, set)):
            return self.find_many(id, columns)
        self.query.where(self.related.get_qualified_key_name(), "=", id)
        return self.first(columns)

    def find_many(self, ids: Iterable[Any], columns: str | Iterable[str] | None = None) -> list[Model]:
        ids = list(ids)
        if not ids:
            return []
        self.query.where_in(self.related.get_qualified_key_name(), ids)
        return self.get(columns)

    def count(self) -> int:
        return self.query.count()

    def to_sql(self) -> str:
        return self.query.to_sql()

    def get_bindings(self) -> list[Any]:
        return self.query.get_bindings()

    def get_query(self) -> QueryBuilder:
        return self.query

    # ========== Query forwarding ==========

    def where(self, column: Any, *args: Any, **kwargs: Any) -> Relation:
        self.query.where(column, *args, **kwargs)
        return self

    def or_where(self, column: Any, *args: Any) -> Relation:
        self.query.or_where(column, *args)
        return self

    def where_in(self, column: str, values: Iterable[Any]) -> Relation:
        self.query.where_in(column, values)
        return self

    def where_not_in(self, column: str, values: Iterable[Any]) -> Relation:
        self.query.where_not_in(column, values)
        return self

    def where_null(self, column: str) -> Relation:
        self.query.where_null(column)
        return self

    def where_not_null(self, column: str) -> Relation:
        self.query.where_not_null(column)
        return self

    def where_between(self, column: str, low: Any, high: Any) -> Relation:
        self.query.where_between(column, low, high)
        return self

    def order_by(self, column: str, direction: str = "asc") -> Relation:
        self.query.order_by(column, direction)
        return self

    def order_by_desc(self, column: str) -> Relation:
        self.query.order_by_desc(column)
        return self

    def limit(self, value: int) -> Relation:
        self.query.limit(value)
        return self

    def take(self, value: int) -> Relation:
        return self.limit(value)

    def offset(self, value: int) -> Relation:
        self.query.offset(value)
        return self

    def skip(self, value: int) -> Relation:
        return self.offset(value)

    # ========== Helpers ==========

    def get_keys(self, models: list[Model], key: str) -> list[Any]:
        """Deduplicated, sorted, non-null values of ``key`` across ``models``."""
        return _sorted_unique(model.get_attribute(key) for model in models)

    def get_parent_key(self) -> Any:
        return self.parent.get_key()


class HasOneOrMany(Relation):
    """Shared behavior of relations whose foreign key is on the related table."""

    def __init__(
        self,
        query: QueryBuilder,
        parent: Model,
        related: Model,
        foreign_key: str,
        local_key: str,
    ) -> None:
        self.foreign_key = foreign_key
        self.local_key = local_key
        super().__init__(query, parent, related)

    def add_constraints(self) -> None:
        if self.constraints_enabled():
            self.query.where(self.foreign_key, "=", self.get_parent_key())
            self.query.where_not_null(self.foreign_key)

    def add_eager_constraints(self, models: list[Model]) -> None:
        self.query.where_in(self.foreign_key, self.get_keys(models, self.local_key))

    def get_parent_key(self) -> Any:
        return self.parent.get_attribute(self.local_key)

    def get_foreign_key_name(self) -> str:
        return self.foreign_key

    def get_qualified_foreign_key_name(self) -> str:
        return f"{self.related.get_table()}.{self.foreign_key}"

    def build_dictionary(self, results: list[Model]) -> dict[Any, list[Model]]:
        """Group results by their foreign key value."""
        dictionary: dict[Any, list[Model]] = {}
        for result in results:
            key = _dictionary_key(result.get_attribute(self.foreign_key))
            dictionary.setdefault(key, []).append(result)
        return dictionary

    # ========== Creating related models ==========

    def make(self, attributes: Mapping[str, Any] | None = None) -> Model:
        """Create an unsaved related model with the foreign key set."""
        instance = self.related.new_instance(attributes)
        self._set_foreign_attributes_for_create(instance)
        return instance

    def create(self, attributes: Mapping[str, Any] | None = None) -> Model:
        """Create and save a related model.

        Example:
            >>> comment = post.comments().create({"content": "First!"})
            >>> comment.get("post_id") == post.get_key()
            True
        """
        instance = self.make(attributes)
        instance.save()
        return instance

    def create_many(self, records: Iterable[Mapping[str, Any]]) -> list[Model]:
        return [self.create(record) for record in records]

    def save(self, model: Model) -> Model:
        """Set the foreign key on ``model`` and save it."""
        self._set_foreign_attributes_for_create(model)
        model.save()
        return model

    def save_many(self, models: Iterable[Model]) -> list[Model]:
        return [self.save(model) for model in models]

    def find_or_new(self, id: Any) -> Model:
        query = self.query.clone().where(self.related.get_qualified_key_name(), "=", id)
        row = query.first()
        if row is not None:
            return self.related.new_from_builder(row)
        return self.make()

    def first_or_new(self, attributes: Mapping[str, Any] | None = None, values: Mapping[str, Any] | None = None) -> Model:
        """Find the first related model matching ``attributes`` or make one."""
        instance = self._first_where(attributes or {})
        if instance is None:
            instance = self.make({**(attributes or {}), **(values or {})})
        return instance

    def first_or_create(self, attributes: Mapping[str, Any] | None = None, values: Mapping[str, Any] | None = None) -> Model:
        """Find the first related model matching ``attributes`` or create one."""
        instance = self._first_where(attributes or {})
        if instance is None:
            instance = self.create({**(attributes or {}), **(values or {})})
        return instance

    def update_or_create(self, attributes: Mapping[str, Any], values: Mapping[str, Any] | None = None) -> Model:
        """Update the first match with ``values`` or create it."""
        instance = self.first_or_new(attributes)
        instance.fill(values or {})
        instance.save()
        return instance

    def update(self, attributes: Mapping[str, Any]) -> int:
        return self.query.update(attributes)

    def delete(self) -> int:
        return self.query.delete()

    def _first_where(self, attributes: Mapping[str, Any]) -> Model | None:
        row = self.query.clone().where(attributes).first()
        return self.related.new_from_builder(row) if row is not None else None

    def _set_foreign_attributes_for_create(self, model: Model) -> None:
        model.set_attribute(self.foreign_key, self.get_parent_key())


class HasOne(HasOneOrMany):
    """One related row holds the parent's key (``users`` -> ``profiles.user_id``)."""

    def get_results(self) -> Model | None:
        if self.get_parent_key() is None:
            return None
        return self.first()

    def init_relation(self, models: list[Model], relation: str) -> list[Model]:
        for model in models:
            model.set_relation(relation, None)
        return models

    def match(self, models: list[Model], results: list[Model], relation: str) -> list[Model]:
        dictionary = self.build_dictionary(results)
        for model in models:
            matches = dictionary.get(_dictionary_key(model.get_attribute(self.local_key)))
            if matches:
                model.set_relation(relation, matches[0])
        return models


class HasMany(HasOneOrMany):
    """Many related rows hold the parent's key (``posts`` -> ``comments.post_id``)."""

    def get_results(self) -> list[Model]:
        if self.get_parent_key() is None:
            return []
        return self.get()

    def init_relation(self, models: list[Model], relation: str) -> list[Model]:
        for model in models:
            model.set_relation(relation, [])
        return models

    def match(self, models: list[Model], results: list[Model], relation: str) -> list[Model]:
        dictionary = self.build_dictionary(results)
        for model in models:
            matches = dictionary.get(_dictionary_key(model.get_attribute(self.local_key)))
            if not matches:
                continue
            current = model.get_relation(relation)
            if isinstance(current, list):
                current.extend(matches)
            else:
                model.set_relation(relation, list(matches))
        return models


class BelongsTo(Relation):
    """The parent (child, here) holds the related row's key (``comments.post_id`` -> ``posts``)."""

    def __init__(
        self,
        query: QueryBuilder,
        child: Model,
        related: Model,
        foreign_key: str,
        owner_key: str,
        relation_name: str,
    ) -> None:
        self.child = child
        self.foreign_key = foreign_key
        self.owner_key = owner_key
        self.relation_name = relation_name
        super().__init__(query, child, related)

    def add_constraints(self) -> None:
        if self.constraints_enabled():
            self.query.where(self.owner_key, "=", self.child.get_attribute(self.foreign_key))

    def add_eager_constraints(self, models: list[Model]) -> None:
        self.query.where_in(self.owner_key, self.get_keys(models, self.foreign_key))

    def init_relation(self, models: list[Model], relation: str) -> list[Model]:
        for model in models:
            model.set_relation(relation, None)
        return models

    def match(self, models: list[Model], results: list[Model], relation: str) -> list[Model]:
        dictionary: dict[Any, Model] = {}
        for result in results:
            dictionary.setdefault(_dictionary_key(result.get_attribute(self.owner_key)), result)

        for model in models:
            owner = dictionary.get(_dictionary_key(model.get_attribute(self.foreign_key)))
            if owner is not None:
                model.set_relation(relation, owner)
        return models

    def get_results(self) -> Model | None:
        if self.child.get_attribute(self.foreign_key) is None:
            return None
        return self.first()

    def associate(self, model: Model | Any) -> Model:
        """Point the child's foreign key at ``model`` (or a raw key) without saving."""
        from recordkit.base import Model

        owner_key = model.get_attribute(self.owner_key) if isinstance(model, Model) else model
        self.child.set_attribute(self.foreign_key, owner_key)

        if isinstance(model, Model):
            self.child.set_relation(self.relation_name, model)
        elif self.child.is_dirty(self.foreign_key):
            self.child.unset_relation(self.relation_name)

        return self.child

    def dissociate(self) -> Model:
        """Clear the child's foreign key without saving."""
        self.child.set_attribute(self.foreign_key, None)
        self.child.set_relation(self.relation_name, None)
        return self.child

    def update(self, attributes: Mapping[str, Any]) -> bool:
        owner = self.get_results()
        if owner is None:
            return False
        return owner.fill(attributes).save()

    def get_foreign_key_name(self) -> str:
        return self.foreign_key

    def get_qualified_foreign_key_name(self) -> str:
        return f"{self.child.get_table()}.{self.foreign_key}"

    def get_owner_key_name(self) -> str:
        return self.owner_key

    def get_qualified_owner_key_name(self) -> str:
        return f"{self.related.get_table()}.{self.owner_key}"


class BelongsToMany(Relation):
    """Many-to-many through a pivot table (``posts`` <- ``post_tags`` -> ``tags``)."""

    def __init__(
        self,
        query: QueryBuilder,
        parent: Model,
        related: Model,
        table: str,
        foreign_pivot_key: str,
        related_pivot_key: str,
        parent_key: str,
        related_key: str,
        relation_name: str | None = None,
    ) -> None:
        self.table = table
        self.foreign_pivot_key = foreign_pivot_key
        self.related_pivot_key = related_pivot_key
        self.parent_key = parent_key
        self.related_key = related_key
        self.relation_name = relation_name
        self.pivot_columns: list[str] = []
        super().__init__(query, parent, related)

    def add_constraints(self) -> None:
        self._perform_join()
        if self.constraints_enabled():
            self.query.where(self.get_qualified_foreign_pivot_key_name(), "=", self.get_parent_key())

    def _perform_join(self) -> None:
        related_key = f"{self.related.get_table()}.{self.related_key}"
        self.query.join(self.table, related_key, "=", self.get_qualified_related_pivot_key_name())

    def add_eager_constraints(self, models: list[Model]) -> None:
        self.query.where_in(self.get_qualified_foreign_pivot_key_name(), self.get_keys(models, self.parent_key))

    def init_relation(self, models: list[Model], relation: str) -> list[Model]:
        for model in models:
            model.set_relation(relation, [])
        return models

    def match(self, models: list[Model], results: list[Model], relation: str) -> list[Model]:
        dictionary: dict[Any, list[Model]] = {}
        for result in results:
            pivot = result.get_relation("pivot")
            key = _dictionary_key(pivot.get_attribute(self.foreign_pivot_key))
            dictionary.setdefault(key, []).append(result)

        for model in models:
            matches = dictionary.get(_dictionary_key(model.get_attribute(self.parent_key)))
            if not matches:
                continue
            current = model.get_relation(relation)
            if isinstance(current, list):
                current.extend(matches)
            else:
                model.set_relation(relation, list(matches))
        return models

    def get_results(self) -> list[Model]:
        if self.get_parent_key() is None:
            return []
        return self.get()

    def get_parent_key(self) -> Any:
        return self.parent.get_attribute(self.parent_key)

    def get(self, columns: str | Iterable[str] | None = None) -> list[Model]:
        """Select the related rows plus aliased pivot columns.

        The ``pivot_*`` columns are moved off each related model into a
        :class:`~recordkit.base.Pivot` stored under its ``pivot`` relation.
        """
        models = self.related.hydrate(self.query.get(self._select_columns(columns)))
        self._hydrate_pivot_relation(models)
        return models

    def with_pivot(self, *columns: str) -> BelongsToMany:
        """Also select these pivot table columns onto each ``pivot`` record."""
        for column in columns:
            if column not in self.pivot_columns:
                self.pivot_columns.append(column)
        return self

    def _select_columns(self, columns: str | Iterable[str] | None) -> list[str]:
        if columns is None or columns == "*" or list(columns) == ["*"]:
            selected = [f"{self.related.get_table()}.*"]
        else:
            selected = [columns] if isinstance(columns, str) else list(columns)
        return selected + self._aliased_pivot_columns()

    def _aliased_pivot_columns(self) -> list[str]:
        columns = dict.fromkeys([self.foreign_pivot_key, self.related_pivot_key, *self.pivot_columns])
        return [f"{self.table}.{column} as pivot_{column}" for column in columns]

    def _hydrate_pivot_relation(self, models: list[Model]) -> None:
        for model in models:
            values = {}
            for key, value in model.get_attributes().items():
                if key.startswith("pivot_"):
                    values[key[len("pivot_"):]] = value
                    model.unset(key)
            model.sync_original()
            model.set_relation("pivot", self.new_existing_pivot(values))

    def new_existing_pivot(self, attributes: Mapping[str, Any]) -> Pivot:
        from recordkit.base import Pivot

        pivot = Pivot(connection=self.parent.connection, table=self.table)
        pivot.set_raw_attributes(attributes, sync=True)
        pivot.exists = True
        return pivot

    # ========== Pivot maintenance ==========

    def new_pivot_statement(self) -> QueryBuilder:
        from recordkit.query import QueryBuilder

        return QueryBuilder(self.parent.connection, self.table)

    def new_pivot_query(self) -> QueryBuilder:
        """A query on the pivot table scoped to this parent."""
        return self.new_pivot_statement().where(self.foreign_pivot_key, "=", self.get_parent_key())

    def attach(self, ids: Any, attributes: Mapping[str, Any] | None = None) -> None:
        """Insert pivot rows linking the parent to ``ids``.

        Example:
            >>> post.tags().attach(3)
            >>> post.tags().attach([4, 5])
            >>> post.tags().attach({6: {"position": 1}})
        """
        for id, extra in self._parse_ids(ids).items():
            record = {
                self.foreign_pivot_key: self.get_parent_key(),
                self.related_pivot_key: id,
                **extra,
                **(attributes or {}),
            }
            self.new_pivot_statement().insert(record)

    def detach(self, ids: Any = None) -> int:
        """Delete pivot rows for ``ids``, or all of the parent's when omitted."""
        query = self.new_pivot_query()
        if ids is not None:
            keys = list(self._parse_ids(ids))
            if not keys:
                return 0
            query.where_in(self.related_pivot_key, keys)
        return query.delete()

    def sync(self, ids: Any, detaching: bool = True) -> dict[str, list[Any]]:
        """Make the pivot table hold exactly ``ids`` for this parent.

        Returns:
            ``{"attached": [...], "detached": [...], "updated": [...]}``

        Example:
            >>> post.tags().sync([2, 3])  # currently attached: 1, 2
            {'attached': [3], 'detached': [1], 'updated': []}
        """
        changes: dict[str, list[Any]] = {"attached": [], "detached": [], "updated": []}

        records = self._parse_ids(ids)
        current = self.new_pivot_query().pluck(self.related_pivot_key)
        current_keys = {_dictionary_key(key) for key in current}
        record_keys = {_dictionary_key(key) for key in records}

        detach = [key for key in current if _dictionary_key(key) not in record_keys]
        if detaching and detach:
            self.detach(detach)
            changes["detached"] = detach

        for id, attributes in records.items():
            if _dictionary_key(id) not in current_keys:
                self.attach(id, attributes)
                changes["attached"].append(id)
            elif attributes and self.update_existing_pivot(id, attributes):
                changes["updated"].append(id)

        return changes

    def sync_without_detaching(self, ids: Any) -> dict[str, list[Any]]:
        return self.sync(ids, detaching=False)

    def toggle(self, ids: Any) -> dict[str, list[Any]]:
        """Detach the given ids that are attached and attach the rest."""
        records = self._parse_ids(ids)
        current_keys = {_dictionary_key(key) for key in self.new_pivot_query().pluck(self.related_pivot_key)}

        detach = [id for id in records if _dictionary_key(id) in current_keys]
        if detach:
            self.detach(detach)

        attach = {id: attributes for id, attributes in records.items() if _dictionary_key(id) not in current_keys}
        if attach:
            self.attach(attach)

        return {"attached": list(attach), "detached": detach}

    def update_existing_pivot(self, id: Any, attributes: Mapping[str, Any]) -> int:
        return self.new_pivot_query().where(self.related_pivot_key, "=", id).update(attributes)

    def _parse_ids(self, value: Any) -> dict[Any, dict[str, Any]]:
        from recordkit.base import Model

        if isinstance(value, Model):
            return {value.get_attribute(self.related_key): {}}
        if isinstance(value, Mapping):
            return {key: dict(attributes or {}) for key, attributes in value.items()}
        if isinstance(value, Iterable) and not isinstance(value, (str, bytes)):
            records: dict[Any, dict[str, Any]] = {}
            for item in value:
                key = item.get_attribute(self.related_key) if isinstance(item, Model) else item
                records[key] = {}
            return records
        return {value: {}}

    def get_foreign_key_name(self) -> str:
        return self.foreign_pivot_key

    def get_qualified_foreign_pivot_key_name(self) -> str:
        return f"{self.table}.{self.foreign_pivot_key}"

    def get_qualified_related_pivot_key_name(self) -> str:
        return f"{self.table}.{self.related_pivot_key}"

    def get_table(self) -> str:
        return self.table


# ========== Eager loading ==========

RelationSpec = str | Mapping[str, Callable[[Relation], Any] | None]


def eager_load(models: list[Model], *relations: RelationSpec) -> list[Model]:
    """Load relations for a batch of models, one query per relation level.

    Args:
        models: Parent models, all of the same class.
        *relations: Relation names. Dotted names load nested relations
            (``"comments.user"``), and a mapping of name to callback lets the
            callback constrain the eager query.

    Example:
        >>> posts = Post.query(conn).get()
        >>> eager_load(posts, "comments.user", {"tags": lambda r: r.order_by("name")})
    """
    if not models:
        return models

    parsed = _parse_relations(relations)
    for name, constraint in parsed.items():
        if "." in name:
            continue
        nested = {
            child[len(name) + 1:]: child_constraint
            for child, child_constraint in parsed.items()
            if child.startswith(name + ".")
        }
        _eager_load_relation(models, name, constraint, nested)
    return models


def _eager_load_relation(
    models: list[Model],
    name: str,
    constraint: Callable[[Relation], Any] | None,
    nested: dict[str, Callable[[Relation], Any] | None],
) -> None:
    relation = get_eager_relation(models[0], name)
    relation.add_eager_constraints(models)
    if constraint is not None:
        constraint(relation)

    logger.debug("Eager loading %s for %d %s models", name, len(models), type(models[0]).__name__)

    relation.init_relation(models, name)
    results = relation.get_eager()
    relation.match(models, results, name)

    if nested and results:
        eager_load(results, nested)


def get_eager_relation(model: Model, name: str) -> Relation:
    """Build the named relation without its single-parent constraint."""
    if name not in type(model).__relationships__:
        raise RelationContractError(
            f"Call to undefined relationship [{name}] on model [{type(model).__name__}]."
        )
    with Relation.no_constraints():
        relation = getattr(model, name)()
    return ensure_relation(model, name, relation)


def ensure_relation(model: Model, name: str, relation: Any) -> Relation:
    """Check that a relationship method returned a Relation."""
    if isinstance(relation, Relation):
        return relation
    if relation is None:
        raise RelationContractError(
            f"{type(model).__name__}.{name} must return a relationship instance, "
            'but "None" was returned. Was the "return" keyword used?'
        )
    raise RelationContractError(f"{type(model).__name__}.{name} must return a relationship instance.")


def _parse_relations(relations: Iterable[RelationSpec]) -> dict[str, Callable[[Relation], Any] | None]:
    parsed: dict[str, Callable[[Relation], Any] | None] = {}
    for item in relations:
        pairs = item.items() if isinstance(item, Mapping) else [(item, None)]
        for name, constraint in pairs:
            segments = name.split(".")
            for index in range(1, len(segments)):
                parsed.setdefault(".".join(segments[:index]), None)
            parsed[name] = constraint
    return parsed
