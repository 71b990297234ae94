"""
Query Handle.

============================================================
PURPOSE
============================================================
The engine-facing object repositories, criteria and scopes work
on. A QueryHandle pairs a mapped entity class and a Session with
the filters, orderings, loader options and relation counts
accumulated so far.

Handles are immutable: every builder method returns a new
handle. Terminal methods (get, first, find, count, paginate,
pluck, delete, ...) execute against the session.

============================================================
USAGE
============================================================
```python
handle = QueryHandle(session, User)
adults = (
    handle.where("age", 18, ">=")
    .order_by("name")
    .with_("posts")
    .get()
)
```

============================================================
"""

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from sqlalchemy import and_, delete, func, inspect as sa_inspect, select
from sqlalchemy.orm import Session, load_only, selectinload
from sqlalchemy.sql import Select

from repository.conditions import build_clause
from repository.exceptions import ConfigurationError, ValidationError
from repository.pagination import Page, SimplePage


logger = logging.getLogger(__name__)

ALL_COLUMNS = ("*",)


def _wants_all(columns: Optional[Sequence[str]]) -> bool:
    return not columns or list(columns) == ["*"]


def _as_list(value: Union[str, Iterable[str]]) -> List[str]:
    if isinstance(value, str):
        return [value]
    return list(value)


def _relation(model: type, name: str):
    mapper = sa_inspect(model)
    if name not in mapper.relationships:
        raise ValidationError(
            repository_name=model.__name__,
            operation="relation",
            field=name,
            reason=f"{model.__name__} has no relationship {name!r}",
        )
    return getattr(model, name), mapper.relationships[name]


_COUNT_LABELS = "_repository_count_labels"


def _set_counts(entity: Any, counts: Mapping[str, int]) -> None:
    """
    Replace the relation counts carried by an entity.

    The session hands the same object to later queries, so labels
    from an earlier with_count() are dropped when not asked for again.
    """
    previous = entity.__dict__.get(_COUNT_LABELS, ())
    if not previous and not counts:
        return
    for label in previous:
        if label not in counts:
            entity.__dict__.pop(label, None)
    for label, value in counts.items():
        setattr(entity, label, value)
    entity.__dict__[_COUNT_LABELS] = tuple(counts)


@dataclass(frozen=True, eq=False)
class QueryHandle:
    """
    Immutable query state for one entity class.

    Attributes:
        session: Session used by terminal methods (None for
            handles built inside relation callbacks)
        model: Mapped entity class
        wheres: Filter clauses, AND-ed together
        orders: ORDER BY clauses
        loads: Loader options (eager loading)
        counts: (attribute name, labelled count subquery) pairs
    """

    session: Optional[Session]
    model: type
    wheres: Tuple[Any, ...] = ()
    orders: Tuple[Any, ...] = ()
    loads: Tuple[Any, ...] = ()
    counts: Tuple[Tuple[str, Any], ...] = ()

    @property
    def name(self) -> str:
        return self.model.__name__

    # =========================================================
    # INTROSPECTION
    # =========================================================

    def column(self, field: str):
        """
        Get the mapped column attribute for a field name.

        Raises:
            ValidationError: If the entity has no such column
        """
        mapper = sa_inspect(self.model)
        if field not in mapper.column_attrs:
            raise ValidationError(
                repository_name=self.name,
                operation="column",
                field=field,
                reason=f"{self.name} has no column {field!r}",
            )
        return getattr(self.model, field)

    def primary_key_clause(self, record_id: Any):
        mapper = sa_inspect(self.model)
        pk_columns = mapper.primary_key
        if len(pk_columns) == 1:
            return pk_columns[0] == record_id
        if not isinstance(record_id, (tuple, list)) or len(record_id) != len(pk_columns):
            raise ValidationError(
                repository_name=self.name,
                operation="find",
                field="id",
                reason=f"composite primary key expects {len(pk_columns)} values",
            )
        return and_(*(col == value for col, value in zip(pk_columns, record_id)))

    def _check_attributes(self, attributes: Mapping[str, Any], operation: str) -> None:
        known = sa_inspect(self.model).attrs
        for key in attributes:
            if key not in known:
                raise ValidationError(
                    repository_name=self.name,
                    operation=operation,
                    field=key,
                    reason=f"{self.name} has no attribute {key!r}",
                )

    def _require_session(self) -> Session:
        if self.session is None:
            raise ConfigurationError(
                repository_name=self.name,
                message="query handle is not bound to a session",
            )
        return self.session

    # =========================================================
    # BUILDER METHODS
    # =========================================================

    def filter(self, *clauses) -> "QueryHandle":
        """Add raw SQLAlchemy filter clauses."""
        return replace(self, wheres=self.wheres + tuple(clauses))

    def where(self, field: str, value: Any, operator: str = "=") -> "QueryHandle":
        return self.filter(build_clause(self.column(field), operator, value, self.name))

    def where_all(self, attributes: Mapping[str, Any]) -> "QueryHandle":
        """Equality filter on every (field, value) pair."""
        handle = self
        for field, value in attributes.items():
            handle = handle.where(field, value)
        return handle

    def where_in(self, field: str, values: Iterable[Any]) -> "QueryHandle":
        return self.filter(self.column(field).in_(list(values)))

    def where_not_in(self, field: str, values: Iterable[Any]) -> "QueryHandle":
        return self.filter(self.column(field).not_in(list(values)))

    def where_date(self, field: str, value: Union[date, str], operator: str = "=") -> "QueryHandle":
        """Compare the calendar date part of a column."""
        if isinstance(value, datetime):
            value = value.date()
        if isinstance(value, date):
            value = value.isoformat()
        return self.filter(build_clause(func.date(self.column(field)), operator, value, self.name))

    def has(self, relation: str) -> "QueryHandle":
        """Keep rows with at least one related row. Dotted paths nest."""
        return self.filter(self._relation_exists(relation))

    def where_has(self, relation: str, callback=None) -> "QueryHandle":
        """
        Keep rows whose related rows match the callback's filters.

        The callback receives a handle for the related entity and
        returns it with filters added.
        """
        return self.filter(self._relation_exists(relation, callback))

    def where_doesnt_have(self, relation: str, callback=None) -> "QueryHandle":
        return self.filter(~self._relation_exists(relation, callback))

    def with_(self, relations: Union[str, Iterable[str]]) -> "QueryHandle":
        """Eager-load relations. Dotted paths load nested relations."""
        options = tuple(self._loader(path) for path in _as_list(relations))
        return replace(self, loads=self.loads + options)

    def with_count(self, relations: Union[str, Iterable[str]]) -> "QueryHandle":
        """Attach `<relation>_count` to every loaded entity."""
        counts = []
        for name in _as_list(relations):
            label = f"{name}_count"
            counts.append((label, self._count_subquery(name).label(label)))
        return replace(self, counts=self.counts + tuple(counts))

    def order_by(self, field: str, direction: str = "asc") -> "QueryHandle":
        direction = str(direction).lower()
        if direction not in ("asc", "desc"):
            raise ValidationError(
                repository_name=self.name,
                operation="order_by",
                field=field,
                reason=f"direction must be 'asc' or 'desc', got {direction!r}",
            )
        counted = dict(self.counts)
        if field in counted:
            # the label is absent from pluck() selects
            column = counted[field].element
        else:
            column = self.column(field)
        return replace(self, orders=self.orders + (getattr(column, direction)(),))

    def _relation_exists(self, relation: str, callback=None):
        model = self.model
        chain = []
        for name in relation.split("."):
            attr, prop = _relation(model, name)
            chain.append((attr, prop))
            model = prop.mapper.class_

        clause = None
        if callback is not None:
            inner = callback(QueryHandle(None, model))
            if inner.wheres:
                clause = and_(*inner.wheres)

        for attr, prop in reversed(chain):
            args = () if clause is None else (clause,)
            clause = attr.any(*args) if prop.uselist else attr.has(*args)
        return clause

    def _loader(self, path: str):
        model = self.model
        option = None
        for name in path.split("."):
            attr, prop = _relation(model, name)
            option = selectinload(attr) if option is None else option.selectinload(attr)
            model = prop.mapper.class_
        return option

    def _count_subquery(self, name: str):
        _, prop = _relation(self.model, name)
        source = prop.secondary if prop.secondary is not None else prop.mapper.local_table
        return (
            select(func.count())
            .select_from(source)
            .where(prop.primaryjoin)
            .correlate(sa_inspect(self.model).local_table)
            .scalar_subquery()
        )

    # =========================================================
    # STATEMENTS
    # =========================================================

    def to_select(self, columns: Optional[Sequence[str]] = None) -> Select:
        """Build the SQLAlchemy SELECT for the current state."""
        stmt = select(self.model)
        if self.counts:
            stmt = stmt.add_columns(*(labelled for _, labelled in self.counts))
        if self.wheres:
            stmt = stmt.where(*self.wheres)
        if self.orders:
            stmt = stmt.order_by(*self.orders)

        options = list(self.loads)
        if not _wants_all(columns):
            options.append(load_only(*(self.column(c) for c in columns)))
        if options:
            stmt = stmt.options(*options)
        return stmt

    def _fetch(self, stmt: Select) -> List[Any]:
        session = self._require_session()
        if not self.counts:
            entities = list(session.scalars(stmt).all())
            for entity in entities:
                _set_counts(entity, {})
            return entities

        entities = []
        for row in session.execute(stmt).all():
            entity = row[0]
            _set_counts(entity, {label: value for (label, _), value in zip(self.counts, row[1:])})
            entities.append(entity)
        return entities

    # =========================================================
    # TERMINAL METHODS: READ
    # =========================================================

    def get(self, columns: Sequence[str] = ALL_COLUMNS) -> List[Any]:
        return self._fetch(self.to_select(columns))

    def first(self, columns: Sequence[str] = ALL_COLUMNS) -> Optional[Any]:
        rows = self._fetch(self.to_select(columns).limit(1))
        return rows[0] if rows else None

    def find(self, record_id: Any, columns: Sequence[str] = ALL_COLUMNS) -> Optional[Any]:
        return self.filter(self.primary_key_clause(record_id)).first(columns)

    def count(self) -> int:
        stmt = select(func.count()).select_from(self.model)
        if self.wheres:
            stmt = stmt.where(*self.wheres)
        return self._require_session().scalar(stmt) or 0

    def pluck(self, column: str, key: Optional[str] = None) -> Union[List[Any], Dict[Any, Any]]:
        """
        Fetch a single column.

        Returns a list of values, or a dict keyed by `key` when given.
        """
        columns = [self.column(column)]
        if key is not None:
            columns.append(self.column(key))
        stmt = select(*columns)
        if self.wheres:
            stmt = stmt.where(*self.wheres)
        if self.orders:
            stmt = stmt.order_by(*self.orders)

        rows = self._require_session().execute(stmt).all()
        if key is None:
            return [row[0] for row in rows]
        return {row[1]: row[0] for row in rows}

    def paginate(
        self,
        per_page: int,
        page: int = 1,
        columns: Sequence[str] = ALL_COLUMNS,
    ) -> Page:
        self._check_page(per_page, page)
        total = self.count()
        stmt = self.to_select(columns).limit(per_page).offset((page - 1) * per_page)
        return Page(items=self._fetch(stmt), total=total, per_page=per_page, current_page=page)

    def simple_paginate(
        self,
        per_page: int,
        page: int = 1,
        columns: Sequence[str] = ALL_COLUMNS,
    ) -> SimplePage:
        self._check_page(per_page, page)
        stmt = self.to_select(columns).limit(per_page + 1).offset((page - 1) * per_page)
        items = self._fetch(stmt)
        return SimplePage(
            items=items[:per_page],
            per_page=per_page,
            current_page=page,
            has_more_pages=len(items) > per_page,
        )

    def _check_page(self, per_page: int, page: int) -> None:
        for field, value in (("per_page", per_page), ("page", page)):
            if not isinstance(value, int) or value < 1:
                raise ValidationError(
                    repository_name=self.name,
                    operation="paginate",
                    field=field,
                    reason=f"must be a positive integer, got {value!r}",
                )

    # =========================================================
    # TERMINAL METHODS: WRITE
    # =========================================================

    def new_instance(self, attributes: Mapping[str, Any]) -> Any:
        """Build an unsaved entity from attributes."""
        self._check_attributes(attributes, "new_instance")
        return self.model(**attributes)

    def fill(self, entity: Any, attributes: Mapping[str, Any]) -> Any:
        self._check_attributes(attributes, "fill")
        for key, value in attributes.items():
            setattr(entity, key, value)
        return entity

    def save(self, entity: Any) -> Any:
        session = self._require_session()
        session.add(entity)
        session.flush()
        return entity

    def remove(self, entity: Any) -> None:
        session = self._require_session()
        session.delete(entity)
        session.flush()

    def first_or_new(self, attributes: Mapping[str, Any], values: Optional[Mapping[str, Any]] = None) -> Any:
        entity = self.where_all(attributes).first()
        if entity is None:
            entity = self.new_instance({**attributes, **(values or {})})
        return entity

    def first_or_create(self, attributes: Mapping[str, Any], values: Optional[Mapping[str, Any]] = None) -> Any:
        entity = self.where_all(attributes).first()
        if entity is None:
            entity = self.save(self.new_instance({**attributes, **(values or {})}))
        return entity

    def update_or_create(self, attributes: Mapping[str, Any], values: Optional[Mapping[str, Any]] = None) -> Any:
        entity = self.where_all(attributes).first()
        if entity is None:
            entity = self.new_instance({**attributes, **(values or {})})
        else:
            self.fill(entity, values or {})
        return self.save(entity)

    def delete(self) -> int:
        """Bulk-delete every row matching the current filters."""
        stmt = delete(self.model)
        if self.wheres:
            stmt = stmt.where(*self.wheres)
        result = self._require_session().execute(stmt)
        return result.rowcount
