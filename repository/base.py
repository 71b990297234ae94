"""
Base Repository Class.

============================================================
PURPOSE
============================================================
Generic repository over one SQLAlchemy entity class. Callers get
CRUD, bulk finders and chainable builders; filtering logic can be
packaged as criteria and pushed onto the repository.

============================================================
STATE
============================================================
- handle: current QueryHandle, replaced after every terminal
  operation (also when it raised)
- criteria: CriteriaStack, kept until reset_criteria()
- scope: staged callable, kept until reset_scope()
- skip flag: ignore the criteria stack while set
- resource + flag: optional result formatting

============================================================
PROTOCOL
============================================================
Every read runs:
    criteria -> scope -> conditions -> execute -> reset -> parse

Writes skip the criteria stack (criteria are read filters) but
apply scope, and conditions where the call takes them. Builders
(where, with_, order_by, ...) only change the current handle.

Repositories flush; committing is left to the caller.

============================================================
USAGE
============================================================
```python
class UserRepository(BaseRepository):
    model_name = User

repo = UserRepository(session)
repo.push_criteria(ActiveUsers())
adults = repo.find_where({"age": ("age", ">=", 18)})
repo.where("name", "ada").first()
session.commit()
```

============================================================
"""

import inspect
import logging
from typing import Any, Callable, ClassVar, Iterable, Mapping, Optional, Sequence, Type, TypeVar, Union

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import (
    IntegrityError as SQLAlchemyIntegrityError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.orm import Mapper, Session

from repository.conditions import normalize_conditions
from repository.config import DEFAULT_PER_PAGE, RepositoryConfig
from repository.container import ModelContainer, default_container
from repository.criteria import CriteriaRegistry, CriteriaStack, Criterion, CriterionLike
from repository.exceptions import (
    BindingResolutionError,
    ConfigurationError,
    ConnectionError,
    DuplicateRecordError,
    IntegrityError,
    NotFoundError,
    QueryError,
    RepositoryTypeError,
)
from repository.handle import ALL_COLUMNS, QueryHandle
from repository.interface import RepositoryInterface
from repository.resources import Resource, ResultShape, shape_of


R = TypeVar("R", bound="BaseRepository")


def _is_mapped_class(obj: Any) -> bool:
    if not inspect.isclass(obj):
        return False
    return isinstance(sa_inspect(obj, raiseerr=False), Mapper)


class BaseRepository(RepositoryInterface):
    """
    Repository facade over one entity class.

    Subclasses set `model_name` to a mapped class, a container
    binding name, or a dotted import path. `resource` and
    `per_page` are optional class-level defaults.
    """

    model_name: ClassVar[Optional[Union[str, type]]] = None
    resource: ClassVar[Optional[Type[Resource]]] = None
    per_page: ClassVar[Optional[int]] = None

    def __init__(
        self,
        session: Session,
        container: Optional[ModelContainer] = None,
        config: Optional[RepositoryConfig] = None,
    ) -> None:
        """
        Initialize the repository and build the first handle.

        Args:
            session: SQLAlchemy session (injected)
            container: Resolves `model_name` (default container if omitted)
            config: Supplies the default page size

        Raises:
            ConfigurationError: If the model is unset or unresolvable
            RepositoryTypeError: If the model is not a mapped class
        """
        self._session = session
        self._container = container or default_container
        self._repository_name = type(self).__name__
        self._logger = logging.getLogger(f"repository.{self._repository_name}")

        if self.per_page is not None:
            self._per_page = self.per_page
        elif config is not None:
            self._per_page = config.per_page
        else:
            self._per_page = DEFAULT_PER_PAGE

        self._criteria = CriteriaStack()
        self._scope: Optional[Callable[[QueryHandle], QueryHandle]] = None
        self._skip_criteria = False
        self._resource: Optional[Type[Resource]] = type(self).resource
        self._parse_as_resource = False
        self._handle: Optional[QueryHandle] = None

        self.make_model()

    @property
    def session(self) -> Session:
        return self._session

    @property
    def handle(self) -> QueryHandle:
        """The current query handle."""
        return self._handle

    @property
    def repository_name(self) -> str:
        return self._repository_name

    # =========================================================
    # HANDLE LIFECYCLE
    # =========================================================

    def model(self) -> Union[str, type]:
        """
        Return the configured model identifier.

        Raises:
            ConfigurationError: If model_name has not been set
        """
        if not self.model_name:
            raise ConfigurationError(
                repository_name=self._repository_name,
                message=f"Model has not been set in {self._repository_name}",
            )
        return self.model_name

    def make_model(self) -> QueryHandle:
        """
        Resolve the model and install a fresh handle.

        Raises:
            ConfigurationError: If the container cannot resolve the model
            RepositoryTypeError: If the resolved object is not a mapped class
        """
        identifier = self.model()
        try:
            resolved = self._container.make(identifier)
        except BindingResolutionError as e:
            raise ConfigurationError(
                repository_name=self._repository_name,
                message=f"Class {identifier!r} is not instantiable: {e.reason}",
                identifier=identifier,
            ) from e

        if not _is_mapped_class(resolved):
            raise RepositoryTypeError(
                repository_name=self._repository_name,
                obj=resolved,
                expected="a SQLAlchemy mapped class",
            )

        self._handle = QueryHandle(self._session, resolved)
        return self._handle

    def reset_model(self: R) -> R:
        self.make_model()
        self._logger.debug("Query handle reset")
        return self

    def get_builder(self):
        """Return the current handle as a SELECT and reset the handle."""
        stmt = self._handle.to_select()
        self.reset_model()
        return stmt

    # =========================================================
    # PROTECTED HELPER METHODS
    # =========================================================

    def _handle_db_error(self, error: SQLAlchemyError, operation: str) -> None:
        """
        Wrap a SQLAlchemy error in a repository exception.

        Raises:
            RepositoryException: Always
        """
        self._logger.error(f"Database error in {operation}: {error}", exc_info=True)

        if isinstance(error, OperationalError):
            raise ConnectionError(
                repository_name=self._repository_name,
                operation=operation,
                original_error=str(error),
            ) from error

        if isinstance(error, SQLAlchemyIntegrityError):
            error_str = str(error).lower()
            error_class = IntegrityError
            if "duplicate" in error_str or "unique" in error_str:
                error_class = DuplicateRecordError
            raise error_class(
                repository_name=self._repository_name,
                operation=operation,
                original_error=str(error),
            ) from error

        raise QueryError(
            repository_name=self._repository_name,
            operation=operation,
            original_error=str(error),
        ) from error

    def _run(
        self,
        operation: str,
        execute: Callable[[QueryHandle], Any],
        criteria: bool = True,
        where: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """
        Run one terminal operation through the protocol.

        The handle is reset afterwards whatever happened.
        """
        try:
            if criteria:
                self.apply_criteria()
            self.apply_scope()
            if where is not None:
                self.apply_conditions(where)
            return execute(self._handle)
        except SQLAlchemyError as e:
            self._handle_db_error(e, operation)
            raise
        finally:
            self.reset_model()

    def _primary_key_name(self) -> str:
        mapper = sa_inspect(self._handle.model)
        return ",".join(mapper.get_property_by_column(col).key for col in mapper.primary_key)

    def _find_or_raise(self, handle: QueryHandle, record_id: Any, columns: Sequence[str] = ALL_COLUMNS) -> Any:
        entity = handle.find(record_id, columns)
        if entity is None:
            raise NotFoundError(
                repository_name=self._repository_name,
                record_id=record_id,
                id_field=self._primary_key_name(),
            )
        return entity

    # =========================================================
    # READ OPERATIONS
    # =========================================================

    def all(self, columns: Sequence[str] = ALL_COLUMNS) -> Any:
        """Retrieve every entity matching criteria and scope."""
        return self.parse_result(self._run("all", lambda h: h.get(columns)))

    def get(self, columns: Sequence[str] = ALL_COLUMNS) -> Any:
        """Alias of all()."""
        return self.all(columns)

    def first(self, columns: Sequence[str] = ALL_COLUMNS) -> Any:
        return self.parse_result(self._run("first", lambda h: h.first(columns)))

    def first_where(self, where: Mapping[str, Any], columns: Sequence[str] = ALL_COLUMNS) -> Any:
        return self.parse_result(self._run("first_where", lambda h: h.first(columns), where=where))

    def first_or_new(
        self,
        attributes: Mapping[str, Any],
        values: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """First entity matching attributes, or an unsaved new one."""
        return self.parse_result(
            self._run("first_or_new", lambda h: h.first_or_new(attributes, values))
        )

    def first_or_create(
        self,
        attributes: Mapping[str, Any],
        values: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """First entity matching attributes, or a new flushed one."""
        return self.parse_result(
            self._run("first_or_create", lambda h: h.first_or_create(attributes, values))
        )

    def find(self, record_id: Any, columns: Sequence[str] = ALL_COLUMNS) -> Any:
        """
        Find an entity by primary key.

        Raises:
            NotFoundError: If no entity matches
        """
        return self.parse_result(
            self._run("find", lambda h: self._find_or_raise(h, record_id, columns))
        )

    def find_without_fail(self, record_id: Any, columns: Sequence[str] = ALL_COLUMNS) -> Any:
        """Same as find(), returning None instead of raising NotFoundError."""
        try:
            return self.find(record_id, columns)
        except NotFoundError:
            self._logger.debug(f"find_without_fail: no record for {record_id!r}")
            return None

    def find_by_field(self, field: str, value: Any = None, columns: Sequence[str] = ALL_COLUMNS) -> Any:
        return self.parse_result(
            self._run("find_by_field", lambda h: h.where(field, value).get(columns))
        )

    def find_where(self, where: Mapping[str, Any], columns: Sequence[str] = ALL_COLUMNS) -> Any:
        """
        Find entities matching a conditions map.

        Scalar values filter on equality; (field, operator, value)
        triples use their operator. Entries apply in order.
        """
        return self.parse_result(self._run("find_where", lambda h: h.get(columns), where=where))

    def find_where_in(self, field: str, values: Iterable[Any], columns: Sequence[str] = ALL_COLUMNS) -> Any:
        return self.parse_result(
            self._run("find_where_in", lambda h: h.where_in(field, values).get(columns))
        )

    def find_where_not_in(self, field: str, values: Iterable[Any], columns: Sequence[str] = ALL_COLUMNS) -> Any:
        return self.parse_result(
            self._run("find_where_not_in", lambda h: h.where_not_in(field, values).get(columns))
        )

    def paginate(self, limit: Optional[int] = None, columns: Sequence[str] = ALL_COLUMNS, page: int = 1) -> Any:
        """Length-aware page of results (runs a count query)."""
        per_page = limit or self._per_page
        return self.parse_result(
            self._run("paginate", lambda h: h.paginate(per_page, page, columns))
        )

    def simple_paginate(self, limit: Optional[int] = None, columns: Sequence[str] = ALL_COLUMNS, page: int = 1) -> Any:
        """Page of results that only knows whether a next page exists."""
        per_page = limit or self._per_page
        return self.parse_result(
            self._run("simple_paginate", lambda h: h.simple_paginate(per_page, page, columns))
        )

    def count(self) -> int:
        return self._run("count", lambda h: h.count())

    def pluck(self, column: str, key: Optional[str] = None) -> Any:
        """Values of one column, or a dict keyed by `key`."""
        return self._run("pluck", lambda h: h.pluck(column, key))

    def lists(self, column: str, key: Optional[str] = None) -> Any:
        """Alias of pluck()."""
        return self.pluck(column, key)

    # =========================================================
    # WRITE OPERATIONS
    # =========================================================

    def create(self, attributes: Mapping[str, Any]) -> Any:
        entity = self._run(
            "create",
            lambda h: h.save(h.new_instance(attributes)),
            criteria=False,
        )
        self._logger.debug(f"Created entity: {entity!r}")
        return self.parse_result(entity)

    def update(self, attributes: Mapping[str, Any], record_id: Any) -> Any:
        """
        Update an entity by primary key.

        Raises:
            NotFoundError: If no entity matches
        """
        def execute(h: QueryHandle) -> Any:
            entity = self._find_or_raise(h, record_id)
            h.fill(entity, attributes)
            return h.save(entity)

        entity = self._run("update", execute, criteria=False)
        self._logger.debug(f"Updated entity: {entity!r}")
        return self.parse_result(entity)

    def update_or_create(
        self,
        attributes: Mapping[str, Any],
        values: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        return self.parse_result(
            self._run(
                "update_or_create",
                lambda h: h.update_or_create(attributes, values),
                criteria=False,
            )
        )

    def delete(self, record_id: Any) -> bool:
        """
        Delete an entity by primary key.

        Raises:
            NotFoundError: If no entity matches
        """
        def execute(h: QueryHandle) -> bool:
            h.remove(self._find_or_raise(h, record_id))
            return True

        deleted = self._run("delete", execute, criteria=False)
        self._logger.debug(f"Deleted entity {record_id!r}")
        return deleted

    def delete_where(self, where: Mapping[str, Any]) -> int:
        """Delete every entity matching a conditions map; returns the row count."""
        deleted = self._run("delete_where", lambda h: h.delete(), criteria=False, where=where)
        self._logger.debug(f"Deleted {deleted} entities")
        return deleted

    # =========================================================
    # BUILDER METHODS
    # =========================================================

    def where(self: R, field: str, value: Any, operator: str = "=") -> R:
        self._handle = self._handle.where(field, value, operator)
        return self

    def where_in(self: R, field: str, values: Iterable[Any]) -> R:
        self._handle = self._handle.where_in(field, values)
        return self

    def where_not_in(self: R, field: str, values: Iterable[Any]) -> R:
        self._handle = self._handle.where_not_in(field, values)
        return self

    def where_date(self: R, column: str, value: Any) -> R:
        self._handle = self._handle.where_date(column, value)
        return self

    def where_has(self: R, relation: str, callback: Optional[Callable[[QueryHandle], QueryHandle]] = None) -> R:
        self._handle = self._handle.where_has(relation, callback)
        return self

    def where_doesnt_have(self: R, relation: str) -> R:
        self._handle = self._handle.where_doesnt_have(relation)
        return self

    def has(self: R, relation: str) -> R:
        self._handle = self._handle.has(relation)
        return self

    def with_(self: R, relations: Union[str, Iterable[str]]) -> R:
        self._handle = self._handle.with_(relations)
        return self

    def with_count(self: R, relations: Union[str, Iterable[str]]) -> R:
        self._handle = self._handle.with_count(relations)
        return self

    def order_by(self: R, column: str, direction: str = "asc") -> R:
        self._handle = self._handle.order_by(column, direction)
        return self

    # =========================================================
    # CRITERIA
    # =========================================================

    def push_criteria(self: R, criterion: CriterionLike) -> R:
        """
        Push a criterion onto the stack.

        Accepts an instance, a class, a registered name or a dotted
        path. Classes and identifiers are built with no arguments.

        Raises:
            ConfigurationError: If an identifier cannot be resolved or built
            RepositoryTypeError: If the result has no apply(handle, repository)
        """
        if isinstance(criterion, str) or inspect.isclass(criterion):
            try:
                criterion_class = CriteriaRegistry.resolve(criterion)
            except BindingResolutionError as e:
                raise ConfigurationError(
                    repository_name=self._repository_name,
                    message=f"Criterion {criterion!r} cannot be resolved: {e.reason}",
                    identifier=criterion,
                ) from e

            abstract = getattr(criterion_class, "__abstractmethods__", ())
            if not issubclass(criterion_class, Criterion) or "apply" in abstract:
                raise RepositoryTypeError(
                    repository_name=self._repository_name,
                    obj=criterion_class,
                    expected="a Criterion with apply(handle, repository)",
                )
            try:
                criterion = criterion_class()
            except TypeError as e:
                raise ConfigurationError(
                    repository_name=self._repository_name,
                    message=f"Criterion {criterion_class.__name__} is not instantiable: {e}",
                    identifier=criterion_class,
                ) from e

        if not isinstance(criterion, Criterion):
            raise RepositoryTypeError(
                repository_name=self._repository_name,
                obj=criterion,
                expected="a Criterion with apply(handle, repository)",
            )

        self._criteria.push(criterion)
        return self

    def get_criteria(self) -> CriteriaStack:
        return self._criteria

    def skip_criteria(self: R, status: bool = True) -> R:
        self._skip_criteria = status
        return self

    def reset_criteria(self: R) -> R:
        self._criteria = CriteriaStack()
        return self

    def apply_criteria(self: R) -> R:
        """Apply every stacked criterion in push order, unless skipped."""
        if self._skip_criteria:
            return self

        for criterion in self._criteria:
            if not isinstance(criterion, Criterion):
                self._logger.debug(f"Skipping {criterion!r}: not a criterion")
                continue
            self._handle = criterion.apply(self._handle, self)
            self._logger.debug(f"Applied criterion {criterion!r}")
        return self

    # =========================================================
    # SCOPE AND CONDITIONS
    # =========================================================

    def scope_query(self: R, scope: Callable[[QueryHandle], QueryHandle]) -> R:
        """
        Stage a transform applied to the handle after criteria.

        The scope stays staged across terminal operations until
        reset_scope() is called.
        """
        if not callable(scope):
            raise RepositoryTypeError(
                repository_name=self._repository_name,
                obj=scope,
                expected="callable",
            )
        self._scope = scope
        return self

    def reset_scope(self: R) -> R:
        self._scope = None
        return self

    def apply_scope(self: R) -> R:
        if self._scope is not None:
            self._handle = self._scope(self._handle)
            self._logger.debug("Applied scope")
        return self

    def apply_conditions(self: R, where: Mapping[str, Any]) -> R:
        for field, operator, value in normalize_conditions(where, self._repository_name):
            self._handle = self._handle.where(field, value, operator)
        return self

    # =========================================================
    # RESULT FORMATTING
    # =========================================================

    def set_resource(self: R, resource: Optional[Type[Resource]]) -> R:
        self._resource = resource
        return self

    def as_resource(self: R, status: bool = True) -> R:
        self._parse_as_resource = status
        return self

    def parse_result(self, result: Any) -> Any:
        """
        Wrap a raw result in the configured resource.

        Returns the result unchanged when formatting is off, no
        resource is set, or the result is None.
        """
        resource = self._resource
        if not self._parse_as_resource or resource is None or result is None:
            return result

        shape = shape_of(result)
        if shape is ResultShape.SINGLE:
            return resource.make(result)
        if shape is ResultShape.COLLECTION or shape is ResultShape.PAGINATED:
            return resource.collection(result)
        raise ValueError(f"Unhandled result shape: {shape}")
