"""
Repository Package.

============================================================
PURPOSE
============================================================
Generic data access over SQLAlchemy entities: a repository
facade with CRUD, bulk finders and chainable builders, plus
stackable criteria for reusable filtering and optional result
formatting through resources.

============================================================
MODULES
============================================================
- base: BaseRepository (state machine + terminal protocol)
- handle: QueryHandle (SQLAlchemy adapter)
- criteria: Criterion, CriteriaStack, CriteriaRegistry
- conditions: operators and conditions maps
- resources: Resource, ResourceCollection, ResultShape
- container: ModelContainer (entity resolution)
- pagination: Page, SimplePage
- config / database: settings and session plumbing
- exceptions: RepositoryException hierarchy

============================================================
"""

from repository.base import BaseRepository
from repository.container import ModelContainer, default_container, import_string
from repository.criteria import (
    CallableCriterion,
    CriteriaRegistry,
    CriteriaStack,
    Criterion,
    OrderByCriterion,
    WhereCriterion,
    WithRelationsCriterion,
)
from repository.exceptions import (
    BindingResolutionError,
    ConfigurationError,
    ConnectionError,
    DuplicateRecordError,
    IntegrityError,
    NotFoundError,
    QueryError,
    RepositoryException,
    RepositoryTypeError,
    ValidationError,
)
from repository.handle import QueryHandle
from repository.interface import RepositoryInterface
from repository.pagination import Page, SimplePage
from repository.resources import Resource, ResourceCollection, ResultShape, shape_of

__all__ = [
    # Repository
    "BaseRepository",
    "RepositoryInterface",
    "QueryHandle",
    # Criteria
    "Criterion",
    "CriteriaStack",
    "CriteriaRegistry",
    "WhereCriterion",
    "OrderByCriterion",
    "WithRelationsCriterion",
    "CallableCriterion",
    # Resolution
    "ModelContainer",
    "default_container",
    "import_string",
    # Results
    "Page",
    "SimplePage",
    "Resource",
    "ResourceCollection",
    "ResultShape",
    "shape_of",
    # Exceptions
    "RepositoryException",
    "ConfigurationError",
    "RepositoryTypeError",
    "NotFoundError",
    "ValidationError",
    "QueryError",
    "ConnectionError",
    "IntegrityError",
    "DuplicateRecordError",
    "BindingResolutionError",
]
