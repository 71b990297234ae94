"""
Repository Layer Exceptions.

============================================================
PURPOSE
============================================================
Defines repository-specific exceptions for proper error handling
and propagation. Database errors raised while a repository runs a
query are caught and wrapped in these exceptions.

============================================================
EXCEPTION HIERARCHY
============================================================
RepositoryException (base)
├── ConfigurationError        model unset / identifier unresolvable
├── RepositoryTypeError       capability check failed (also a TypeError)
├── NotFoundError             primary-key lookup matched nothing
├── ValidationError           unknown field, operator, relation, ...
├── QueryError
├── ConnectionError
├── IntegrityError
│   └── DuplicateRecordError
└── BindingResolutionError    raised by the model container

============================================================
USAGE
============================================================
ConfigurationError and RepositoryTypeError are fatal and always
propagate. NotFoundError propagates from strict finders; the
`find_without_fail` variant is the only place it is swallowed.

============================================================
"""

from typing import Any, Optional


class RepositoryException(Exception):
    """
    Base exception for all repository operations.

    All repository-specific exceptions inherit from this class.
    Callers can catch this for generic error handling.
    """

    def __init__(
        self,
        message: str,
        repository_name: str,
        operation: str,
        details: Optional[dict] = None
    ) -> None:
        self.message = message
        self.repository_name = repository_name
        self.operation = operation
        self.details = details or {}
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        return f"[{self.repository_name}] {self.operation}: {self.message}"


class ConfigurationError(RepositoryException):
    """
    Raised when a repository cannot be configured.

    Use when the entity type is unset, or when an entity or
    criterion identifier cannot be resolved.
    """

    def __init__(
        self,
        repository_name: str,
        message: str,
        identifier: Any = None
    ) -> None:
        super().__init__(
            message=message,
            repository_name=repository_name,
            operation="configure",
            details={"identifier": str(identifier)} if identifier is not None else {}
        )
        self.identifier = identifier


class RepositoryTypeError(RepositoryException, TypeError):
    """
    Raised when a resolved object lacks a required capability.

    Use when a resolved entity is not a mapped class, or when a
    pushed criterion has no `apply(handle, repository)` operation.
    """

    def __init__(
        self,
        repository_name: str,
        obj: Any,
        expected: str
    ) -> None:
        type_name = obj.__name__ if isinstance(obj, type) else type(obj).__name__
        super().__init__(
            message=f"{type_name} must be {expected}",
            repository_name=repository_name,
            operation="resolve",
            details={"type": type_name, "expected": expected}
        )
        self.obj = obj
        self.expected = expected


class NotFoundError(RepositoryException):
    """
    Raised when a requested record does not exist.

    Use for find operations when the record is expected
    to exist but cannot be found.
    """

    def __init__(
        self,
        repository_name: str,
        record_id: Any,
        id_field: str = "id"
    ) -> None:
        super().__init__(
            message=f"Record with {id_field}={record_id} not found",
            repository_name=repository_name,
            operation="find",
            details={id_field: str(record_id)}
        )
        self.record_id = record_id
        self.id_field = id_field


class ValidationError(RepositoryException):
    """
    Raised when repository-level validation fails.

    Use for unknown fields, attributes, operators, relations and
    sort directions. Business validation belongs in service layer.
    """

    def __init__(
        self,
        repository_name: str,
        operation: str,
        field: str,
        reason: str
    ) -> None:
        super().__init__(
            message=f"Validation failed for {field}: {reason}",
            repository_name=repository_name,
            operation=operation,
            details={"field": field, "reason": reason}
        )
        self.field = field
        self.reason = reason


class ConnectionError(RepositoryException):
    """
    Raised when database connection fails.

    Use for connection timeouts, pool exhaustion, etc.
    """

    def __init__(
        self,
        repository_name: str,
        operation: str,
        original_error: str
    ) -> None:
        super().__init__(
            message=f"Database connection failed: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error}
        )


class QueryError(RepositoryException):
    """
    Raised when a query execution fails.
    """

    def __init__(
        self,
        repository_name: str,
        operation: str,
        original_error: str
    ) -> None:
        super().__init__(
            message=f"Query failed: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error}
        )


class IntegrityError(RepositoryException):
    """
    Raised when a write violates a database constraint.
    """

    def __init__(
        self,
        repository_name: str,
        operation: str,
        original_error: str
    ) -> None:
        super().__init__(
            message=f"Constraint violated: {original_error}",
            repository_name=repository_name,
            operation=operation,
            details={"original_error": original_error}
        )


class DuplicateRecordError(IntegrityError):
    """
    Raised when a write collides with a unique constraint.
    """


class BindingResolutionError(RepositoryException):
    """
    Raised by the model container when an identifier has no binding
    and cannot be imported.
    """

    def __init__(self, identifier: Any, reason: str) -> None:
        super().__init__(
            message=f"Cannot resolve {identifier!r}: {reason}",
            repository_name="ModelContainer",
            operation="make",
            details={"identifier": str(identifier), "reason": reason}
        )
        self.identifier = identifier
        self.reason = reason
