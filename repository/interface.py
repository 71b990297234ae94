"""
Repository Contract.

The operations every repository exposes, independent of the
engine behind it. BaseRepository implements this contract on
top of SQLAlchemy.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Mapping, Optional, Sequence, Union


class RepositoryInterface(ABC):
    """Abstract repository contract."""

    # =========================================================
    # READ
    # =========================================================

    @abstractmethod
    def all(self, columns: Sequence[str] = ("*",)) -> Any: ...

    @abstractmethod
    def first(self, columns: Sequence[str] = ("*",)) -> Any: ...

    @abstractmethod
    def first_where(self, where: Mapping[str, Any], columns: Sequence[str] = ("*",)) -> Any: ...

    @abstractmethod
    def find(self, record_id: Any, columns: Sequence[str] = ("*",)) -> Any: ...

    @abstractmethod
    def find_by_field(self, field: str, value: Any = None, columns: Sequence[str] = ("*",)) -> Any: ...

    @abstractmethod
    def find_where(self, where: Mapping[str, Any], columns: Sequence[str] = ("*",)) -> Any: ...

    @abstractmethod
    def find_where_in(self, field: str, values: Iterable[Any], columns: Sequence[str] = ("*",)) -> Any: ...

    @abstractmethod
    def find_where_not_in(self, field: str, values: Iterable[Any], columns: Sequence[str] = ("*",)) -> Any: ...

    @abstractmethod
    def paginate(self, limit: Optional[int] = None, columns: Sequence[str] = ("*",), page: int = 1) -> Any: ...

    @abstractmethod
    def count(self) -> int: ...

    @abstractmethod
    def pluck(self, column: str, key: Optional[str] = None) -> Any: ...

    # =========================================================
    # WRITE
    # =========================================================

    @abstractmethod
    def create(self, attributes: Mapping[str, Any]) -> Any: ...

    @abstractmethod
    def update(self, attributes: Mapping[str, Any], record_id: Any) -> Any: ...

    @abstractmethod
    def update_or_create(self, attributes: Mapping[str, Any], values: Optional[Mapping[str, Any]] = None) -> Any: ...

    @abstractmethod
    def delete(self, record_id: Any) -> bool: ...

    @abstractmethod
    def delete_where(self, where: Mapping[str, Any]) -> int: ...

    # =========================================================
    # BUILDERS
    # =========================================================

    @abstractmethod
    def where(self, field: str, value: Any, operator: str = "=") -> "RepositoryInterface": ...

    @abstractmethod
    def with_(self, relations: Union[str, Iterable[str]]) -> "RepositoryInterface": ...

    @abstractmethod
    def order_by(self, column: str, direction: str = "asc") -> "RepositoryInterface": ...

    # =========================================================
    # CRITERIA AND SCOPE
    # =========================================================

    @abstractmethod
    def push_criteria(self, criterion: Any) -> "RepositoryInterface": ...

    @abstractmethod
    def get_criteria(self) -> Any: ...

    @abstractmethod
    def skip_criteria(self, status: bool = True) -> "RepositoryInterface": ...

    @abstractmethod
    def reset_criteria(self) -> "RepositoryInterface": ...

    @abstractmethod
    def scope_query(self, scope: Callable[[Any], Any]) -> "RepositoryInterface": ...

    @abstractmethod
    def reset_scope(self) -> "RepositoryInterface": ...
