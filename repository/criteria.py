"""
Criteria.

============================================================
PURPOSE
============================================================
Reusable, stackable filter units. A criterion is any object with
an `apply(handle, repository) -> handle` operation; repositories
keep them in a CriteriaStack and apply them in push order before
every filtered read.

============================================================
COMPONENTS
============================================================
- Criterion: ABC; also matches any class with a callable `apply`
- CriteriaStack: ordered, append-only collection
- CriteriaRegistry: maps names to criterion classes
- Stock criteria: WhereCriterion, OrderByCriterion,
  WithRelationsCriterion, CallableCriterion

============================================================
USAGE
============================================================
```python
class ActiveUsers(Criterion):
    def apply(self, handle, repository):
        return handle.where("status", "active")

CriteriaRegistry.register("active", ActiveUsers)

repo.push_criteria(ActiveUsers())
repo.push_criteria("active")
repo.push_criteria("app.criteria:ActiveUsers")
```

============================================================
"""

import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Tuple, Type, Union

from repository.container import import_string
from repository.exceptions import BindingResolutionError


logger = logging.getLogger(__name__)


class Criterion(ABC):
    """
    A single named filter unit.

    Subclassing is optional: any class defining a callable `apply`
    passes `isinstance(obj, Criterion)`.
    """

    @abstractmethod
    def apply(self, handle, repository):
        """Return a new handle with this criterion applied."""

    @classmethod
    def __subclasshook__(cls, C):
        if cls is Criterion:
            for klass in C.__mro__:
                if "apply" in klass.__dict__:
                    if callable(klass.__dict__["apply"]):
                        return True
                    break
        return NotImplemented


CriterionLike = Union[Criterion, Type[Criterion], str]


class CriteriaStack:
    """Ordered collection of criteria, applied in push order."""

    def __init__(self, criteria: Iterable[Any] = ()) -> None:
        self._items: List[Any] = list(criteria)

    def push(self, criterion: Any) -> "CriteriaStack":
        self._items.append(criterion)
        return self

    def __iter__(self) -> Iterator[Any]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __getitem__(self, index):
        return self._items[index]

    def __repr__(self) -> str:
        return f"CriteriaStack({self._items!r})"

    def to_list(self) -> List[Any]:
        return list(self._items)


class CriteriaRegistry:
    """
    Registry of criterion classes by name.

    Names not registered are tried as dotted import paths.
    """

    _registry: Dict[str, Type[Any]] = {}

    @classmethod
    def register(cls, name: str, criterion_class: Type[Any]) -> None:
        cls._registry[name] = criterion_class

    @classmethod
    def unregister(cls, name: str) -> None:
        cls._registry.pop(name, None)

    @classmethod
    def registered(cls) -> List[str]:
        return sorted(cls._registry)

    @classmethod
    def resolve(cls, identifier: Union[str, type]) -> Type[Any]:
        """
        Resolve an identifier to a criterion class.

        Raises:
            BindingResolutionError: If the name is unknown and not importable
        """
        if inspect.isclass(identifier):
            return identifier
        if identifier in cls._registry:
            return cls._registry[identifier]
        resolved = import_string(identifier)
        if not inspect.isclass(resolved):
            raise BindingResolutionError(identifier, "does not name a class")
        return resolved


# =============================================================
# STOCK CRITERIA
# =============================================================


@dataclass(frozen=True)
class WhereCriterion(Criterion):
    """Filter on `field <operator> value`."""

    field: str
    value: Any
    operator: str = "="

    def apply(self, handle, repository):
        return handle.where(self.field, self.value, self.operator)


@dataclass(frozen=True)
class OrderByCriterion(Criterion):
    column: str
    direction: str = "asc"

    def apply(self, handle, repository):
        return handle.order_by(self.column, self.direction)


class WithRelationsCriterion(Criterion):
    """Eager-load the given relations on every read."""

    def __init__(self, *relations: str) -> None:
        self.relations: Tuple[str, ...] = relations

    def apply(self, handle, repository):
        return handle.with_(self.relations)


class CallableCriterion(Criterion):
    """Wrap a plain `fn(handle, repository) -> handle` function."""

    def __init__(self, fn: Callable[[Any, Any], Any]) -> None:
        self.fn = fn

    def apply(self, handle, repository):
        return self.fn(handle, repository)

    def __repr__(self) -> str:
        return f"CallableCriterion({getattr(self.fn, '__name__', self.fn)!r})"
