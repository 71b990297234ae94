"""
Model Container.

============================================================
PURPOSE
============================================================
Resolves entity identifiers to entity classes for repositories.

An identifier is one of:
- a class (returned as-is)
- a name bound with `bind()`
- a dotted import path, "package.module:Class" or
  "package.module.Class"

Bindings may point at a class, at another identifier, or at a
zero-argument factory returning a class.

============================================================
USAGE
============================================================
```python
container = ModelContainer()
container.bind("user", User)
container.bind("article", "app.models:Article")

container.make("user")                 # -> User
container.make("app.models.Comment")   # -> Comment
```

============================================================
"""

import importlib
import inspect
import logging
from typing import Any, Callable, Dict, Type, Union

from repository.exceptions import BindingResolutionError


logger = logging.getLogger(__name__)


Binding = Union[type, str, Callable[[], type]]


def import_string(path: str) -> Any:
    """
    Import an object from a dotted path.

    Accepts "package.module:attr" and "package.module.attr".

    Raises:
        BindingResolutionError: If the module or attribute is missing
    """
    if ":" in path:
        module_path, _, attr = path.partition(":")
    else:
        module_path, _, attr = path.rpartition(".")

    if not module_path or not attr:
        raise BindingResolutionError(path, "not a dotted import path")

    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise BindingResolutionError(path, f"module {module_path!r} not importable ({e})") from e

    obj = module
    for part in attr.split("."):
        try:
            obj = getattr(obj, part)
        except AttributeError:
            raise BindingResolutionError(path, f"{module_path!r} has no attribute {attr!r}") from None
    return obj


class ModelContainer:
    """
    Registry mapping identifiers to entity classes.
    """

    def __init__(self) -> None:
        self._bindings: Dict[str, Binding] = {}

    def bind(self, name: str, target: Binding) -> None:
        """
        Bind a name to a class, identifier or factory.

        Args:
            name: Identifier used by repositories
            target: Class, identifier string, or zero-argument factory
        """
        self._bindings[name] = target
        logger.debug(f"Bound {name!r} -> {target!r}")

    def unbind(self, name: str) -> None:
        """Remove a binding if present."""
        self._bindings.pop(name, None)

    def bound(self, name: str) -> bool:
        return name in self._bindings

    def make(self, identifier: Union[str, Type[Any]]) -> Any:
        """
        Resolve an identifier.

        Args:
            identifier: Class, bound name, or dotted path

        Returns:
            The resolved object (normally an entity class)

        Raises:
            BindingResolutionError: If the identifier cannot be resolved
        """
        return self._resolve(identifier, seen=())

    def _resolve(self, identifier: Any, seen: tuple) -> Any:
        if inspect.isclass(identifier):
            return identifier

        if not isinstance(identifier, str) or not identifier:
            raise BindingResolutionError(identifier, "identifier must be a class or a non-empty string")

        if identifier in self._bindings:
            if identifier in seen:
                raise BindingResolutionError(identifier, "circular binding")
            target = self._bindings[identifier]
            if inspect.isclass(target) or isinstance(target, str):
                return self._resolve(target, seen + (identifier,))
            try:
                return target()
            except Exception as e:
                raise BindingResolutionError(identifier, f"factory failed ({e})") from e

        return import_string(identifier)


default_container = ModelContainer()
