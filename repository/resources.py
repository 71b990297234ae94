"""
Resources.

============================================================
PURPOSE
============================================================
Optional presentation layer for repository results. A Resource
wraps one entity; a ResourceCollection wraps a list or a page of
entities. Repositories pick between the two by result shape.

Fields come from a pydantic `schema` validated against entity
attributes. Without a schema, mapped column values are used.

============================================================
USAGE
============================================================
```python
class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str

class UserResource(Resource):
    schema = UserOut

repo.set_resource(UserResource).as_resource()
repo.find(1).to_dict()      # {"id": 1, "name": "ada"}
repo.all().to_dict()        # {"data": [...]}
repo.paginate(10).to_dict() # {"data": [...], "meta": {...}}
```

============================================================
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Type

from pydantic import BaseModel
from sqlalchemy import inspect as sa_inspect

from repository.pagination import Page, SimplePage


class ResultShape(str, Enum):
    """Shape of a raw repository result."""

    SINGLE = "single"
    COLLECTION = "collection"
    PAGINATED = "paginated"


def shape_of(result: Any) -> ResultShape:
    if isinstance(result, (Page, SimplePage)):
        return ResultShape.PAGINATED
    if isinstance(result, (list, tuple)):
        return ResultShape.COLLECTION
    return ResultShape.SINGLE


class Resource:
    """
    Presentation wrapper around a single entity.
    """

    schema: ClassVar[Optional[Type[BaseModel]]] = None

    def __init__(self, item: Any) -> None:
        self.item = item

    @classmethod
    def make(cls, item: Any) -> "Resource":
        return cls(item)

    @classmethod
    def collection(cls, items: Any) -> "ResourceCollection":
        meta = items.meta() if shape_of(items) is ResultShape.PAGINATED else None
        return ResourceCollection(
            resource=cls,
            items=[cls(item) for item in items],
            meta=meta,
        )

    def to_dict(self) -> Dict[str, Any]:
        if self.schema is not None:
            return self.schema.model_validate(self.item, from_attributes=True).model_dump()
        mapper = sa_inspect(self.item).mapper
        return {attr.key: getattr(self.item, attr.key) for attr in mapper.column_attrs}

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.item!r})"


@dataclass
class ResourceCollection:
    """Presentation wrapper around a list or page of entities."""

    resource: Type[Resource]
    items: List[Resource]
    meta: Optional[Dict[str, Any]] = None

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"data": [item.to_dict() for item in self.items]}
        if self.meta is not None:
            payload["meta"] = self.meta
        return payload
