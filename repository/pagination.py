"""
Pagination Results.

Page is length-aware (runs a count query); SimplePage only knows
whether another page exists (fetches one extra row).
"""

import math
from dataclasses import dataclass
from typing import Any, Dict, Generic, Iterator, List, TypeVar


T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """A page of results with the total row count."""

    items: List[T]
    total: int
    per_page: int
    current_page: int = 1

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __getitem__(self, index):
        return self.items[index]

    @property
    def last_page(self) -> int:
        return max(1, math.ceil(self.total / self.per_page))

    @property
    def has_more_pages(self) -> bool:
        return self.current_page < self.last_page

    def meta(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "per_page": self.per_page,
            "current_page": self.current_page,
            "last_page": self.last_page,
        }


@dataclass
class SimplePage(Generic[T]):
    """A page of results without a total count."""

    items: List[T]
    per_page: int
    current_page: int = 1
    has_more_pages: bool = False

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __getitem__(self, index):
        return self.items[index]

    def meta(self) -> Dict[str, Any]:
        return {
            "per_page": self.per_page,
            "current_page": self.current_page,
            "has_more_pages": self.has_more_pages,
        }
