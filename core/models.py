from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")

# A stored document as the driver returns it.
Document = dict[str, Any]

# Ordered (field, direction) pairs; direction is 1 (ascending) or -1 (descending).
SortSpec = list[tuple[str, int]]

ASCENDING = 1
DESCENDING = -1

DEFAULT_SORT: SortSpec = [("createdAt", DESCENDING)]


@dataclass(frozen=True)
class Expand:
    """Populate instruction: replace the id(s) in `field` with documents from `collection`."""

    field: str
    collection: str
    foreign_field: str = "_id"
    projection: Optional[dict[str, int]] = None


@dataclass
class Pagination:
    current_page: int = 0
    total_pages: int = 0
    has_next_page: bool = False
    has_prev_page: bool = False
    total_items: int = 0
    next_page: Optional[str] = None
    prev_page: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        """Wire shape used by API responses and the CLI."""
        return {
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "hasNextPage": self.has_next_page,
            "hasPrevPage": self.has_prev_page,
            "totalItems": self.total_items,
            "nextPage": self.next_page,
            "prevPage": self.prev_page,
        }


@dataclass
class Page(Generic[T]):
    result: list[T] = field(default_factory=list)
    pagination: Pagination = field(default_factory=Pagination)
