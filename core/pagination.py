"""
core/pagination.py -- Offset pagination over filter queries and aggregation pipelines.

The Paginator never talks to a driver directly. It works against the narrow
QuerySource protocol (count / find / aggregate), so the same code paginates a
MongoDB collection in production and an in-memory fake in tests.

Every paginate call issues exactly two reads, in order: a count, then the
slice. The aggregation path skips the second read when the count is zero.

Navigation links have the form:

    {base_url}/api/{endpoint}?page={n}&limit={limit}

The endpoint segment is inserted as given. Callers pass already-safe path
segments (route code derives them from its own request path).

No side effects beyond the reads. Store errors propagate unchanged.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence
from typing import Any, Generic, Optional, Protocol, TypeVar

from core.models import DEFAULT_SORT, ASCENDING, DESCENDING, Expand, Page, Pagination, SortSpec

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


class QuerySource(Protocol[T_co]):
    """The only store capabilities the Paginator relies on."""

    def count(self, predicate: dict[str, Any]) -> int: ...

    def find(
        self,
        predicate: dict[str, Any],
        sort: SortSpec,
        skip: int,
        limit: int,
        expand: Sequence[Expand] = (),
    ) -> list[T_co]: ...

    def aggregate(self, stages: Sequence[dict[str, Any]]) -> list[T_co]: ...


def _check_page_request(page: int, limit: int) -> None:
    if page < 1:
        raise ValueError(f"page must be >= 1, got {page}")
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")


class Paginator(Generic[T]):
    """Slice query results into pages and describe how to navigate them.

    Usage:
        paginator = Paginator(base_url=settings.base_url)
        page = paginator.paginate_by_filter(source, "items", filter={"category": "books"}, page=2)
        page.result            # documents 11..20
        page.pagination.next_page  # "https://host/api/items?page=3&limit=10"
    """

    def __init__(self, base_url: str) -> None:
        self.base_url = base_url.rstrip("/")

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def page_url(self, endpoint: str, page: int, limit: int) -> str:
        return f"{self.base_url}/api/{endpoint}?page={page}&limit={limit}"

    def build_pagination(self, total_items: int, page: int, limit: int, endpoint: str) -> Pagination:
        """Compute navigation metadata for one page of a result set of `total_items`."""
        total_pages = math.ceil(total_items / limit)
        has_next_page = page < total_pages
        has_prev_page = page > 1
        return Pagination(
            current_page=page,
            total_pages=total_pages,
            has_next_page=has_next_page,
            has_prev_page=has_prev_page,
            total_items=total_items,
            next_page=self.page_url(endpoint, page + 1, limit) if has_next_page else None,
            prev_page=self.page_url(endpoint, page - 1, limit) if has_prev_page else None,
        )

    # ------------------------------------------------------------------
    # Paginate
    # ------------------------------------------------------------------

    def paginate_by_filter(
        self,
        source: QuerySource[T],
        endpoint: str,
        filter: Optional[dict[str, Any]] = None,
        sort: Optional[SortSpec] = None,
        page: int = 1,
        limit: int = 10,
        expand: Sequence[Expand] = (),
    ) -> Page[T]:
        """Return page `page` of the documents matching `filter`, ordered by `sort`.

        A page past the end yields an empty result with accurate metadata
        rather than an error; check pagination.total_items or has_next_page.
        """
        _check_page_request(page, limit)
        predicate = filter or {}
        total_items = source.count(predicate)
        result = source.find(
            predicate,
            list(DEFAULT_SORT if sort is None else sort),
            (page - 1) * limit,
            limit,
            tuple(expand),
        )
        return Page(result=result, pagination=self.build_pagination(total_items, page, limit, endpoint))

    def paginate_by_aggregation(
        self,
        source: QuerySource[T],
        stages: Sequence[dict[str, Any]],
        page: int = 1,
        limit: int = 10,
        endpoint: str = "",
    ) -> Page[T]:
        """Return page `page` of the rows produced by an aggregation pipeline.

        `stages` must not contain its own $skip / $limit / $count; they are
        appended here. A pipeline with no output returns without a second read.
        """
        _check_page_request(page, limit)
        stages = list(stages)
        endpoint = endpoint or ""

        counted = source.aggregate([*stages, {"$count": "totalCount"}])
        total_items = counted[0]["totalCount"] if counted else 0
        if total_items == 0:
            return Page(result=[], pagination=self.build_pagination(0, page, limit, endpoint))

        result = source.aggregate([*stages, {"$skip": (page - 1) * limit}, {"$limit": limit}])
        return Page(result=result, pagination=self.build_pagination(total_items, page, limit, endpoint))


# ---------------------------------------------------------------------------
# Request helpers
# ---------------------------------------------------------------------------


def endpoint_from_path(url: str) -> str:
    """Return the resource segment of an API path: "/api/items?page=2" -> "items".

    Returns "" when the path has fewer than two segments.
    """
    parts = url.split("?", 1)[0].split("/")
    return parts[2] if len(parts) > 2 else ""


def parse_sort(expr: Optional[str], allowed: Iterable[str]) -> Optional[SortSpec]:
    """Parse "-createdAt,name" into [("createdAt", -1), ("name", 1)].

    Returns None for an empty expression so the caller's default applies.
    Raises ValueError for fields outside `allowed`.
    """
    if not expr or not expr.strip():
        return None
    allowed = set(allowed)
    spec: SortSpec = []
    for raw in expr.split(","):
        token = raw.strip()
        if not token:
            continue
        direction = DESCENDING if token.startswith("-") else ASCENDING
        name = token.lstrip("+-")
        if name not in allowed:
            raise ValueError(f"Cannot sort by {name!r}. Allowed: {', '.join(sorted(allowed))}")
        spec.append((name, direction))
    return spec or None
