"""
api/routes/items.py -- Catalog routes for the pagedesk REST API.

Routes (in registration order to avoid FastAPI path capture conflicts):
  POST /api/items               -- create an item owned by the caller
  GET  /api/items               -- paginated list (filter query, owner populated)
  GET  /api/items/by-category   -- paginated category counts (aggregation pipeline)
  GET  /api/items/{item_id}     -- item detail

Both list routes answer {result, pagination}. pagination.nextPage and
pagination.prevPage are absolute links back to the same route that carry only
`page` and `limit`. Filters (`category`, `mine`) and `sort` are not echoed, so
a client paging a filtered list appends its own query parameters to the link.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from api.limiter import ITEM_WRITE_LIMIT, limiter
from api.models import ItemCreate, ItemResponse, PageResponse, PaginationResponse
from auth.dependencies import get_current_user
from auth.models import User
from catalog.models import Item
from catalog.store import OWNER_EXPAND, SORTABLE_FIELDS, CatalogStore
from core.config import get_settings
from core.pagination import Paginator, endpoint_from_path, parse_sort
from store.documents import serialize_document

_settings = get_settings()

# Every catalog route requires authentication.
router = APIRouter(dependencies=[Depends(get_current_user)])

_CATEGORY_ENDPOINT = "items/by-category"


@limiter.limit(ITEM_WRITE_LIMIT)
@router.post("/items", response_model=ItemResponse, status_code=201)
def create_item(
    request: Request,
    body: ItemCreate,
    current_user: User = Depends(get_current_user),
) -> ItemResponse:
    catalog: CatalogStore = request.app.state.catalog
    item_id = catalog.create_item(
        Item(name=body.name, category=body.category, owner_id=current_user.id, tags=body.tags)
    )
    return ItemResponse.from_item(catalog.get_item(item_id))


@router.get("/items", response_model=PageResponse)
def list_items(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(_settings.default_page_size, ge=1, le=_settings.max_page_size),
    category: str | None = Query(None, max_length=50),
    mine: bool = Query(False, description="Only items owned by the caller"),
    sort: str | None = Query(None, max_length=100, description='e.g. "-createdAt,name"'),
    current_user: User = Depends(get_current_user),
) -> PageResponse:
    """List items newest first (or by `sort`), with the owner populated."""
    try:
        sort_spec = parse_sort(sort, allowed=SORTABLE_FIELDS)
    except ValueError as exc:
        raise HTTPException(
            status_code=400,
            detail={"code": "invalid_sort", "message": str(exc)},
        ) from exc

    catalog: CatalogStore = request.app.state.catalog
    paginator: Paginator = request.app.state.paginator
    result = paginator.paginate_by_filter(
        catalog.source,
        endpoint_from_path(request.url.path),
        filter=catalog.item_filter(category=category, owner_id=current_user.id if mine else None),
        sort=sort_spec,
        page=page,
        limit=limit,
        expand=[OWNER_EXPAND],
    )
    return PageResponse(
        result=serialize_document(result.result),
        pagination=PaginationResponse.from_pagination(result.pagination),
    )


@router.get("/items/by-category", response_model=PageResponse)
def items_by_category(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(_settings.default_page_size, ge=1, le=_settings.max_page_size),
    mine: bool = Query(False, description="Only count items owned by the caller"),
    current_user: User = Depends(get_current_user),
) -> PageResponse:
    """Item counts per category, largest first. Each row: {_id: category, count, latest}."""
    catalog: CatalogStore = request.app.state.catalog
    paginator: Paginator = request.app.state.paginator
    result = paginator.paginate_by_aggregation(
        catalog.source,
        catalog.category_pipeline(owner_id=current_user.id if mine else None),
        page=page,
        limit=limit,
        endpoint=_CATEGORY_ENDPOINT,
    )
    return PageResponse(
        result=serialize_document(result.result),
        pagination=PaginationResponse.from_pagination(result.pagination),
    )


@router.get("/items/{item_id}", response_model=ItemResponse)
def get_item(request: Request, item_id: str) -> ItemResponse:
    catalog: CatalogStore = request.app.state.catalog
    item = catalog.get_item(item_id)
    if item is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Item not found."},
        )
    return ItemResponse.from_item(item)
