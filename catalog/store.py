"""
catalog/store.py -- MongoDB persistence layer for catalog items.

Pattern: Repository + Data Mapper, same as auth/store.py. Writes go through
CatalogStore; paginated reads go through the `source` property, which the
routes hand to core.pagination.Paginator.

Document shape (collection "items"):
    {_id, name, category, owner: ObjectId(users._id), tags: [str], createdAt}

Layer rule: imports from store/ and core/ only.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from pymongo import ASCENDING, DESCENDING

from catalog.models import Item
from core.models import Expand
from store.documents import DocumentStore, MongoQuerySource, to_object_id

ITEMS = "items"

# Owner populate for list responses. The password hash never leaves the store.
OWNER_EXPAND = Expand(field="owner", collection="users", projection={"hashed_password": 0})

SORTABLE_FIELDS = ("createdAt", "name", "category")


class CatalogStore:
    """Repository for Item entities.

    Usage:
        catalog = CatalogStore(DocumentStore())
        item_id = catalog.create_item(Item(name="Dune", category="books", owner_id=user.id))
        page = paginator.paginate_by_filter(catalog.source, "items", filter={"category": "books"})
    """

    def __init__(self, documents: DocumentStore) -> None:
        self.documents = documents
        self._items = documents.raw(ITEMS)
        self._items.create_index([("category", ASCENDING), ("createdAt", DESCENDING)])
        self._items.create_index([("owner", ASCENDING), ("createdAt", DESCENDING)])

    @property
    def source(self) -> MongoQuerySource:
        return self.documents.collection(ITEMS)

    def create_item(self, item: Item) -> str:
        """Insert an item and return its id. created_at defaults to now (UTC)."""
        owner = to_object_id(item.owner_id)
        if owner is None:
            raise ValueError(f"Invalid owner id: {item.owner_id!r}")
        result = self._items.insert_one(
            {
                "name": item.name,
                "category": item.category,
                "owner": owner,
                "tags": list(item.tags),
                "createdAt": item.created_at or datetime.now(timezone.utc),
            }
        )
        return str(result.inserted_id)

    def get_item(self, item_id: str) -> Optional[Item]:
        oid = to_object_id(item_id)
        if oid is None:
            return None
        doc = self._items.find_one({"_id": oid})
        return _doc_to_item(doc) if doc is not None else None

    # ------------------------------------------------------------------
    # Query builders
    # ------------------------------------------------------------------

    @staticmethod
    def item_filter(category: Optional[str] = None, owner_id: Optional[str] = None) -> dict[str, Any]:
        """Build the list filter from typed request values."""
        predicate: dict[str, Any] = {}
        if category:
            predicate["category"] = category
        if owner_id:
            predicate["owner"] = to_object_id(owner_id)
        return predicate

    @staticmethod
    def category_pipeline(owner_id: Optional[str] = None) -> list[dict[str, Any]]:
        """Aggregation stages producing one row per category: {_id: category, count, latest}.

        Rows are ordered by count (desc) then category name, so pages are stable.
        """
        stages: list[dict[str, Any]] = []
        if owner_id:
            stages.append({"$match": {"owner": to_object_id(owner_id)}})
        stages.append({"$group": {"_id": "$category", "count": {"$sum": 1}, "latest": {"$max": "$createdAt"}}})
        stages.append({"$sort": {"count": DESCENDING, "_id": ASCENDING}})
        return stages


def _doc_to_item(doc: dict) -> Item:
    return Item(
        id=str(doc["_id"]),
        name=doc["name"],
        category=doc["category"],
        owner_id=str(doc["owner"]),
        tags=list(doc.get("tags", [])),
        created_at=doc.get("createdAt"),
    )
