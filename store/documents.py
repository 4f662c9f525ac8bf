"""
store/documents.py -- pymongo-backed document access for pagedesk.

DocumentStore owns the MongoClient and hands out MongoQuerySource objects,
one per collection. MongoQuerySource implements core.pagination.QuerySource
(count / find / aggregate) and is the only place that knows how a populate
("expand") is resolved against MongoDB.

Pattern: Repository. auth/store.py and catalog/store.py build their entity
repositories on top of DocumentStore; route handlers never hold a raw
collection.

Tests inject an in-memory client:
    store = DocumentStore(client=mongomock.MongoClient(), db_name="test")

Errors from the driver (ConnectionFailure, OperationFailure, ...) are not
caught here.

Layer rule: store/ may import from core/ only.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.errors import PyMongoError

from core.models import Document, Expand, SortSpec

logger = logging.getLogger("pagedesk.store")


class MongoQuerySource:
    """QuerySource over a single MongoDB collection."""

    def __init__(self, collection: Collection) -> None:
        self.collection = collection

    @property
    def name(self) -> str:
        return self.collection.name

    def count(self, predicate: dict[str, Any]) -> int:
        return self.collection.count_documents(predicate)

    def find(
        self,
        predicate: dict[str, Any],
        sort: SortSpec,
        skip: int,
        limit: int,
        expand: Sequence[Expand] = (),
    ) -> list[Document]:
        cursor = self.collection.find(predicate)
        # pymongo rejects an empty sort list
        if sort:
            cursor = cursor.sort(list(sort))
        docs = list(cursor.skip(skip).limit(limit))
        for spec in expand:
            self._populate(docs, spec)
        return docs

    def aggregate(self, stages: Sequence[dict[str, Any]]) -> list[Document]:
        return list(self.collection.aggregate(list(stages)))

    def _populate(self, docs: list[Document], spec: Expand) -> None:
        """Replace references in spec.field with the referenced documents, in place.

        One $in query per Expand regardless of page size. A dangling scalar
        reference becomes None; dangling entries in a list are dropped.
        """
        refs: list[Any] = []
        for doc in docs:
            value = doc.get(spec.field)
            if isinstance(value, list):
                refs.extend(value)
            elif value is not None:
                refs.append(value)
        if not refs:
            return

        target = self.collection.database[spec.collection]
        found = {
            ref[spec.foreign_field]: ref
            for ref in target.find({spec.foreign_field: {"$in": refs}}, spec.projection)
        }
        for doc in docs:
            if spec.field not in doc:
                continue
            value = doc[spec.field]
            if isinstance(value, list):
                doc[spec.field] = [found[v] for v in value if v in found]
            elif value is not None:
                doc[spec.field] = found.get(value)


class DocumentStore:
    """Owns the MongoDB client and database handle.

    Usage:
        store = DocumentStore("mongodb://localhost:27017", "pagedesk")
        items = store.collection("items")
        items.count({"category": "books"})
        store.close()
    """

    def __init__(
        self,
        db_url: str = "mongodb://localhost:27017",
        db_name: str = "pagedesk",
        client: Optional[MongoClient] = None,
    ) -> None:
        self.client = client if client is not None else MongoClient(db_url, tz_aware=True)
        self.db = self.client[db_name]

    def raw(self, name: str) -> Collection:
        """Return the driver collection, for repositories that write."""
        return self.db[name]

    def collection(self, name: str) -> MongoQuerySource:
        return MongoQuerySource(self.db[name])

    def ping(self) -> bool:
        """Return True if the database answers a trivial read."""
        try:
            self.db.list_collection_names()
        except PyMongoError:
            logger.exception("Database ping failed")
            return False
        return True

    def close(self) -> None:
        self.client.close()


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def serialize_document(value: Any) -> Any:
    """Convert BSON-only types into JSON-safe values, recursively.

    ObjectId -> hex string, datetime -> ISO 8601. Everything else is returned
    as-is.
    """
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: serialize_document(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize_document(v) for v in value]
    return value


def to_object_id(value: str) -> Optional[ObjectId]:
    """Parse a hex id from a URL or token. Returns None if it is not a valid ObjectId."""
    if not ObjectId.is_valid(value):
        return None
    return ObjectId(value)
