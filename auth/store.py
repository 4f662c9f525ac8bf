"""
auth/store.py -- MongoDB persistence layer for auth entities.

Pattern: Repository + Data Mapper (same as catalog/store.py).
UserStore is the repository; doc_to_user / _doc_to_otp are the mappers.
Route and dependency code never touches a collection directly.

Collections:
  users -- one document per account. UNIQUE index on email.
  otps  -- issued one-time codes, newest first per user.

Security:
  Filters are built from typed values only (ObjectId, str, bool); request
  bodies are never passed through as query documents, so operator injection
  ("$ne", "$gt", ...) is not possible.

Layer rule: imports from store/ (the shared DocumentStore) and auth/ only.
"""

from __future__ import annotations

from datetime import datetime, timezone

from pymongo import ASCENDING, DESCENDING

from auth.models import OtpCode, User
from auth.otp import generate_otp
from store.documents import DocumentStore, to_object_id

USERS = "users"
OTPS = "otps"


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UserStore:
    """Repository for User and OtpCode entities.

    Usage:
        store = UserStore(DocumentStore())
        user_id = store.create_user(User(email="a@b.c", name="A", hashed_password=hash_password("pw")))
        user = store.get_by_email("a@b.c")
    """

    def __init__(self, documents: DocumentStore) -> None:
        self.documents = documents
        self._users = documents.raw(USERS)
        self._otps = documents.raw(OTPS)
        self.ensure_indexes()

    def ensure_indexes(self) -> None:
        """Create indexes if missing. Idempotent -- safe on every startup."""
        self._users.create_index([("email", ASCENDING)], unique=True)
        self._otps.create_index([("user_id", ASCENDING), ("createdAt", DESCENDING)])

    # ------------------------------------------------------------------
    # User queries
    # ------------------------------------------------------------------

    def has_users(self) -> bool:
        return self._users.find_one({}, {"_id": 1}) is not None

    def create_user(self, user: User) -> str:
        """Insert a new user and return its id.

        Raises pymongo.errors.DuplicateKeyError if the email already exists.
        """
        result = self._users.insert_one(
            {
                "email": user.email.lower(),
                "name": user.name,
                "role": user.role,
                "hashed_password": user.hashed_password,
                "is_active": user.is_active,
                "createdAt": _now(),
                "last_login": None,
            }
        )
        return str(result.inserted_id)

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by email (case-insensitive). Returns None if not found."""
        doc = self._users.find_one({"email": email.lower()})
        return doc_to_user(doc) if doc is not None else None

    def get_by_id(self, user_id: str) -> User | None:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        doc = self._users.find_one({"_id": oid})
        return doc_to_user(doc) if doc is not None else None

    def update_last_login(self, user_id: str) -> None:
        oid = to_object_id(user_id)
        if oid is not None:
            self._users.update_one({"_id": oid}, {"$set": {"last_login": _now()}})

    def set_password(self, user_id: str, hashed_password: str) -> bool:
        """Replace the stored hash. Returns False if the user does not exist."""
        oid = to_object_id(user_id)
        if oid is None:
            return False
        result = self._users.update_one({"_id": oid}, {"$set": {"hashed_password": hashed_password}})
        return result.matched_count > 0

    # ------------------------------------------------------------------
    # One-time codes
    # ------------------------------------------------------------------

    def issue_otp(self, user_id: str) -> OtpCode:
        """Generate, store and return a fresh code for the user."""
        otp = OtpCode(user_id=user_id, code=generate_otp(), created_at=_now())
        result = self._otps.insert_one(
            {
                "user_id": to_object_id(user_id),
                "code": otp.code,
                "createdAt": otp.created_at,
                "used": False,
            }
        )
        otp.id = str(result.inserted_id)
        return otp

    def get_latest_otp(self, user_id: str) -> OtpCode | None:
        """Return the newest unused code for the user, or None."""
        oid = to_object_id(user_id)
        if oid is None:
            return None
        doc = self._otps.find_one(
            {"user_id": oid, "used": False},
            sort=[("createdAt", DESCENDING), ("_id", DESCENDING)],
        )
        return _doc_to_otp(doc) if doc is not None else None

    def mark_otp_used(self, otp_id: str) -> bool:
        """Flag a code as consumed. Returns False if it was already used or is unknown."""
        oid = to_object_id(otp_id)
        if oid is None:
            return False
        result = self._otps.update_one({"_id": oid, "used": False}, {"$set": {"used": True}})
        return result.modified_count > 0


# ---------------------------------------------------------------------------
# Document mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def doc_to_user(doc: dict) -> User:
    return User(
        id=str(doc["_id"]),
        email=doc["email"],
        name=doc.get("name", ""),
        role=doc.get("role", "user"),
        hashed_password=doc.get("hashed_password"),
        is_active=bool(doc.get("is_active", True)),
        created_at=doc.get("createdAt"),
        last_login=doc.get("last_login"),
    )


def _doc_to_otp(doc: dict) -> OtpCode:
    return OtpCode(
        id=str(doc["_id"]),
        user_id=str(doc["user_id"]),
        code=doc["code"],
        created_at=doc.get("createdAt"),
        used=bool(doc.get("used", False)),
    )
