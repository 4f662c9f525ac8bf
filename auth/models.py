"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and routes do
the work; auth/store.py maps documents to and from these classes.

Layer rule: no imports from api/, catalog/, or store/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """An identity that can log in with email + password.

    id is the hex form of the document's ObjectId; None before insert.
    hashed_password is a bcrypt hash and never leaves the auth layer.
    """

    email: str
    name: str
    role: str = "user"  # "admin" | "user"
    id: str | None = None
    hashed_password: str | None = None
    is_active: bool = True
    created_at: datetime | None = None
    last_login: datetime | None = None


@dataclass
class OtpCode:
    """A four-digit one-time code issued for a password reset.

    Only the newest unused code per user is honoured; issuing a new one does
    not delete older ones, they simply stop being "latest".
    """

    user_id: str
    code: int
    id: str | None = None
    created_at: datetime | None = None
    used: bool = False
