"""
catalog/models.py -- Domain dataclass for catalog items.

Pure data container. catalog/store.py maps it to and from the "items"
collection.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass
class Item:
    """A catalog entry owned by a user.

    owner_id is the owner's hex user id; in list responses the owner is
    populated into the full (password-free) user document.
    """

    name: str
    category: str
    owner_id: str
    id: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    created_at: Optional[datetime] = None  # set by store on insert
