"""
API request and response models for pagedesk REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in core/models.py,
auth/models.py and catalog/models.py, which own the internal domain
representation. Route handlers map between the two.
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from auth.models import User
from auth.tokens import check_password_length
from catalog.models import Item
from core.models import Pagination

# ---------------------------------------------------------------------------
# Errors and health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Pagination
# ---------------------------------------------------------------------------


class PaginationResponse(BaseModel):
    """Navigation metadata, serialized with camelCase keys (currentPage, nextPage, ...)."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    current_page: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool
    total_items: int
    next_page: Optional[str] = None
    prev_page: Optional[str] = None

    @classmethod
    def from_pagination(cls, pagination: Pagination) -> "PaginationResponse":
        return cls(
            current_page=pagination.current_page,
            total_pages=pagination.total_pages,
            has_next_page=pagination.has_next_page,
            has_prev_page=pagination.has_prev_page,
            total_items=pagination.total_items,
            next_page=pagination.next_page,
            prev_page=pagination.prev_page,
        )


class PageResponse(BaseModel):
    """One page of documents plus navigation metadata."""

    result: list[dict[str, Any]]
    pagination: PaginationResponse


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/auth/register."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    name: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=8, max_length=72)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return check_password_length(v)


class ForgotPasswordRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=3, max_length=255)


class ResetPasswordRequest(BaseModel):
    """Request body for POST /api/auth/reset-password."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=3, max_length=255)
    otp: int = Field(ge=1000, le=9999)
    new_password: str = Field(min_length=8, max_length=72)

    @field_validator("new_password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        return check_password_length(v)


class UserResponse(BaseModel):
    """Public view of a user. Never carries the password hash."""

    model_config = ConfigDict(frozen=True)

    id: str
    email: str
    name: str
    role: str
    is_active: bool
    created_at: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id or "",
            email=user.email,
            name=user.name,
            role=user.role,
            is_active=user.is_active,
            created_at=user.created_at.isoformat() if user.created_at else None,
        )


class LoginResponse(BaseModel):
    """Response for a successful login or registration: {user, token}."""

    model_config = ConfigDict(frozen=True)

    user: UserResponse
    token: str


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class ItemCreate(BaseModel):
    """Request body for POST /api/items."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=200)
    category: str = Field(min_length=1, max_length=50)
    tags: list[str] = Field(default_factory=list, max_length=20)


class ItemResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: str
    owner_id: str
    tags: list[str]
    created_at: Optional[str] = None

    @classmethod
    def from_item(cls, item: Item) -> "ItemResponse":
        return cls(
            id=item.id or "",
            name=item.name,
            category=item.category,
            owner_id=item.owner_id,
            tags=item.tags,
            created_at=item.created_at.isoformat() if item.created_at else None,
        )
