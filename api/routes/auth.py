"""
api/routes/auth.py -- Authentication REST endpoints.

Routes:
  POST /api/auth/login            -- local credentials guard; returns {user, token}
  POST /api/auth/register         -- self-registration; returns {user, token}
  GET  /api/auth/me               -- current user info (requires auth)
  POST /api/auth/forgot-password  -- issue a one-time code for a password reset
  POST /api/auth/reset-password   -- consume the code and set a new password
  GET  /api/users                 -- paginated user list (admin only)

Security:
  POST /login, /register, /forgot-password and /reset-password share the
  LOGIN_RATE_LIMIT budget per client IP.
  local_credentials() provides timing equalization -- never inline the lookup.
  /forgot-password answers 202 whether or not the email exists.
  Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pymongo.errors import DuplicateKeyError

from api.limiter import LOGIN_LIMIT, limiter
from api.models import (
    ForgotPasswordRequest,
    LoginResponse,
    MessageResponse,
    PageResponse,
    PaginationResponse,
    RegisterRequest,
    ResetPasswordRequest,
    UserResponse,
)
from auth.dependencies import get_current_user, local_credentials, require_admin
from auth.models import User
from auth.otp import is_otp_expired
from auth.store import USERS, UserStore, doc_to_user
from auth.tokens import create_access_token, hash_password
from core.config import get_settings
from core.pagination import Paginator, endpoint_from_path
from store.documents import DocumentStore

logger = logging.getLogger("pagedesk.api.auth")

_settings = get_settings()

router = APIRouter()


def _token_response(user: User, status_code: int = 200) -> JSONResponse:
    token = create_access_token(user.id, user.email, user.role)
    resp = JSONResponse(
        status_code=status_code,
        content=LoginResponse(user=UserResponse.from_user(user), token=token).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(LOGIN_LIMIT)
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, user: User = Depends(local_credentials)) -> JSONResponse:
    """Exchange verified credentials for a token.

    By the time this runs, local_credentials() has already authenticated the
    caller or answered 401.
    """
    user_store: UserStore = request.app.state.user_store
    user_store.update_last_login(user.id)
    logger.info("Login: %s", user.id)
    return _token_response(user)


@limiter.limit(LOGIN_LIMIT)
@router.post("/auth/register", response_model=LoginResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create a regular user account and log it in."""
    if not _settings.self_registration_enabled:
        raise HTTPException(
            status_code=403,
            detail={"code": "registration_disabled", "message": "Self-registration is disabled."},
        )
    user_store: UserStore = request.app.state.user_store
    conflict = HTTPException(
        status_code=409,
        detail={"code": "conflict", "message": "Email already registered."},
    )
    if user_store.get_by_email(body.email) is not None:
        raise conflict
    try:
        user_id = user_store.create_user(
            User(email=body.email, name=body.name, role="user", hashed_password=hash_password(body.password))
        )
    except DuplicateKeyError as exc:
        # Lost a race with a concurrent registration for the same email.
        raise conflict from exc

    created = user_store.get_by_id(user_id)
    logger.info("Registered user %s", user_id)
    return _token_response(created, status_code=201)


@limiter.limit(LOGIN_LIMIT)
@router.post("/auth/forgot-password", response_model=MessageResponse, status_code=202)
def forgot_password(request: Request, body: ForgotPasswordRequest) -> MessageResponse:
    """Issue a one-time code for the account, if there is one.

    Delivery (email/SMS) belongs to a downstream notifier reading the otps
    collection; the code is never returned or logged here.
    """
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_email(body.email)
    if user is not None and user.is_active:
        otp = user_store.issue_otp(user.id)
        logger.info("Issued password reset code %s for user %s", otp.id, user.id)
    return MessageResponse(message="If the account exists, a reset code has been sent.")


@limiter.limit(LOGIN_LIMIT)
@router.post("/auth/reset-password", response_model=MessageResponse)
def reset_password(request: Request, body: ResetPasswordRequest) -> MessageResponse:
    """Set a new password using the newest unused, unexpired code."""
    invalid = HTTPException(
        status_code=400,
        detail={"code": "invalid_otp", "message": "Invalid or expired reset code."},
    )
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_email(body.email)
    if user is None:
        raise invalid
    otp = user_store.get_latest_otp(user.id)
    if otp is None or otp.code != body.otp:
        raise invalid
    if otp.created_at is None or is_otp_expired(otp.created_at, ttl_seconds=_settings.otp_ttl_seconds):
        raise invalid
    if not user_store.mark_otp_used(otp.id):
        raise invalid

    user_store.set_password(user.id, hash_password(body.new_password))
    logger.info("Password reset for user %s", user.id)
    return MessageResponse(message="Password updated.")


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return identity information for the currently authenticated user."""
    return UserResponse.from_user(current_user)


@router.get("/users", response_model=PageResponse)
def list_users(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(_settings.default_page_size, ge=1, le=_settings.max_page_size),
    role: str | None = Query(None, pattern=r"^(admin|user)$"),
    current_user: User = Depends(require_admin),
) -> PageResponse:
    """List user accounts, newest first. Admin only."""
    documents: DocumentStore = request.app.state.documents
    paginator: Paginator = request.app.state.paginator
    page_ = paginator.paginate_by_filter(
        documents.collection(USERS),
        endpoint_from_path(request.url.path),
        filter={"role": role} if role else {},
        page=page,
        limit=limit,
    )
    return PageResponse(
        result=[UserResponse.from_user(u).model_dump() for u in map(doc_to_user, page_.result)],
        pagination=PaginationResponse.from_pagination(page_.pagination),
    )
