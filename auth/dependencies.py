"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

local_credentials() is the login guard: it reads {"email", "password"} from
the JSON body, verifies them and hands the route an authenticated User. The
route itself only issues the token.

get_current_user() authenticates every other protected route from an
"Authorization: Bearer <jwt>" header. require_admin() adds a role check.

Layer rule: may import from fastapi (Depends/HTTPException/Request) because
this module is part of the FastAPI dependency injection system. No imports
from api/ or catalog/.
"""

from __future__ import annotations

from fastapi import Body, HTTPException, Request

from auth.models import User
from auth.store import UserStore
from auth.tokens import authenticate_user, decode_access_token


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={"code": "unauthorized", "message": message},
        headers={"WWW-Authenticate": "Bearer"},
    )


def local_credentials(
    request: Request,
    email: str = Body(..., min_length=3, max_length=255),
    password: str = Body(..., min_length=1, max_length=72),
) -> User:
    """Verify email + password from the request body. Raises HTTP 401 on failure.

    The same generic error covers unknown email, wrong password and inactive
    account so the response does not leak which one it was.
    """
    user_store: UserStore = request.app.state.user_store
    user = authenticate_user(user_store, email, password)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "bad_credentials", "message": "Invalid email or password."},
        )
    return user


def try_get_current_user(request: Request) -> User | None:
    """Authenticate the request from its Bearer token. Never raises."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    payload = decode_access_token(auth_header[7:])
    if payload is None:
        return None
    user_store: UserStore = request.app.state.user_store
    user = user_store.get_by_id(payload["sub"])
    if user is None or not user.is_active:
        return None
    return user


def get_current_user(request: Request) -> User:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise _unauthorized("Authentication required.")
    return user


def require_admin(request: Request) -> User:
    """Require admin role. Raises HTTP 401 if unauthenticated, HTTP 403 if not admin."""
    user = get_current_user(request)
    if user.role != "admin":
        raise HTTPException(
            status_code=403,
            detail={"code": "forbidden", "message": "Admin access required."},
        )
    return user
