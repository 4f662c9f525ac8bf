"""
tests/conftest.py -- Shared test fixtures for pagedesk.

This module provides:
  - documents: a fresh in-memory DocumentStore (mongomock) per test
  - _make_test_documents(): an isolated in-memory database for a TestClient
  - _patch_lifespan(): wires test stores into app.state, bypassing real startup
  - api_client: TestClient with an admin JWT for API integration tests

mongomock implements the pymongo Collection API in memory, so the real
DocumentStore / UserStore / CatalogStore code runs unchanged against it.

Environment variables must be set before any core/auth/api import because
get_settings() is read once at module load.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: set before any pagedesk import so get_settings() picks them up.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BASE_URL", "http://testserver")
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import mongomock
import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.store import UserStore
from auth.tokens import create_access_token, hash_password
from catalog.store import CatalogStore
from core.pagination import Paginator
from store.documents import DocumentStore

BASE_URL = "http://testserver"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "adminpass123"


def _make_test_documents(db_name: str) -> DocumentStore:
    """Create an isolated in-memory database.

    Args:
        db_name: Unique name per test module so modules don't share state.
    """
    return DocumentStore(client=mongomock.MongoClient(), db_name=db_name)


def _patch_lifespan(documents: DocumentStore):
    """Return an async context manager that replaces the real lifespan.

    Wires the in-memory stores and a Paginator into app.state exactly as the
    production lifespan does, without opening a MongoDB connection.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.documents = documents
        app.state.user_store = UserStore(documents)
        app.state.catalog = CatalogStore(documents)
        app.state.paginator = Paginator(base_url=BASE_URL)
        yield

    return test_lifespan


@pytest.fixture
def documents() -> DocumentStore:
    """Fresh in-memory DocumentStore for unit tests."""
    return _make_test_documents(f"unit_{uuid.uuid4().hex[:8]}")


@pytest.fixture(scope="module")
def api_client() -> Generator[tuple[TestClient, str, str], None, None]:
    """Yield (client, token, user_id) for API integration tests.

    The TestClient uses the real FastAPI app with a patched lifespan so tests
    hit real route handlers against an isolated in-memory database. An admin
    user is created before the client starts and a JWT is issued for it.
    """
    documents = _make_test_documents(f"api_{uuid.uuid4().hex[:8]}")
    user_store = UserStore(documents)
    uid = user_store.create_user(
        User(
            email=ADMIN_EMAIL,
            name="Test Admin",
            role="admin",
            hashed_password=hash_password(ADMIN_PASSWORD),
        )
    )
    token = create_access_token(user_id=uid, email=ADMIN_EMAIL, role="admin", expire_seconds=3600)

    app.router.lifespan_context = _patch_lifespan(documents)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, uid

    documents.close()
