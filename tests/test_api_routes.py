"""
tests/test_api_routes.py -- Integration tests for the auth and catalog routes.

These tests exercise the full stack: FastAPI routing -> auth dependency
injection -> Paginator -> UserStore/CatalogStore on an in-memory MongoDB ->
response model serialization.

Coverage:
  - Login guard: valid 200 {user, token}, invalid 401, malformed 422
  - Auth failures: 401 on protected routes without a token, 403 for non-admins
  - Registration and the forgot/reset password flow
  - Item pagination over HTTP: navigation links, page past the end, empty
    result, sorting, limit bounds
  - Category aggregation pagination, including the zero-row case

Fixtures used (from conftest.py):
  - api_client: (client, token, uid) -- TestClient with an admin JWT.
    The admin is ADMIN_EMAIL / ADMIN_PASSWORD.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from catalog.models import Item

# Must match the admin seeded by the api_client fixture.
BASE_URL = "http://testserver"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "adminpass123"


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _seed_items(client: TestClient, owner_id: str, category: str, count: int) -> None:
    """Insert `count` items straight through the store, one minute apart."""
    catalog = client.app.state.catalog
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    for i in range(count):
        catalog.create_item(
            Item(name=f"{category}-{i:02d}", category=category, owner_id=owner_id, created_at=start + timedelta(minutes=i))
        )


def _register(client: TestClient, email: str, password: str = "password123") -> dict:
    resp = client.post("/api/auth/register", json={"email": email, "name": email.split("@")[0], "password": password})
    assert resp.status_code == 201, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class TestLogin:
    def test_login_returns_user_and_token(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, uid = api_client
        resp = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert data["user"]["id"] == uid
        assert data["user"]["email"] == ADMIN_EMAIL
        assert data["user"]["role"] == "admin"
        assert "hashed_password" not in data["user"]
        assert data["token"]
        assert resp.headers["cache-control"] == "no-store"

        me = client.get("/api/auth/me", headers=_auth(data["token"]))
        assert me.status_code == 200
        assert me.json()["email"] == ADMIN_EMAIL

    def test_login_wrong_password(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        resp = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": "wrong-password"})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "bad_credentials"

    def test_login_unknown_email_same_error(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        resp = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "whatever"})
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "bad_credentials"

    def test_login_missing_fields(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        resp = client.post("/api/auth/login", json={"email": ADMIN_EMAIL})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"


class TestAuthFailure:
    @pytest.mark.parametrize("path", ["/api/auth/me", "/api/items", "/api/items/by-category", "/api/users"])
    def test_protected_routes_require_token(self, api_client: tuple[TestClient, str, str], path: str) -> None:
        client, _token, _uid = api_client
        resp = client.get(path)
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_invalid_token(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        resp = client.get("/api/auth/me", headers=_auth("not-a-token"))
        assert resp.status_code == 401

    def test_users_list_is_admin_only(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        user_token = _register(client, "plain@example.com")["token"]
        resp = client.get("/api/users", headers=_auth(user_token))
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"


# ---------------------------------------------------------------------------
# Registration and password reset
# ---------------------------------------------------------------------------


class TestRegistration:
    def test_register_then_login(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        data = _register(client, "newbie@example.com", "newbie-pass-1")
        assert data["user"]["role"] == "user"
        resp = client.post("/api/auth/login", json={"email": "newbie@example.com", "password": "newbie-pass-1"})
        assert resp.status_code == 200

    def test_duplicate_email_conflicts(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        resp = client.post(
            "/api/auth/register",
            json={"email": ADMIN_EMAIL.upper(), "name": "Dup", "password": "password123"},
        )
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "conflict"

    def test_short_password_rejected(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        resp = client.post("/api/auth/register", json={"email": "short@example.com", "name": "S", "password": "abc"})
        assert resp.status_code == 422

    def test_multibyte_password_over_72_bytes_rejected(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        # 40 characters, 80 bytes
        body = {"email": "accent@example.com", "name": "Accent", "password": "\u00e9" * 40}
        resp = client.post("/api/auth/register", json=body)
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"

    def test_multibyte_password_within_72_bytes_accepted(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        password = "\u00e9" * 36
        _register(client, "accented@example.com", password)
        resp = client.post("/api/auth/login", json={"email": "accented@example.com", "password": password})
        assert resp.status_code == 200


class TestPasswordReset:
    def test_full_reset_flow(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        user_id = _register(client, "forgetful@example.com", "old-password-1")["user"]["id"]

        resp = client.post("/api/auth/forgot-password", json={"email": "forgetful@example.com"})
        assert resp.status_code == 202
        otp = client.app.state.user_store.get_latest_otp(user_id)
        assert otp is not None

        wrong = 1000 if otp.code != 1000 else 1001
        body = {"email": "forgetful@example.com", "otp": wrong, "new_password": "new-password-1"}
        resp = client.post("/api/auth/reset-password", json=body)
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_otp"

        body["otp"] = otp.code
        resp = client.post("/api/auth/reset-password", json=body)
        assert resp.status_code == 200, resp.text

        # code is single-use
        resp = client.post("/api/auth/reset-password", json=body)
        assert resp.status_code == 400

        old = client.post("/api/auth/login", json={"email": "forgetful@example.com", "password": "old-password-1"})
        assert old.status_code == 401
        new = client.post("/api/auth/login", json={"email": "forgetful@example.com", "password": "new-password-1"})
        assert new.status_code == 200

    def test_reset_rejects_password_over_72_bytes(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        body = {"email": ADMIN_EMAIL, "otp": 1234, "new_password": "\u00e9" * 40}
        resp = client.post("/api/auth/reset-password", json=body)
        assert resp.status_code == 422

    def test_forgot_password_unknown_email_is_accepted(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        resp = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
        assert resp.status_code == 202


# ---------------------------------------------------------------------------
# Items -- filter pagination
# ---------------------------------------------------------------------------


class TestItemPagination:
    def test_create_and_get_item(self, api_client: tuple[TestClient, str, str]) -> None:
        client, token, uid = api_client
        resp = client.post("/api/items", json={"name": "Dune", "category": "books", "tags": ["scifi"]}, headers=_auth(token))
        assert resp.status_code == 201, resp.text
        item = resp.json()
        assert item["owner_id"] == uid
        assert item["tags"] == ["scifi"]

        detail = client.get(f"/api/items/{item['id']}", headers=_auth(token))
        assert detail.status_code == 200
        assert detail.json()["name"] == "Dune"

    def test_unknown_item_is_404(self, api_client: tuple[TestClient, str, str]) -> None:
        client, token, _uid = api_client
        assert client.get("/api/items/000000000000000000000000", headers=_auth(token)).status_code == 404
        assert client.get("/api/items/not-an-id", headers=_auth(token)).status_code == 404

    def test_first_and_last_page_links(self, api_client: tuple[TestClient, str, str]) -> None:
        client, token, uid = api_client
        _seed_items(client, uid, "twenty", 20)

        first = client.get("/api/items", params={"category": "twenty", "page": 1, "limit": 10}, headers=_auth(token))
        assert first.status_code == 200, first.text
        data = first.json()
        assert len(data["result"]) == 10
        assert data["pagination"] == {
            "currentPage": 1,
            "totalPages": 2,
            "hasNextPage": True,
            "hasPrevPage": False,
            "totalItems": 20,
            "nextPage": f"{BASE_URL}/api/items?page=2&limit=10",
            "prevPage": None,
        }
        # newest first, owner populated without the password hash
        assert data["result"][0]["name"] == "twenty-19"
        owner = data["result"][0]["owner"]
        assert owner["_id"] == uid
        assert owner["email"] == ADMIN_EMAIL
        assert "hashed_password" not in owner

        # links carry only page and limit; filters are re-applied by the caller
        second = client.get(data["pagination"]["nextPage"] + "&category=twenty", headers=_auth(token))
        assert second.status_code == 200
        meta = second.json()["pagination"]
        assert meta["hasNextPage"] is False
        assert meta["hasPrevPage"] is True
        assert meta["prevPage"] == f"{BASE_URL}/api/items?page=1&limit=10"
        assert second.json()["result"][-1]["name"] == "twenty-00"

    def test_page_past_the_end(self, api_client: tuple[TestClient, str, str]) -> None:
        client, token, uid = api_client
        _seed_items(client, uid, "five", 5)
        resp = client.get("/api/items", params={"category": "five", "page": 3, "limit": 10}, headers=_auth(token))
        assert resp.status_code == 200
        data = resp.json()
        assert data["result"] == []
        assert data["pagination"]["totalPages"] == 1
        assert data["pagination"]["totalItems"] == 5
        assert data["pagination"]["hasNextPage"] is False

    def test_empty_result(self, api_client: tuple[TestClient, str, str]) -> None:
        client, token, _uid = api_client
        resp = client.get("/api/items", params={"category": "nothing-here"}, headers=_auth(token))
        meta = resp.json()["pagination"]
        assert resp.json()["result"] == []
        assert meta["totalPages"] == 0
        assert meta["hasNextPage"] is False
        assert meta["hasPrevPage"] is False
        assert meta["nextPage"] is None
        assert meta["prevPage"] is None

    def test_sort_by_name(self, api_client: tuple[TestClient, str, str]) -> None:
        client, token, uid = api_client
        _seed_items(client, uid, "sorted", 3)
        resp = client.get("/api/items", params={"category": "sorted", "sort": "name"}, headers=_auth(token))
        assert [r["name"] for r in resp.json()["result"]] == ["sorted-00", "sorted-01", "sorted-02"]

    def test_invalid_sort_field(self, api_client: tuple[TestClient, str, str]) -> None:
        client, token, _uid = api_client
        resp = client.get("/api/items", params={"sort": "owner.hashed_password"}, headers=_auth(token))
        assert resp.status_code == 400
        assert resp.json()["error"]["code"] == "invalid_sort"

    @pytest.mark.parametrize("params", [{"page": 0}, {"limit": 0}, {"limit": 1000}])
    def test_page_request_bounds(self, api_client: tuple[TestClient, str, str], params: dict) -> None:
        client, token, _uid = api_client
        resp = client.get("/api/items", params=params, headers=_auth(token))
        assert resp.status_code == 422


# ---------------------------------------------------------------------------
# Items -- aggregation pagination
# ---------------------------------------------------------------------------


class TestCategoryPagination:
    def test_zero_rows_and_grouped_rows(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        registered = _register(client, "collector@example.com")
        token = registered["token"]

        empty = client.get("/api/items/by-category", params={"mine": "true"}, headers=_auth(token))
        assert empty.status_code == 200
        assert empty.json()["result"] == []
        # same zero-filled record as the filter path
        assert empty.json()["pagination"] == {
            "currentPage": 1,
            "totalPages": 0,
            "hasNextPage": False,
            "hasPrevPage": False,
            "totalItems": 0,
            "nextPage": None,
            "prevPage": None,
        }

        for name, category in [("a1", "cat-a"), ("a2", "cat-a"), ("b1", "cat-b")]:
            resp = client.post("/api/items", json={"name": name, "category": category}, headers=_auth(token))
            assert resp.status_code == 201

        first = client.get("/api/items/by-category", params={"mine": "true", "limit": 1}, headers=_auth(token))
        data = first.json()
        assert data["pagination"]["totalItems"] == 2
        assert data["pagination"]["nextPage"] == f"{BASE_URL}/api/items/by-category?page=2&limit=1"
        assert data["result"][0]["_id"] == "cat-a"
        assert data["result"][0]["count"] == 2

        second = client.get(data["pagination"]["nextPage"] + "&mine=true", headers=_auth(token))
        row = second.json()["result"][0]
        assert row["_id"] == "cat-b"
        assert row["count"] == 1
        assert second.json()["pagination"]["prevPage"] == f"{BASE_URL}/api/items/by-category?page=1&limit=1"


# ---------------------------------------------------------------------------
# Users (admin)
# ---------------------------------------------------------------------------


class TestUserList:
    def test_admin_lists_users_with_links(self, api_client: tuple[TestClient, str, str]) -> None:
        client, token, _uid = api_client
        resp = client.get("/api/users", params={"limit": 1}, headers=_auth(token))
        assert resp.status_code == 200, resp.text
        data = resp.json()
        assert len(data["result"]) == 1
        assert "hashed_password" not in data["result"][0]
        assert data["pagination"]["currentPage"] == 1
        if data["pagination"]["hasNextPage"]:
            assert data["pagination"]["nextPage"] == f"{BASE_URL}/api/users?page=2&limit=1"

    def test_filter_by_role(self, api_client: tuple[TestClient, str, str]) -> None:
        client, token, uid = api_client
        resp = client.get("/api/users", params={"role": "admin"}, headers=_auth(token))
        ids = [u["id"] for u in resp.json()["result"]]
        assert ids == [uid]
