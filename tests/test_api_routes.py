"""
tests/test_api_routes.py -- Integration tests for the /api/v1 auth and project routes.

These tests exercise the full stack: FastAPI routing -> token extraction ->
TrackerService -> SQLite stores -> response model serialization. Unit testing
individual route functions would miss middleware, dependency injection, and
the exception handlers that turn domain errors into status codes.

Coverage:
  - Register 201 / duplicate 409 / bad body 422; login 200 / bad password 401
  - Session cookie and Bearer header are both accepted; the header wins
  - Logout revokes the token immediately
  - Project CRUD happy path
  - Cross-user isolation: other users' projects are 404, never 403
  - owner_id in a request body is rejected (422), never honored
  - Every project route returns 401 without a token
  - Storage failures surface as a generic 503 storage_error, details logged only

Fixtures used (from conftest.py):
  - client: TestClient over a fresh temp-file database, follow_redirects=False
  - register_via_api: helper returning {"Authorization": "Bearer ..."} headers
"""

from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text

from auth.tokens import SESSION_COOKIE
from core.errors import PersistenceError


class TestAuthRoutes:
    def test_register_returns_token_and_cookie(self, client: TestClient) -> None:
        resp = client.post("/api/v1/auth/register", json={"username": "alice", "password": "pw1"})
        assert resp.status_code == 201
        data = resp.json()
        assert data["username"] == "alice"
        assert data["token_type"] == "bearer"
        assert data["token"]
        assert resp.cookies.get(SESSION_COOKIE) == data["token"]
        assert resp.headers["cache-control"] == "no-store"

    def test_register_duplicate_409(self, client: TestClient, register_via_api) -> None:
        register_via_api("alice")
        resp = client.post("/api/v1/auth/register", json={"username": "alice", "password": "other"})
        assert resp.status_code == 409
        assert resp.json()["error"]["code"] == "duplicate_username"

    @pytest.mark.parametrize(
        "body",
        [
            {"username": "", "password": "pw1"},
            {"username": "alice", "password": ""},
            {"username": "alice"},
            {"username": "alice", "password": "pw1", "is_admin": True},
        ],
    )
    def test_register_bad_body_422(self, client: TestClient, body: dict) -> None:
        resp = client.post("/api/v1/auth/register", json=body)
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"

    def test_register_blank_username_after_trim_422(self, client: TestClient) -> None:
        resp = client.post("/api/v1/auth/register", json={"username": "   ", "password": "pw1"})
        assert resp.status_code == 422

    def test_login_success(self, client: TestClient, register_via_api) -> None:
        register_via_api("alice", "pw1")
        resp = client.post("/api/v1/auth/login", json={"username": "alice", "password": "pw1"})
        assert resp.status_code == 200
        assert resp.json()["username"] == "alice"

    def test_login_failures_are_uniform(self, client: TestClient, register_via_api) -> None:
        register_via_api("alice", "pw1")
        wrong = client.post("/api/v1/auth/login", json={"username": "alice", "password": "wrongpw"})
        unknown = client.post("/api/v1/auth/login", json={"username": "nonexistent", "password": "pw1"})
        assert wrong.status_code == unknown.status_code == 401
        assert wrong.json() == unknown.json()
        assert wrong.json()["error"]["code"] == "invalid_credentials"

    def test_me_with_bearer(self, client: TestClient, register_via_api) -> None:
        headers = register_via_api("alice")
        resp = client.get("/api/v1/auth/me", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["username"] == "alice"

    def test_me_with_cookie(self, client: TestClient) -> None:
        client.post("/api/v1/auth/register", json={"username": "alice", "password": "pw1"})
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 200
        assert resp.json()["username"] == "alice"

    def test_bearer_wins_over_stale_cookie(self, client: TestClient, register_via_api) -> None:
        headers = register_via_api("alice")
        client.cookies.set(SESSION_COOKIE, "expired-or-revoked")
        resp = client.get("/api/v1/auth/me", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["username"] == "alice"

    def test_me_unauthenticated(self, client: TestClient) -> None:
        resp = client.get("/api/v1/auth/me")
        assert resp.status_code == 401
        assert resp.json()["error"]["code"] == "unauthorized"

    def test_logout_revokes_token(self, client: TestClient, register_via_api) -> None:
        headers = register_via_api("alice")
        assert client.post("/api/v1/auth/logout", headers=headers).status_code == 200
        assert client.get("/api/v1/auth/me", headers=headers).status_code == 401
        # Logging out again is harmless.
        assert client.post("/api/v1/auth/logout", headers=headers).status_code == 200

    def test_sessions_are_independent(self, client: TestClient, register_via_api) -> None:
        first = register_via_api("alice", "pw1")
        resp = client.post("/api/v1/auth/login", json={"username": "alice", "password": "pw1"})
        client.cookies.clear()
        second = {"Authorization": f"Bearer {resp.json()['token']}"}
        client.post("/api/v1/auth/logout", headers=first)
        assert client.get("/api/v1/auth/me", headers=second).status_code == 200


class TestProjectRoutes:
    def test_crud(self, client: TestClient, register_via_api) -> None:
        headers = register_via_api("alice")

        created = client.post("/api/v1/projects", json={"name": "Elvish", "description": ""}, headers=headers)
        assert created.status_code == 201
        pid = created.json()["id"]

        listing = client.get("/api/v1/projects", headers=headers).json()
        assert [(p["id"], p["name"], p["description"]) for p in listing] == [(pid, "Elvish", None)]

        patched = client.patch(f"/api/v1/projects/{pid}", json={"description": "Sindarin"}, headers=headers)
        assert patched.status_code == 200
        assert patched.json()["name"] == "Elvish"
        assert patched.json()["description"] == "Sindarin"

        detail = client.get(f"/api/v1/projects/{pid}", headers=headers)
        assert detail.json()["description"] == "Sindarin"

        assert client.delete(f"/api/v1/projects/{pid}", headers=headers).status_code == 204
        assert client.get("/api/v1/projects", headers=headers).json() == []

    def test_list_newest_first(self, client: TestClient, register_via_api) -> None:
        headers = register_via_api("alice")
        for name in ("one", "two", "three"):
            client.post("/api/v1/projects", json={"name": name}, headers=headers)
        names = [p["name"] for p in client.get("/api/v1/projects", headers=headers).json()]
        assert names == ["three", "two", "one"]

    def test_blank_name_422(self, client: TestClient, register_via_api) -> None:
        headers = register_via_api("alice")
        resp = client.post("/api/v1/projects", json={"name": "   "}, headers=headers)
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"

    def test_owner_id_in_body_rejected(self, client: TestClient, register_via_api) -> None:
        alice = register_via_api("alice")
        bob = register_via_api("bob")
        resp = client.post("/api/v1/projects", json={"name": "Sneaky", "owner_id": 1}, headers=bob)
        assert resp.status_code == 422
        assert client.get("/api/v1/projects", headers=alice).json() == []

    def test_other_users_project_is_404(self, client: TestClient, register_via_api) -> None:
        alice = register_via_api("alice")
        bob = register_via_api("bob")
        pid = client.post("/api/v1/projects", json={"name": "Elvish"}, headers=alice).json()["id"]

        assert client.get("/api/v1/projects", headers=bob).json() == []
        foreign = client.get(f"/api/v1/projects/{pid}", headers=bob)
        missing = client.get(f"/api/v1/projects/{pid + 999}", headers=bob)
        assert foreign.status_code == missing.status_code == 404
        assert foreign.json() == missing.json()

        assert client.patch(f"/api/v1/projects/{pid}", json={"name": "Mine"}, headers=bob).status_code == 404
        assert client.delete(f"/api/v1/projects/{pid}", headers=bob).status_code == 404
        assert client.get(f"/api/v1/projects/{pid}", headers=alice).json()["name"] == "Elvish"

    @pytest.mark.parametrize(
        "method, path",
        [
            ("GET", "/api/v1/projects"),
            ("POST", "/api/v1/projects"),
            ("GET", "/api/v1/projects/1"),
            ("PATCH", "/api/v1/projects/1"),
            ("DELETE", "/api/v1/projects/1"),
        ],
    )
    def test_unauthenticated_401(self, client: TestClient, method: str, path: str) -> None:
        body = {"name": "x"} if method in ("POST", "PATCH") else None
        resp = client.request(method, path, json=body)
        assert resp.status_code == 401

    def test_garbage_token_401(self, client: TestClient) -> None:
        resp = client.get("/api/v1/projects", headers={"Authorization": "Bearer not-a-session"})
        assert resp.status_code == 401


class TestStorageFailure:
    def test_storage_failure_is_generic_503(self, client: TestClient, register_via_api, caplog) -> None:
        """Driver errors are logged server-side and reach the client as storage_error."""
        headers = register_via_api("alice")
        with client.app.state.db.transaction() as conn:
            conn.execute(text("DROP TABLE projects"))

        with caplog.at_level(logging.ERROR, logger="studio.db"):
            resp = client.get("/api/v1/projects", headers=headers)

        assert resp.status_code == 503
        error = resp.json()["error"]
        assert error["code"] == "storage_error"
        assert error["message"] == PersistenceError.message
        assert "no such table" not in resp.text
        assert any(r.exc_info and "no such table" in str(r.exc_info[1]) for r in caplog.records)
