"""
tests/conftest.py -- Shared test fixtures for Conlang Studio.

This module provides:
  - db / file_db: a fresh Database per test (in-memory, or a temp file for
    tests that need several connections at once)
  - user_store / session_store / project_store / tracker: stores wired onto db
  - client: TestClient over the real app (API + web routers) with a patched
    lifespan, follow_redirects=False so redirect Locations can be asserted

Design: the web/API client uses a temporary SQLite *file* rather than
:memory:. TestClient runs sync route handlers in a thread pool, and each
pooled connection to a plain :memory: URL would see its own empty database.

DEBUG and BCRYPT_ROUNDS must be set before any auth/core import:
get_settings() is read at import time by auth/tokens.py.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set before any auth/core import so get_settings() auto-generates
# SECRET_KEY in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.limiter import limiter
from asgi import app
from auth.sessions import SessionStore
from auth.store import UserStore
from core.database import Database
from projects.store import ProjectStore
from tracker.service import TrackerService, build_service

# Rate limits would trip across tests that log in repeatedly from "testclient".
limiter.enabled = False


class FakeClock:
    """Controllable replacement for core.database.utcnow."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


# ---------------------------------------------------------------------------
# Storage fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db() -> Generator[Database, None, None]:
    database = Database("sqlite:///:memory:")
    yield database
    database.close()


@pytest.fixture
def file_db(tmp_path) -> Generator[Database, None, None]:
    database = Database(f"sqlite:///{tmp_path / 'studio_test.db'}")
    yield database
    database.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def user_store(db: Database) -> UserStore:
    return UserStore(db)


@pytest.fixture
def session_store(db: Database, clock: FakeClock) -> SessionStore:
    return SessionStore(db, ttl_seconds=24 * 60 * 60, clock=clock)


@pytest.fixture
def project_store(db: Database) -> ProjectStore:
    return ProjectStore(db)


@pytest.fixture
def tracker(user_store: UserStore, session_store: SessionStore, project_store: ProjectStore) -> TrackerService:
    return TrackerService(users=user_store, sessions=session_store, projects=project_store)


# ---------------------------------------------------------------------------
# App fixture
# ---------------------------------------------------------------------------


def _patch_lifespan(db: Database, tracker: TrackerService):
    """Return an async context manager that replaces the real lifespan.

    Wires the test Database and TrackerService into app.state so routes use
    the isolated temp database. No purge task is started.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.db = db
        app.state.tracker = tracker
        yield

    return test_lifespan


@pytest.fixture
def client(tmp_path) -> Generator[TestClient, None, None]:
    """TestClient over the full app with a fresh database per test."""
    database = Database(f"sqlite:///{tmp_path / 'studio_app.db'}")
    service = build_service(database)
    app.router.lifespan_context = _patch_lifespan(database, service)

    with TestClient(app, follow_redirects=False, raise_server_exceptions=True) as test_client:
        yield test_client

    database.close()


@pytest.fixture
def register_via_api(client: TestClient):
    """Return a helper that registers through the API and returns auth headers.

    The helper clears the cookie jar afterwards so one account's cookie never
    rides along on another account's request; tests authenticate with the
    returned Bearer header instead.
    """

    def _register(username: str, password: str = "pw-123") -> dict[str, str]:
        resp = client.post("/api/v1/auth/register", json={"username": username, "password": password})
        assert resp.status_code == 201, resp.text
        client.cookies.clear()
        return {"Authorization": f"Bearer {resp.json()['token']}"}

    return _register
