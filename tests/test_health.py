"""
tests/test_health.py -- Integration tests for GET /api/v1/health.

Covers:
  - 200 response with status, version, and components fields
  - components.database reports 'ok' while the database is reachable
  - No authentication required
"""

from __future__ import annotations

from api.main import __version__


def test_health_returns_200_with_components(client):
    """Health endpoint returns 200 with status, version, and components."""
    resp = client.get("/api/v1/health")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "healthy"
    assert data["version"] == __version__
    assert data["components"] == {"app": "ok", "database": "ok"}


def test_health_no_auth_required(client):
    """Health endpoint is accessible without a cookie or Authorization header."""
    client.cookies.clear()
    resp = client.get("/api/v1/health", headers={})
    assert resp.status_code == 200


def test_health_reports_degraded_database(client, monkeypatch):
    """A failing ping is reported, not raised."""
    monkeypatch.setattr(client.app.state.db, "ping", lambda: False)
    data = client.get("/api/v1/health").json()
    assert data["status"] == "degraded"
    assert data["components"]["database"] == "error"
