"""
auth/dependencies.py -- FastAPI Depends() helpers for session authentication.

Two token sources are checked in priority order:
  1. Authorization: Bearer <token> header -- API clients.
  2. "session_token" cookie -- set by the web UI and by the API login.

An explicit header wins over the cookie. Browsers never attach an
Authorization header on their own, so the web UI always uses the cookie.

Both carry the same opaque server-side session token. The identity always
comes from app.state.tracker.resolve(token); nothing in the request body,
query string, or path is ever used as a user id.

try_get_identity() is the soft variant (returns None when anonymous).
get_current_identity() wraps it and raises HTTP 401.

Layer rule: no imports from web/ or projects/. tracker/ is reached through
app.state only.
"""

from __future__ import annotations

from typing import Optional

from fastapi import HTTPException, Request

from auth.models import Identity
from auth.tokens import SESSION_COOKIE


def get_session_token(request: Request) -> Optional[str]:
    """Return the raw session token from the Bearer header or cookie, if any."""
    token: Optional[str] = None
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        token = auth_header[7:].strip()
    if not token:
        token = request.cookies.get(SESSION_COOKIE)
    return token or None


def try_get_identity(request: Request) -> Optional[Identity]:
    """Resolve the request's session. Never raises for a bad or missing token."""
    return request.app.state.tracker.resolve(get_session_token(request))


def get_current_identity(request: Request) -> Identity:
    """Require a live session. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(identity: Identity = Depends(get_current_identity)): ...
    """
    identity = try_get_identity(request)
    if identity is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return identity
