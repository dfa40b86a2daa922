"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Mirrors the approach
in projects/models.py -- dataclasses own domain shape; stores and the service
layer do the work.

Layer rule: no imports from api/, web/, projects/, or tracker/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class User:
    """A registered account.

    password_hash is the full self-describing bcrypt string ($2b$<cost>$...).
    It is immutable after registration (no rotation flow exists yet).
    """

    username: str
    password_hash: str
    id: int | None = None
    created_at: str | None = None


@dataclass(frozen=True)
class Identity:
    """Who a verified session belongs to.

    Only SessionStore.resolve() produces these. Anything that scopes data by
    user must take its user_id from an Identity, never from request input.
    """

    user_id: int
    username: str


@dataclass
class Session:
    """A persisted login session.

    token_hash is HMAC-SHA256(SECRET_KEY, raw_token). The raw token exists
    only in the client's cookie / Authorization header.
    """

    token_hash: str
    user_id: int
    username: str
    expires_at: str
    id: int | None = None
    created_at: str | None = None
