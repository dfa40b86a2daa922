"""
auth/tokens.py -- Password hashing, login verification, and session token utilities.

Security design decisions:
  Passwords: bcrypt via the bcrypt package directly. The stored string is
       self-describing ($2b$<cost>$<22-char salt><31-char digest>), so
       verification needs nothing but the hash. bcrypt.checkpw compares in
       constant time. The _DUMMY_HASH constant enables timing equalization in
       authenticate_user() so response time does not reveal whether a
       username exists.

  Session tokens: secrets.token_urlsafe(32) gives 256 bits of entropy. The
       store keeps HMAC-SHA256(SECRET_KEY, token) rather than the token, so
       a leaked database does not hand out live sessions. The hash is
       deterministic, so lookup is a single indexed equality match.

  SECRET_KEY: sourced from core.config.get_settings().

Layer rule: no imports from api/, web/, projects/, or tracker/. Import from
core/ is allowed -- core/ is the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from typing import TYPE_CHECKING

import bcrypt

from core.config import get_settings
from core.errors import HashingFailure

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("studio.auth")

_settings = get_settings()

# bcrypt only looks at the first 72 bytes and bcrypt>=5 refuses longer input.
MAX_PASSWORD_BYTES = 72

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    Callers validate length first (see MAX_PASSWORD_BYTES). The only failure
    surfaced here is resource exhaustion, as HashingFailure.
    """
    try:
        salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
        return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")
    except MemoryError as exc:
        logger.error("bcrypt ran out of memory while hashing a password")
        raise HashingFailure() from exc


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash.

    A malformed or empty hash, or an over-long password, is a mismatch.
    """
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("studio_timing_dummy")


# ---------------------------------------------------------------------------
# User authentication (constant-time)
# ---------------------------------------------------------------------------


def authenticate_user(store: UserStore, username: str, password: str) -> User | None:
    """Authenticate a username/password login with timing equalization.

    Always runs bcrypt exactly once:
    - Unknown username: bcrypt runs against _DUMMY_HASH
    - Known username: bcrypt runs against the stored hash

    Returns the User on success, None on any failure.
    """
    user = store.get_by_username(username)
    if user is None or user.id is None:
        # do NOT return before running bcrypt
        verify_password(password, _DUMMY_HASH)
        return None
    stored = store.hash_for(user.id) or _DUMMY_HASH
    if not verify_password(password, stored):
        return None
    return user


# ---------------------------------------------------------------------------
# Session tokens
# ---------------------------------------------------------------------------


def generate_session_token() -> str:
    """Return a new opaque session token (43 URL-safe chars, 256 bits)."""
    return secrets.token_urlsafe(32)


def hash_session_token(raw_token: str) -> str:
    """Return HMAC-SHA256(SECRET_KEY, raw_token) as a hex string."""
    return hmac.new(
        _settings.secret_key.encode(),
        raw_token.encode(),
        hashlib.sha256,
    ).hexdigest()


# ---------------------------------------------------------------------------
# Cookie helper
# ---------------------------------------------------------------------------

SESSION_COOKIE = "session_token"


def set_session_cookie(response, token: str) -> None:
    """Write the session token as an httpOnly cookie on the response.

    httponly=True: JS cannot read the cookie.
    samesite="lax": not sent on cross-site POST.
    No max_age: the server-side sliding expiry is authoritative, so the
        cookie lives for the browser session and an expired token simply
        resolves to anonymous.
    """
    response.set_cookie(
        SESSION_COOKIE,
        value=token,
        httponly=True,
        samesite="lax",
        secure=_settings.secure_cookies,
    )


def clear_session_cookie(response) -> None:
    response.delete_cookie(SESSION_COOKIE)
