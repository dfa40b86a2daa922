"""
auth/sessions.py -- Server-side session store.

A session is an opaque random token held by the client and a row in the
sessions table keyed by the token's HMAC. Because the state lives on the
server, logout (destroy) revokes a token immediately -- a self-contained
signed token could not be revoked without a separate deny list.

Lifecycle:
  Anonymous --create()--> Authenticated --destroy() / expiry--> Anonymous

Sliding expiry: every successful resolve() moves expires_at to now + ttl,
so a session dies only after ttl seconds without use.

resolve() never raises for a bad token. Missing, unknown, and expired tokens
all return None, which callers treat as "not logged in".

Layer rule: no imports from api/, web/, projects/, or tracker/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from auth.models import Identity, Session
from auth.tokens import generate_session_token, hash_session_token
from core.database import Database, from_iso, sessions, to_iso, utcnow
from core.errors import PersistenceError

logger = logging.getLogger("studio.sessions")


class SessionStore:
    """Repository for Session rows.

    Usage:
        store = SessionStore(db, ttl_seconds=86400)
        token = store.create(user_id, "alice")
        identity = store.resolve(token)   # Identity or None
        store.destroy(token)
    """

    def __init__(
        self,
        db: Database,
        ttl_seconds: int = 24 * 60 * 60,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self.db = db
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    def create(self, user_id: int, username: str, conn: Connection | None = None) -> str:
        """Start a session for user_id and return the raw token.

        The raw token is returned once and never persisted. With conn, the
        row is written inside the caller's transaction and any database
        error propagates to the caller.
        """
        token = generate_session_token()
        if conn is not None:
            self._insert(conn, token, user_id, username)
            return token
        try:
            with self.db.transaction() as own_conn:
                self._insert(own_conn, token, user_id, username)
        except IntegrityError as exc:
            # Unknown user_id (foreign key) or, with 256-bit tokens, never a hash clash.
            logger.exception("Session insert rejected for user_id=%d", user_id)
            raise PersistenceError() from exc
        logger.info("Session created for user_id=%d", user_id)
        return token

    def _insert(self, conn: Connection, token: str, user_id: int, username: str) -> None:
        now = self._clock()
        conn.execute(
            sessions.insert().values(
                token_hash=hash_session_token(token),
                owner_id=user_id,
                username=username,
                created_at=to_iso(now),
                expires_at=to_iso(now + self.ttl),
            )
        )

    def resolve(self, token: str | None) -> Identity | None:
        """Return the Identity bound to token, or None if anonymous.

        The refresh only matches a row that is still live, so a destroy()
        or purge that lands between the lookup and the refresh leaves the
        caller anonymous rather than reviving the session.
        """
        if not token:
            return None
        token_hash = hash_session_token(token)
        now = self._clock()
        with self.db.transaction() as conn:
            row = conn.execute(sessions.select().where(sessions.c.token_hash == token_hash)).first()
            if row is None:
                return None
            if from_iso(row.expires_at) <= now:
                conn.execute(sessions.delete().where(sessions.c.id == row.id))
                logger.info("Session expired for user_id=%d", row.owner_id)
                return None
            refreshed = conn.execute(
                sessions.update()
                .where((sessions.c.id == row.id) & (sessions.c.expires_at > to_iso(now)))
                .values(expires_at=to_iso(now + self.ttl))
            )
            if refreshed.rowcount == 0:
                return None
        return Identity(user_id=row.owner_id, username=row.username)

    def get(self, token: str) -> Session | None:
        """Return the raw Session row for token without refreshing it."""
        with self.db.transaction() as conn:
            row = conn.execute(
                sessions.select().where(sessions.c.token_hash == hash_session_token(token))
            ).fetchone()
        return _row_to_session(row) if row is not None else None

    def destroy(self, token: str | None) -> None:
        """End the session. Idempotent: an unknown token is not an error."""
        if not token:
            return
        with self.db.transaction() as conn:
            result = conn.execute(sessions.delete().where(sessions.c.token_hash == hash_session_token(token)))
        if result.rowcount:
            logger.info("Session destroyed")

    def destroy_all_for_user(self, user_id: int) -> int:
        """End every session belonging to user_id. Returns the number removed."""
        with self.db.transaction() as conn:
            result = conn.execute(sessions.delete().where(sessions.c.owner_id == user_id))
        return result.rowcount

    def purge_expired(self) -> int:
        """Delete all sessions past their expiry. Returns number of rows removed."""
        with self.db.transaction() as conn:
            result = conn.execute(sessions.delete().where(sessions.c.expires_at <= to_iso(self._clock())))
        if result.rowcount:
            logger.info("Purged %d expired sessions", result.rowcount)
        return result.rowcount


def _row_to_session(row) -> Session:
    return Session(
        id=row.id,
        token_hash=row.token_hash,
        user_id=row.owner_id,
        username=row.username,
        created_at=row.created_at,
        expires_at=row.expires_at,
    )
