"""
auth/store.py -- SQLAlchemy Core persistence layer for user credentials.

Pattern: Repository + Data Mapper (same as projects/store.py).
UserStore is the repository; _row_to_user is the mapper.
Route and service code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Username uniqueness is enforced by the UNIQUE constraint, not by a
  SELECT-then-INSERT. register() is a single INSERT inside one transaction:
  of two concurrent registrations for the same name, the second INSERT
  fails on the constraint and surfaces as DuplicateUsername.

Layer rule: no imports from api/, web/, projects/, or tracker/.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, select
from sqlalchemy.engine import Connection
from sqlalchemy.exc import IntegrityError

from auth.models import User
from core.database import Database, to_iso, users, utcnow
from core.errors import DuplicateUsername, PersistenceError, StudioError

logger = logging.getLogger("studio.auth")


class UserStore:
    """Repository for User entities.

    Usage:
        store = UserStore(db)
        uid = store.register("alice", hash_password("secret"))
        user = store.get_by_username("alice")
    """

    def __init__(self, db: Database) -> None:
        self.db = db

    def register(self, username: str, password_hash: str) -> int:
        """Insert a new user and return its assigned database ID.

        Raises DuplicateUsername if the username already exists. Any other
        constraint failure is a storage fault and raises PersistenceError.
        """
        try:
            with self.db.transaction() as conn:
                return self.insert(conn, username, password_hash)
        except IntegrityError as exc:
            raise self.conflict_error(username) from exc

    def insert(self, conn: Connection, username: str, password_hash: str) -> int:
        """INSERT the user on the caller's connection and return its ID.

        Lets a caller add more writes to the same transaction. An
        IntegrityError propagates; once the transaction has rolled back,
        pass the username to conflict_error().
        """
        result = conn.execute(
            users.insert().values(
                username=username,
                password_hash=password_hash,
                created_at=to_iso(utcnow()),
            )
        )
        return result.inserted_primary_key[0]

    def conflict_error(self, username: str) -> StudioError:
        """Classify a failed insert: DuplicateUsername if the name is taken."""
        if self.get_by_username(username) is not None:
            return DuplicateUsername()
        logger.exception("Unexpected integrity failure registering a user")
        return PersistenceError()

    def get_by_username(self, username: str) -> User | None:
        """Look up a user by exact username (case-sensitive). Returns None if not found."""
        with self.db.transaction() as conn:
            row = conn.execute(users.select().where(users.c.username == username)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_id(self, user_id: int) -> User | None:
        with self.db.transaction() as conn:
            row = conn.execute(users.select().where(users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def hash_for(self, user_id: int) -> str | None:
        """Return the stored password hash for user_id, or None. Login use only."""
        with self.db.transaction() as conn:
            return conn.execute(select(users.c.password_hash).where(users.c.id == user_id)).scalar()

    def has_users(self) -> bool:
        with self.db.transaction() as conn:
            count = conn.execute(select(func.count()).select_from(users)).scalar()
        return (count or 0) > 0


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        username=row.username,
        password_hash=row.password_hash,
        created_at=row.created_at,
    )
