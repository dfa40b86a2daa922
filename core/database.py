"""
core/database.py -- Shared SQLAlchemy Core storage client and schema.

Pattern: one explicitly constructed Database per process, passed by reference
to every store (UserStore, SessionStore, ProjectStore). There is no module-
level engine and no global lock: the Engine's connection pool hands out one
connection per logical operation, and Database.transaction() scopes that
operation to a single BEGIN/COMMIT.

All three tables live on one MetaData because sessions and projects carry
foreign keys to users. SQLite does not enforce foreign keys unless asked, so
PRAGMA foreign_keys=ON is issued on every new pooled connection.

Error policy:
  IntegrityError propagates unchanged -- stores translate it into a domain
  error (DuplicateUsername) where a constraint violation has meaning.
  Any other SQLAlchemyError is logged with its traceback and re-raised as
  PersistenceError, whose message carries no internal detail.

Usage:
    db = Database("sqlite:///studio.db")
    with db.transaction() as conn:
        conn.execute(users.select())
    db.close()
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    event,
    text,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from core.errors import PersistenceError

logger = logging.getLogger("studio.db")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(64), nullable=False, unique=True),
    Column("password_hash", Text, nullable=False),
    Column("created_at", String(32), nullable=False),
)

projects = Table(
    "projects",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("owner_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("name", String(200), nullable=False),
    Column("description", Text),  # NULL when the user left it blank
    Column("created_at", String(32), nullable=False),
)

sessions = Table(
    "sessions",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("token_hash", String(64), nullable=False, unique=True),  # HMAC-SHA256 hex of the raw token
    Column("owner_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("username", String(64), nullable=False),  # denormalized for display
    Column("created_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False, index=True),
)


# ---------------------------------------------------------------------------
# Timestamps
#
# Stored as fixed-width ISO 8601 UTC strings (always with microseconds) so
# lexicographic order in SQL equals chronological order.
# ---------------------------------------------------------------------------


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: str) -> datetime:
    moment = datetime.fromisoformat(value)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment


# ---------------------------------------------------------------------------
# Connection setup
# ---------------------------------------------------------------------------


def _configure_sqlite(dbapi_conn, connection_record) -> None:
    """Per-connection PRAGMAs. SQLite PRAGMAs are not inherited across the pool.

    foreign_keys: enforce projects/sessions -> users references.
    journal_mode=WAL: readers proceed while a writer holds the lock.
    """
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.close()


class Database:
    """Owner of the Engine (connection pool) shared by all stores."""

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        self._is_sqlite = db_url.startswith("sqlite")
        if self._is_sqlite:
            # Handlers run in a thread pool; connections are never shared
            # between threads concurrently, the pool hands each one out once.
            connect_args["check_same_thread"] = False
            connect_args["timeout"] = 15
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if self._is_sqlite:
            event.listen(self.engine, "connect", _configure_sqlite)
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            logger.exception("Schema creation failed")
            raise PersistenceError() from exc

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """Yield a connection inside BEGIN ... COMMIT (ROLLBACK on error)."""
        try:
            with self.engine.begin() as conn:
                yield conn
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.exception("Storage operation failed")
            raise PersistenceError() from exc

    def ping(self) -> bool:
        """Return True if a trivial query succeeds. Used by the health endpoint."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            logger.warning("Database ping failed", exc_info=True)
            return False
        return True

    def close(self) -> None:
        self.engine.dispose()
