"""
tracker/service.py -- The one entry point that request handlers call.

TrackerService ties the credential store, session store, and project store
together. Its project operations take a session token, never a user id:
the owner id handed to ProjectStore is always the one SessionStore.resolve()
returned for that token. Request handlers therefore have no way to pass a
client-chosen user id into a project query.

Outcomes:
  register / login       -> AuthResult, or raise DuplicateUsername /
                            InvalidCredentials / ValidationError
  list_projects          -> ProjectListResult | RedirectToLogin
  create_project         -> ProjectCreateResult | RedirectToLogin, or raise
                            ValidationError
  get/update/delete      -> Project (or None) | RedirectToLogin, or raise
                            Forbidden

RedirectToLogin is a value, not an exception: an anonymous caller is an
ordinary state that the web layer turns into a redirect and the API layer
turns into 401.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from sqlalchemy.exc import IntegrityError

from auth.models import Identity
from auth.sessions import SessionStore
from auth.store import UserStore
from auth.tokens import MAX_PASSWORD_BYTES, authenticate_user, hash_password
from core.database import Database
from core.errors import InvalidCredentials, ValidationError
from projects.models import Project
from projects.store import UNSET, ProjectStore

logger = logging.getLogger("studio.tracker")

MAX_USERNAME_LENGTH = 64


@dataclass(frozen=True)
class AuthResult:
    token: str
    user_id: int
    username: str


@dataclass(frozen=True)
class RedirectToLogin:
    """The caller has no valid session."""

    reason: str = "anonymous"


@dataclass(frozen=True)
class ProjectListResult:
    identity: Identity
    projects: list[Project] = field(default_factory=list)


@dataclass(frozen=True)
class ProjectCreateResult:
    id: int


ANONYMOUS = RedirectToLogin()


class TrackerService:
    def __init__(self, users: UserStore, sessions: SessionStore, projects: ProjectStore) -> None:
        self.users = users
        self.sessions = sessions
        self.projects = projects

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def register(self, username: str, password: str) -> AuthResult:
        """Create an account and log it in.

        The username is trimmed. Raises ValidationError for a blank or
        over-long username or password, DuplicateUsername if taken.

        The user row and its first session commit together: if the session
        cannot be written, no account is left behind.
        """
        username = _clean_username(username)
        _check_password(password)
        password_hash = hash_password(password)
        try:
            with self.users.db.transaction() as conn:
                user_id = self.users.insert(conn, username, password_hash)
                token = self.sessions.create(user_id, username, conn=conn)
        except IntegrityError as exc:
            raise self.users.conflict_error(username) from exc
        logger.info("Registered user %r (id=%d)", username, user_id)
        return AuthResult(token=token, user_id=user_id, username=username)

    def login(self, username: str, password: str) -> AuthResult:
        """Verify credentials and start a new session.

        Unknown username and wrong password raise the same
        InvalidCredentials, and both run one bcrypt verification.
        """
        user = authenticate_user(self.users, (username or "").strip(), password or "")
        if user is None or user.id is None:
            logger.info("Failed login attempt")
            raise InvalidCredentials()
        token = self.sessions.create(user.id, user.username)
        return AuthResult(token=token, user_id=user.id, username=user.username)

    def logout(self, token: Optional[str]) -> None:
        self.sessions.destroy(token)

    def resolve(self, token: Optional[str]) -> Optional[Identity]:
        return self.sessions.resolve(token)

    # ------------------------------------------------------------------
    # Projects (always scoped by the session's identity)
    # ------------------------------------------------------------------

    def list_projects(self, token: Optional[str]) -> Union[ProjectListResult, RedirectToLogin]:
        identity = self.sessions.resolve(token)
        if identity is None:
            return ANONYMOUS
        return ProjectListResult(identity=identity, projects=self.projects.list_for_owner(identity.user_id))

    def create_project(
        self, token: Optional[str], name: Optional[str], description: Optional[str] = None
    ) -> Union[ProjectCreateResult, RedirectToLogin]:
        identity = self.sessions.resolve(token)
        if identity is None:
            return ANONYMOUS
        project_id = self.projects.create(identity.user_id, name, description)
        return ProjectCreateResult(id=project_id)

    def get_project(self, token: Optional[str], project_id: int) -> Union[Project, RedirectToLogin]:
        identity = self.sessions.resolve(token)
        if identity is None:
            return ANONYMOUS
        return self.projects.get_for_owner(identity.user_id, project_id)

    def update_project(
        self, token: Optional[str], project_id: int, name=UNSET, description=UNSET
    ) -> Union[Project, RedirectToLogin]:
        identity = self.sessions.resolve(token)
        if identity is None:
            return ANONYMOUS
        return self.projects.update(identity.user_id, project_id, name=name, description=description)

    def delete_project(self, token: Optional[str], project_id: int) -> Optional[RedirectToLogin]:
        identity = self.sessions.resolve(token)
        if identity is None:
            return ANONYMOUS
        self.projects.delete(identity.user_id, project_id)
        return None


# ---------------------------------------------------------------------------
# Input checks
# ---------------------------------------------------------------------------


def _clean_username(username: Optional[str]) -> str:
    cleaned = (username or "").strip()
    if not cleaned:
        raise ValidationError("Username is required.")
    if len(cleaned) > MAX_USERNAME_LENGTH:
        raise ValidationError(f"Username must be at most {MAX_USERNAME_LENGTH} characters.")
    return cleaned


def _check_password(password: Optional[str]) -> None:
    if not password:
        raise ValidationError("Password is required.")
    if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes.")


def build_service(db: Database, session_ttl_seconds: int = 24 * 60 * 60) -> TrackerService:
    """Wire the three stores onto one shared Database."""
    return TrackerService(
        users=UserStore(db),
        sessions=SessionStore(db, ttl_seconds=session_ttl_seconds),
        projects=ProjectStore(db),
    )
