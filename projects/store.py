"""
projects/store.py -- SQLAlchemy-backed, ownership-scoped project repository.

Pattern: Repository + Data Mapper. ProjectStore is the repository;
_row_to_project is the mapper.

Ownership scoping:
  Every method takes owner_id as its first argument and every statement
  filters on it. There is no method that reads or writes a project by id
  alone. Methods that address a single project filter on
  (id AND owner_id) in the same statement, so there is no window between an
  ownership check and the write.

  A project that does not exist and a project owned by someone else are
  reported the same way (Forbidden), so callers cannot discover other
  users' project ids.

Security: all queries use bound parameters. No f-strings in SQL.

Usage:
    store = ProjectStore(db)
    pid = store.create(owner_id, "Elvish", "Sindarin-inspired")
    store.list_for_owner(owner_id)
"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError

from core.database import Database, projects, to_iso, utcnow
from core.errors import Forbidden, PersistenceError, ValidationError
from projects.models import Project

logger = logging.getLogger("studio.projects")

MAX_NAME_LENGTH = 200

# Sentinel for update(): "leave this field alone" vs. an explicit None.
UNSET = object()


# ---------------------------------------------------------------------------
# Field normalization
# ---------------------------------------------------------------------------


def normalize_name(name: Optional[str]) -> str:
    """Trim the name; reject empty or over-long values with ValidationError."""
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Project name is required.")
    if len(cleaned) > MAX_NAME_LENGTH:
        raise ValidationError(f"Project name must be at most {MAX_NAME_LENGTH} characters.")
    return cleaned


def normalize_description(description: Optional[str]) -> Optional[str]:
    """Blank descriptions are stored as NULL, never as an empty string."""
    if description is None:
        return None
    cleaned = description.strip()
    return cleaned or None


class ProjectStore:
    def __init__(self, db: Database) -> None:
        self.db = db

    def list_for_owner(self, owner_id: int) -> list[Project]:
        """Return owner_id's projects, most recently created first."""
        with self.db.transaction() as conn:
            rows = conn.execute(
                projects.select()
                .where(projects.c.owner_id == owner_id)
                .order_by(projects.c.created_at.desc(), projects.c.id.desc())
            ).fetchall()
        return [_row_to_project(r) for r in rows]

    def create(self, owner_id: int, name: str, description: Optional[str] = None) -> int:
        """Insert a project for owner_id and return its ID.

        Raises ValidationError for a blank name. Project names are not unique.
        """
        values = {
            "owner_id": owner_id,
            "name": normalize_name(name),
            "description": normalize_description(description),
            "created_at": to_iso(utcnow()),
        }
        try:
            with self.db.transaction() as conn:
                result = conn.execute(projects.insert().values(**values))
                project_id = result.inserted_primary_key[0]
        except IntegrityError as exc:
            # Only the owner foreign key can fail here.
            logger.exception("Project insert rejected for owner_id=%d", owner_id)
            raise PersistenceError() from exc
        logger.info("Project %d created for owner_id=%d", project_id, owner_id)
        return project_id

    def get_for_owner(self, owner_id: int, project_id: int) -> Project:
        """Return one project if owner_id owns it; otherwise raise Forbidden."""
        with self.db.transaction() as conn:
            row = conn.execute(
                projects.select().where((projects.c.id == project_id) & (projects.c.owner_id == owner_id))
            ).fetchone()
        if row is None:
            raise Forbidden()
        return _row_to_project(row)

    def update(self, owner_id: int, project_id: int, name=UNSET, description=UNSET) -> Project:
        """Change name and/or description of a project owned by owner_id.

        Fields left as UNSET are untouched. owner_id and created_at are never
        writable. Raises Forbidden if owner_id does not own project_id.
        """
        values: dict = {}
        if name is not UNSET:
            values["name"] = normalize_name(name)
        if description is not UNSET:
            values["description"] = normalize_description(description)
        if not values:
            return self.get_for_owner(owner_id, project_id)

        with self.db.transaction() as conn:
            result = conn.execute(
                projects.update()
                .where((projects.c.id == project_id) & (projects.c.owner_id == owner_id))
                .values(**values)
            )
        if result.rowcount == 0:
            logger.warning("Rejected update of project %d by owner_id=%d", project_id, owner_id)
            raise Forbidden()
        return self.get_for_owner(owner_id, project_id)

    def delete(self, owner_id: int, project_id: int) -> None:
        """Delete a project owned by owner_id. Raises Forbidden otherwise."""
        with self.db.transaction() as conn:
            result = conn.execute(
                projects.delete().where((projects.c.id == project_id) & (projects.c.owner_id == owner_id))
            )
        if result.rowcount == 0:
            logger.warning("Rejected delete of project %d by owner_id=%d", project_id, owner_id)
            raise Forbidden()
        logger.info("Project %d deleted by owner_id=%d", project_id, owner_id)


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_project(row) -> Project:
    return Project(
        id=row.id,
        owner_id=row.owner_id,
        name=row.name,
        description=row.description,
        created_at=row.created_at,
    )
