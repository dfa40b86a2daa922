"""
projects/models.py -- Domain dataclass for a user's project.

Pure data container. Validation and ownership scoping live in
projects/store.py.
"""

from dataclasses import dataclass
from typing import Optional


@dataclass
class Project:
    """A project owned by exactly one user.

    owner_id is fixed at creation; no code path updates it.
    description is None when the user left it blank (never "").
    id is None before the record is written to the database.
    """

    owner_id: int
    name: str
    description: Optional[str] = None
    id: Optional[int] = None
    created_at: str = ""  # ISO 8601, set by store on insert
