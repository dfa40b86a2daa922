"""
API request and response models for Conlang Studio REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
projects/models.py, which own the internal domain representation. Route
handlers map between the two.

Project request bodies use extra="forbid": a client that sends owner_id (or
any other unknown field) gets a 422 instead of having it silently ignored.
Ownership always comes from the session.
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from projects.models import Project

# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class CredentialsRequest(BaseModel):
    """Body for POST /auth/register and POST /auth/login."""

    model_config = ConfigDict(extra="forbid")

    username: str = Field(min_length=1, max_length=64)
    password: str = Field(min_length=1, max_length=72)


class AuthResponse(BaseModel):
    """Returned by register and login. token is also set as an httpOnly cookie."""

    model_config = ConfigDict(frozen=True)

    token: str
    token_type: str = "bearer"
    user_id: int
    username: str


class MeResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: int
    username: str


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


class ProjectCreate(BaseModel):
    """Body for POST /projects. Blank description is stored as null."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(max_length=200)
    description: Optional[str] = Field(default=None, max_length=10_000)


class ProjectPatch(BaseModel):
    """Body for PATCH /projects/{id}. Omitted fields are left unchanged."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, max_length=200)
    description: Optional[str] = Field(default=None, max_length=10_000)


class ProjectResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    description: Optional[str]
    created_at: str

    @classmethod
    def from_project(cls, project: Project) -> "ProjectResponse":
        return cls(
            id=project.id,
            name=project.name,
            description=project.description,
            created_at=project.created_at,
        )


class ProjectCreatedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int


# ---------------------------------------------------------------------------
# Errors / health
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str] = Field(default_factory=dict)
