"""
api/routes/v1/projects.py -- Ownership-scoped project REST endpoints.

Routes:
  GET    /api/v1/projects          -- caller's projects, newest first
  POST   /api/v1/projects          -- create a project (201)
  GET    /api/v1/projects/{id}     -- one project
  PATCH  /api/v1/projects/{id}     -- rename / edit description
  DELETE /api/v1/projects/{id}     -- delete (204)

Every handler passes the raw session token to TrackerService, which resolves
it and scopes the query to that identity. No handler reads a user id from the
request. Another user's project and a missing project both return 404
not_found (Forbidden in the domain layer).
"""

from __future__ import annotations

from typing import Union

from fastapi import APIRouter, HTTPException, Request, Response

from api.models import ProjectCreate, ProjectCreatedResponse, ProjectPatch, ProjectResponse
from auth.dependencies import get_session_token
from projects.store import UNSET
from tracker.service import RedirectToLogin, TrackerService

router = APIRouter()


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={"code": "unauthorized", "message": "Authentication required."},
    )


def _check(outcome: Union[object, RedirectToLogin]):
    """Turn the service's anonymous outcome into HTTP 401."""
    if isinstance(outcome, RedirectToLogin):
        raise _unauthorized()
    return outcome


@router.get("/projects", response_model=list[ProjectResponse])
def list_projects(request: Request) -> list[ProjectResponse]:
    tracker: TrackerService = request.app.state.tracker
    result = _check(tracker.list_projects(get_session_token(request)))
    return [ProjectResponse.from_project(p) for p in result.projects]


@router.post("/projects", response_model=ProjectCreatedResponse, status_code=201)
def create_project(request: Request, body: ProjectCreate) -> ProjectCreatedResponse:
    """Create a project owned by the session's user. Blank name -> 422."""
    tracker: TrackerService = request.app.state.tracker
    result = _check(tracker.create_project(get_session_token(request), body.name, body.description))
    return ProjectCreatedResponse(id=result.id)


@router.get("/projects/{project_id}", response_model=ProjectResponse)
def get_project(request: Request, project_id: int) -> ProjectResponse:
    tracker: TrackerService = request.app.state.tracker
    project = _check(tracker.get_project(get_session_token(request), project_id))
    return ProjectResponse.from_project(project)


@router.patch("/projects/{project_id}", response_model=ProjectResponse)
def update_project(request: Request, project_id: int, body: ProjectPatch) -> ProjectResponse:
    """Only fields present in the body are changed. Sending description=null clears it."""
    tracker: TrackerService = request.app.state.tracker
    sent = body.model_fields_set
    name = body.name if "name" in sent else UNSET
    description = body.description if "description" in sent else UNSET
    project = _check(
        tracker.update_project(get_session_token(request), project_id, name=name, description=description)
    )
    return ProjectResponse.from_project(project)


@router.delete("/projects/{project_id}", status_code=204)
def delete_project(request: Request, project_id: int) -> Response:
    tracker: TrackerService = request.app.state.tracker
    _check(tracker.delete_project(get_session_token(request), project_id))
    return Response(status_code=204)
