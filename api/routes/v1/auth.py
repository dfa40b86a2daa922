"""
api/routes/v1/auth.py -- Registration, login, and session REST endpoints.

Routes:
  POST /api/v1/auth/register   -- create account; starts a session (201)
  POST /api/v1/auth/login      -- password login; starts a session
  POST /api/v1/auth/logout     -- destroys the current session; 200
  GET  /api/v1/auth/me         -- current identity (requires auth)

Security:
  register and login are rate-limited per IP (slowapi).
  Login failures return one generic "invalid_credentials" error whether the
  username exists or not, and TrackerService.login() runs bcrypt either way.
  Cache-Control: no-store on every response that carries a token.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import AuthResponse, CredentialsRequest, MeResponse, MessageResponse
from auth.dependencies import get_current_identity, get_session_token
from auth.models import Identity
from auth.tokens import clear_session_cookie, set_session_cookie
from core.config import get_settings
from tracker.service import AuthResult, TrackerService

# Auth policy:
# - POST /api/v1/auth/register: public
# - POST /api/v1/auth/login:    public
# - POST /api/v1/auth/logout:   public -- destroying an absent session is a no-op
# - GET  /api/v1/auth/me:       requires auth (get_current_identity)
router = APIRouter()

_settings = get_settings()


def _auth_response(result: AuthResult, status_code: int) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            token=result.token,
            user_id=result.user_id,
            username=result.username,
        ).model_dump(),
    )
    set_session_cookie(resp, result.token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
@limiter.limit(_settings.register_rate_limit)
def register(request: Request, body: CredentialsRequest) -> JSONResponse:
    """Create an account and log it in.

    409 duplicate_username if the name is taken; concurrent registrations of
    the same name are decided by the UNIQUE constraint, so exactly one wins.
    """
    tracker: TrackerService = request.app.state.tracker
    result = tracker.register(body.username, body.password)
    return _auth_response(result, status_code=201)


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit(_settings.login_rate_limit)
def login(request: Request, body: CredentialsRequest) -> JSONResponse:
    """Authenticate with username and password and start a new session.

    Each login creates an independent session; existing sessions for the
    same user stay valid.
    """
    tracker: TrackerService = request.app.state.tracker
    result = tracker.login(body.username, body.password)
    return _auth_response(result, status_code=200)


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request) -> JSONResponse:
    """Destroy the session named by the cookie or Bearer token. Idempotent."""
    tracker: TrackerService = request.app.state.tracker
    tracker.logout(get_session_token(request))
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    clear_session_cookie(resp)
    return resp


@router.get("/auth/me", response_model=MeResponse)
def me(identity: Identity = Depends(get_current_identity)) -> MeResponse:
    """Return identity information for the current session."""
    return MeResponse(user_id=identity.user_id, username=identity.username)
