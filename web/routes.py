"""
web/routes.py -- Jinja2 template routes for the Conlang Studio web UI.

These routes serve server-rendered HTML. They share app.state.tracker with
the API routes but return HTML and redirects instead of JSON. Every page that
shows or changes projects hands the session cookie to TrackerService; an
anonymous outcome becomes a redirect to /login.

Routes:
  GET  /            -- the caller's projects, newest first (auth required)
  POST /projects    -- create a project, 303 back to /
  GET  /login       -- login form
  POST /login       -- handle password login
  GET  /register    -- registration form
  POST /register    -- create account and log in
  POST /logout      -- destroy session, clear cookie, redirect /login

POST /login and POST /register carry the same slowapi limits as their API
counterparts.
"""

import logging
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from api.limiter import limiter
from auth.dependencies import get_session_token
from auth.tokens import clear_session_cookie, set_session_cookie
from core.config import get_settings
from core.errors import DuplicateUsername, InvalidCredentials, ValidationError
from tracker.service import RedirectToLogin, TrackerService

logger = logging.getLogger("studio.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

_settings = get_settings()

# ---------------------------------------------------------------------------
# Auth helpers
# ---------------------------------------------------------------------------

# Whitelist mapping for ?error= query params. The raw query param is NEVER
# passed to templates -- only the message from this dict is.
_ERROR_MESSAGES: dict[str, str] = {
    "invalid_credentials": "Invalid username or password.",
    "duplicate_username": "That username is already taken.",
    "invalid_input": "Username and password are required.",
    "name_required": "Project name is required.",
    "expired": "Your session has expired. Please log in again.",
}


def _error_message(request: Request) -> Optional[str]:
    return _ERROR_MESSAGES.get(request.query_params.get("error", ""))


def _safe_next(next_url: Optional[str]) -> str:
    """Validate a post-login redirect target. Only accept relative paths.

    Rejects absolute URLs and protocol-relative ("//host") targets, which
    would send the user off-site after login.
    """
    if next_url and next_url.startswith("/") and not next_url.startswith("//"):
        return next_url
    return "/"


def _redirect_to_login(request: Request) -> RedirectResponse:
    """Send an anonymous visitor to /login, remembering where they were.

    If the request carried a session cookie that no longer resolves, the
    session expired or was revoked: say so, and drop the stale cookie.
    """
    target = f"/login?next={quote(request.url.path)}"
    stale = get_session_token(request) is not None
    if stale:
        target += "&error=expired"
    resp = RedirectResponse(target, status_code=302)
    if stale:
        clear_session_cookie(resp)
    return resp


def _logged_in_redirect(token: str, next_url: str) -> RedirectResponse:
    resp = RedirectResponse(next_url, status_code=302)
    set_session_cookie(resp, token)
    resp.headers["Cache-Control"] = "no-store"
    return resp


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


@router.get("/", response_class=HTMLResponse)
def index(request: Request) -> HTMLResponse:
    tracker: TrackerService = request.app.state.tracker
    result = tracker.list_projects(get_session_token(request))
    if isinstance(result, RedirectToLogin):
        return _redirect_to_login(request)
    return templates.TemplateResponse(
        request,
        "index.html",
        {
            "projects": result.projects,
            "username": result.identity.username,
            "error_msg": _error_message(request),
        },
    )


@router.post("/projects", response_class=HTMLResponse)
def create_project(
    request: Request,
    name: str = Form(""),
    description: str = Form(""),
) -> RedirectResponse:
    tracker: TrackerService = request.app.state.tracker
    try:
        result = tracker.create_project(get_session_token(request), name, description)
    except ValidationError:
        return RedirectResponse("/?error=name_required", status_code=303)
    if isinstance(result, RedirectToLogin):
        return _redirect_to_login(request)
    return RedirectResponse("/", status_code=303)


# ---------------------------------------------------------------------------
# Login / registration
# ---------------------------------------------------------------------------


@router.get("/login", response_class=HTMLResponse)
def login_form(request: Request) -> HTMLResponse:
    tracker: TrackerService = request.app.state.tracker
    if tracker.resolve(get_session_token(request)) is not None:
        return RedirectResponse("/", status_code=302)
    return templates.TemplateResponse(
        request,
        "login.html",
        {
            "error_msg": _error_message(request),
            "next": _safe_next(request.query_params.get("next")),
        },
    )


@router.post("/login", response_class=HTMLResponse)
@limiter.limit(_settings.login_rate_limit)
def login_post(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
    next_url: str = Form("/", alias="next"),
) -> RedirectResponse:
    tracker: TrackerService = request.app.state.tracker
    next_url = _safe_next(next_url)
    try:
        result = tracker.login(username, password)
    except InvalidCredentials:
        # Keep the post-login target so a retry still lands there.
        return RedirectResponse(f"/login?error=invalid_credentials&next={quote(next_url)}", status_code=302)
    return _logged_in_redirect(result.token, next_url)


@router.get("/register", response_class=HTMLResponse)
def register_form(request: Request) -> HTMLResponse:
    return templates.TemplateResponse(request, "register.html", {"error_msg": _error_message(request)})


@router.post("/register", response_class=HTMLResponse)
@limiter.limit(_settings.register_rate_limit)
def register_post(
    request: Request,
    username: str = Form(""),
    password: str = Form(""),
) -> RedirectResponse:
    tracker: TrackerService = request.app.state.tracker
    try:
        result = tracker.register(username, password)
    except DuplicateUsername:
        logger.info("Web registration rejected: username taken")
        return RedirectResponse("/register?error=duplicate_username", status_code=302)
    except ValidationError:
        return RedirectResponse("/register?error=invalid_input", status_code=302)
    return _logged_in_redirect(result.token, "/")


@router.post("/logout")
def logout(request: Request) -> RedirectResponse:
    """Destroy the server-side session and clear the cookie."""
    tracker: TrackerService = request.app.state.tracker
    tracker.logout(get_session_token(request))
    resp = RedirectResponse("/login", status_code=302)
    clear_session_cookie(resp)
    return resp
