"""
core/errors.py -- Domain error taxonomy for Conlang Studio.

Every error carries a stable machine-readable code, a message that is safe to
show to the end user, and the HTTP status the API layer maps it to. Internal
detail (SQL, driver messages, stack traces) is logged where the error is
raised and never placed in the message.

There is no "not logged in" error: an unknown or expired session is the
normal anonymous state. See auth/sessions.py.
"""

from __future__ import annotations


class StudioError(Exception):
    """Base class for all domain errors surfaced to callers."""

    code: str = "error"
    message: str = "An unexpected error occurred."
    status_code: int = 500

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)


class DuplicateUsername(StudioError):
    code = "duplicate_username"
    message = "That username is already taken."
    status_code = 409


class InvalidCredentials(StudioError):
    """Wrong password and unknown username both raise this, with one message."""

    code = "invalid_credentials"
    message = "Invalid username or password."
    status_code = 401


class Forbidden(StudioError):
    """Ownership violation.

    Raised for a project that belongs to another user AND for a project that
    does not exist, so the caller cannot discover which ids belong to other
    users. The API renders it as 404 for the same reason.
    """

    code = "not_found"
    message = "Project not found."
    status_code = 404


class ValidationError(StudioError):
    code = "validation_error"
    message = "A required field is missing or invalid."
    status_code = 422


class PersistenceError(StudioError):
    code = "storage_error"
    message = "The service is temporarily unavailable. Please try again."
    status_code = 503


class HashingFailure(StudioError):
    code = "hashing_failure"
    message = "The service is temporarily unavailable. Please try again."
    status_code = 503
