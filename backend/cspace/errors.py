# Overview: Error taxonomy shared by services and routes.

from __future__ import annotations


class AuthError(Exception):
    """Base class for failures surfaced to API callers."""

    status_code = 500
    code = "internal_server_error"

    def __init__(self, message: str | None = None, **details):
        super().__init__(message or self.code)
        self.message = message or self.code
        self.details = details

    def to_dict(self) -> dict:
        payload = {"error": self.code, "message": self.message}
        payload.update(self.details)
        return payload


class Unauthenticated(AuthError):
    """401: no valid session (and no applicable kiosk fallback)."""
    status_code = 401
    code = "unauthenticated"


class Forbidden(AuthError):
    """403: valid principal, insufficient permission, role or branch scope."""
    status_code = 403
    code = "forbidden"


class InvalidCredentialFormat(AuthError):
    """400: malformed PIN/password, rejected before any lockout accounting."""
    status_code = 400
    code = "invalid_credential_format"


class RateLimited(AuthError):
    """423: PIN lockout engaged."""
    status_code = 423
    code = "too_many_attempts"

    def __init__(self, message: str | None = None, retry_after_seconds: int | None = None, **details):
        super().__init__(message, lockoutRemainingSeconds=retry_after_seconds, **details)
        self.retry_after_seconds = retry_after_seconds


class NotFound(AuthError):
    """404: referenced branch, employee or grant does not exist."""
    status_code = 404
    code = "not_found"


class Conflict(AuthError):
    """409: duplicate grant, PIN collision, exhausted PIN generation."""
    status_code = 409
    code = "conflict"


class DependencyUnavailable(AuthError):
    """503: credential store unreachable."""
    status_code = 503
    code = "dependency_unavailable"
