"""
Domain errors raised by the services.

Every error carries an HTTP status and a stable machine-readable code so the
client can tell "you may not do this" (FORBIDDEN) apart from "this cannot be
done right now" (INVALID_STATE / CONFLICT). The API layer renders them through
a single exception handler registered in ``jelantah.main``.
"""
from typing import Optional


class JelantahError(Exception):
    """Base class for all domain errors."""
    status_code: int = 500
    code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, *, reason: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.reason = reason

    def to_dict(self) -> dict:
        body = {"detail": self.message, "code": self.code}
        if self.reason:
            body["reason"] = self.reason
        return body


class AuthenticationError(JelantahError):
    """No valid actor identity."""
    status_code = 401
    code = "UNAUTHENTICATED"


class PermissionDeniedError(JelantahError):
    """Actor is known but the role or ownership guard failed."""
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(JelantahError):
    status_code = 404
    code = "NOT_FOUND"


class InvalidStateError(JelantahError):
    """Requested transition is not legal from the entity's current status."""
    status_code = 400
    code = "INVALID_STATE"


class ValidationError(JelantahError):
    """Missing or malformed input."""
    status_code = 400
    code = "VALIDATION_ERROR"


class ConflictError(JelantahError):
    """A conditional update matched zero rows: someone else got there first."""
    status_code = 409
    code = "CONFLICT"
