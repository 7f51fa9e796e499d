"""
Error taxonomy for the standup engine.

Every error carries a stable ``code`` and the HTTP status the web layer
should answer with.
"""


class StandupError(Exception):
    """Base class for standup engine errors."""

    code = "INTERNAL_ERROR"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class NotFoundError(StandupError):
    """Team, instance or member is absent or outside the caller's organization."""

    code = "NOT_FOUND"
    status_code = 404


class ValidationFailedError(StandupError):
    """Illegal transition, bad question index, malformed config or closed window."""

    code = "VALIDATION_FAILED"
    status_code = 400


class ResponseWindowClosedError(ValidationFailedError):
    """Submission arrived at or after the response deadline."""

    code = "RESPONSE_WINDOW_CLOSED"


class ConflictError(StandupError):
    """An instance for this team and date was created concurrently."""

    code = "CONFLICT"
    status_code = 409


class UnauthenticatedError(StandupError):
    """Magic token is invalid or expired."""

    code = "UNAUTHENTICATED"
    status_code = 401


class ForbiddenError(StandupError):
    """Member is not an active participant of the standup."""

    code = "FORBIDDEN"
    status_code = 403
