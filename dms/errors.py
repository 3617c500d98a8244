"""Error taxonomy shared by services and routers.

Every error carries a stable machine-readable ``kind`` and the HTTP status it
maps to. Messages are safe to show to the caller.
"""

from __future__ import annotations


class DmsError(Exception):
    kind = "Internal"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthenticated(DmsError):
    kind = "Unauthenticated"
    status_code = 401
    default_message = "Authentication required"


class InvalidCredentials(Unauthenticated):
    kind = "InvalidCredentials"
    default_message = "Invalid credentials"


class Forbidden(DmsError):
    kind = "Forbidden"
    status_code = 403
    default_message = "Forbidden"


class NotFound(DmsError):
    kind = "NotFound"
    status_code = 404
    default_message = "Not found"


class ValidationError(DmsError):
    kind = "ValidationError"
    status_code = 400
    default_message = "Invalid request"


class Conflict(DmsError):
    kind = "Conflict"
    status_code = 409
    default_message = "Conflict"


class UpstreamUnavailable(DmsError):
    kind = "UpstreamUnavailable"
    status_code = 502
    default_message = "Upstream service unavailable"


class ServiceUnavailable(DmsError):
    kind = "ServiceUnavailable"
    status_code = 503
    default_message = "System is under maintenance"


class AuditWriteError(DmsError):
    """Raised when a mutation could not be committed together with its audit row."""

    default_message = "Unable to record audit trail"
