"""
Error taxonomy shared by the lookups, flows and view-models.

Every failure that can reach a user is one of these. Each carries the
HTTP status the API layer answers with and the message shown inline.
"""

from __future__ import annotations


class HealthDashError(Exception):
    """Base class. ``message`` is always safe to show to the user."""

    status_code: int = 500
    default_message = "An unexpected error occurred. Please try again later."

    def __init__(self, message: str | None = None, *, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.message}


class InputMissing(HealthDashError):
    """A required field is absent. Raised before any network call."""

    status_code = 400
    default_message = "A required field is missing."


class NotFound(HealthDashError):
    status_code = 404
    default_message = "No matching resource was found."


class UpstreamUnavailable(HealthDashError):
    """Network or service failure, or the service is not configured."""

    status_code = 503
    default_message = "Service temporarily unavailable."


class PermissionDenied(HealthDashError):
    status_code = 403
    default_message = (
        "Please enable camera permissions in your browser settings to use this feature."
    )


class MalformedResponse(HealthDashError):
    status_code = 500
    default_message = "The service returned a response that could not be understood."


class ScanTimeout(HealthDashError):
    status_code = 504
    default_message = "Scanning took too long. Please try again."


class UnexpectedError(HealthDashError):
    status_code = 500
