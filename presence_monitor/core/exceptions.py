"""
Domain exceptions raised by the presence monitoring core.

The HTTP layer translates each of these into a ``{"success": false, "error": ...}``
payload with a matching status code (see ``middleware.error_handler``).
"""

from typing import Any, Dict, Optional


class PresenceMonitorError(Exception):
    """Base class for all domain errors."""

    status_code = 500
    error_code = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class MalformedInputError(PresenceMonitorError):
    """Input could not be parsed or is missing required fields."""

    status_code = 400
    error_code = "MALFORMED_INPUT"


class UnauthorizedError(PresenceMonitorError):
    """Missing, invalid or expired credentials."""

    status_code = 401
    error_code = "UNAUTHORIZED"


class NotFoundError(PresenceMonitorError):
    """Unknown user, device, sample or alert."""

    status_code = 404
    error_code = "NOT_FOUND"


class NotFoundOrUnauthorizedError(NotFoundError):
    """Resource does not exist or belongs to another user."""

    error_code = "NOT_FOUND_OR_UNAUTHORIZED"


class ConflictError(PresenceMonitorError):
    """Resource already exists."""

    status_code = 409
    error_code = "CONFLICT"


class StoreError(PresenceMonitorError):
    """The key-value collaborator failed."""

    status_code = 500
    error_code = "STORE_FAILURE"


class CaptureError(StoreError):
    """A sample could not be persisted."""

    error_code = "CAPTURE_FAILED"
