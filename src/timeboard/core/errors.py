"""Typed failures raised by the timer engine.

Every public operation either returns a well-formed result or raises one of
these. The API layer maps them to HTTP status codes; the CLI prints them.
"""

from typing import Any, Optional


class TimeboardError(Exception):
    """Base class for all engine failures.

    Attributes:
        message: Human-readable error message
        status_code: HTTP-like status used by the API layer
        error_code: Machine-readable error code
    """

    status_code = 500
    error_code = "TIMEBOARD_ERROR"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_body(self) -> dict[str, Any]:
        """Build the JSON error body returned to API callers."""
        body: dict[str, Any] = {"error": self.message, "error_code": self.error_code}
        body.update(self.details)
        return body


class ValidationError(TimeboardError):
    """Malformed input rejected before touching the store."""

    status_code = 400
    error_code = "VALIDATION_ERROR"


class NotFoundError(TimeboardError):
    """Member or entry does not resolve."""

    status_code = 404
    error_code = "NOT_FOUND"


class ConflictError(TimeboardError):
    """Request conflicts with current state (e.g. stop with nothing running)."""

    status_code = 409
    error_code = "CONFLICT"


class OwnershipError(ConflictError):
    """Entry belongs to a different member."""

    status_code = 403
    error_code = "FORBIDDEN"


class UpstreamError(TimeboardError):
    """Store unreachable or failed."""

    status_code = 500
    error_code = "UPSTREAM_ERROR"


class StoreShapeError(UpstreamError):
    """Store returned a row that does not decode into the expected type."""

    error_code = "STORE_SHAPE_ERROR"


class CancelledWriteError(TimeboardError):
    """A newer write to the same field superseded this one."""

    status_code = 409
    error_code = "SUPERSEDED"
