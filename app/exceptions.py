"""
Domain exceptions raised by the data layer and mapped to HTTP responses in main.py.
"""

from typing import Any, Optional


class PortalError(Exception):
    """Base exception for the council portal."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(PortalError):
    """Referenced meeting, action item or user does not exist."""

    status_code = 404


class ForbiddenError(PortalError):
    """Actor lacks the required relationship to the record."""

    status_code = 403


class InvalidStateError(PortalError):
    """Operation violates a meeting lifecycle rule."""

    status_code = 400


class ValidationFailure(PortalError):
    """Malformed input that slipped past schema validation."""

    status_code = 422


class ConflictError(PortalError):
    """A unique value could not be allocated."""

    status_code = 409
