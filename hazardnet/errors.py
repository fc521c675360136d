"""
hazardnet.errors — Domain Exception Taxonomy
=============================================

Services raise these; the API layer maps them onto HTTP status codes and a
``{"success": false, "message": ...}`` body.  ``AwardFailure`` never reaches
a client — composite flows catch it and report the absence of points.
"""

from __future__ import annotations


class HazardNetError(Exception):
    """Base class for request-level domain errors."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(HazardNetError):
    """A user, report or notification does not exist (or is not yours)."""

    status_code = 404


class ValidationError(HazardNetError):
    """Required input is missing or malformed."""

    status_code = 400


class ForbiddenError(HazardNetError):
    """Ownership or role mismatch."""

    status_code = 403


class AwardFailure(HazardNetError):
    """Points could not be applied as a side effect of another action."""
