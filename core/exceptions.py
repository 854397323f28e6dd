"""
PropertyFlow Error Taxonomy

Every failure the core can report to a caller is one of these classes.
Each carries the HTTP status the web layer renders it with, a stable
machine-readable code, and whether the caller may retry after re-fetching.
"""

from __future__ import annotations

from typing import Any, Optional


class PropertyFlowError(Exception):
    """Base exception for all PropertyFlow errors."""

    status_code: int = 500
    code: str = "internal_error"
    retryable: bool = False

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        """Convert error to the JSON body returned by the API."""
        return {
            "error": self.code,
            "message": self.message,
            "field": self.field,
            "retryable": self.retryable,
        }


class Unauthenticated(PropertyFlowError):
    """Raised when no credential, or an invalid one, was presented."""

    status_code = 401
    code = "unauthenticated"


class Forbidden(PropertyFlowError):
    """Raised when the actor's role or assignment does not permit the operation."""

    status_code = 403
    code = "forbidden"


class NotFound(PropertyFlowError):
    """Raised when a referenced file, user or record does not exist."""

    status_code = 404
    code = "not_found"


class InvalidTransition(PropertyFlowError):
    """
    Raised when a transition is illegal from the current state, or its
    payload is incomplete. ``field`` names the offending field.
    """

    status_code = 422
    code = "invalid_transition"


class ConcurrentModification(PropertyFlowError):
    """Raised when the persisted status no longer matches the expected one."""

    status_code = 409
    code = "concurrent_modification"
    retryable = True


class Conflict(PropertyFlowError):
    """Raised when a write would violate a uniqueness constraint."""

    status_code = 409
    code = "conflict"


class DependencyUnavailable(PropertyFlowError):
    """Raised when the record store or identity provider cannot be reached."""

    status_code = 503
    code = "dependency_unavailable"
    retryable = True
