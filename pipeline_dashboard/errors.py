"""
Domain exceptions for Pipeline Dashboard.

Each exception carries the HTTP status it maps to and a ``to_dict()`` used as
the error envelope returned by the API.
"""

from typing import Any, Dict


class DashboardError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message, "code": self.code}


class ValidationError(DashboardError):
    """Raised when a request is rejected before touching the store."""

    status_code = 400
    code = "VALIDATION_ERROR"


class NotFoundError(DashboardError):
    """Raised when a direct lookup finds no record."""

    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, object_type: str, object_id: str):
        self.object_type = object_type
        self.object_id = object_id
        super().__init__(f"{object_type} {object_id!r} not found")


class StorageError(DashboardError):
    """Raised when the backing store fails.

    The detailed cause is logged where it happens; callers only ever see the
    generic message.
    """

    status_code = 500
    code = "STORAGE_ERROR"

    def to_dict(self) -> Dict[str, Any]:
        return {"error": "internal storage error", "code": self.code}


class ConsistencyError(DashboardError):
    """Raised when derived report data contradicts the filter that matched it."""

    status_code = 500
    code = "CONSISTENCY_ERROR"
