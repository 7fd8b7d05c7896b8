# school_roster/core/errors.py
"""
Typed failures raised by the roster layer.

The HTTP layer maps each one to a status code in ``main.py``; nothing here
knows about HTTP or logging.
"""
from typing import Any, Dict, Optional


class RosterError(Exception):
    code = "ROSTER_ERROR"
    status_code = 400

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(RosterError):
    code = "VALIDATION_ERROR"
    status_code = 422


class ConflictError(RosterError):
    code = "CONFLICT"
    status_code = 409


class NotFoundError(RosterError):
    code = "NOT_FOUND"
    status_code = 404


class NotDeletedError(NotFoundError):
    """Restore was asked for a record that has no delete marker."""
    code = "NOT_DELETED"
    status_code = 400


class TransientStorageError(RosterError):
    """Timeout or unavailability of the database. Safe to retry."""
    code = "STORAGE_UNAVAILABLE"
    status_code = 503
