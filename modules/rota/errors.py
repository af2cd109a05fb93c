"""
modules/rota/errors.py

Local, recoverable error conditions of the rota engine and its services.
Every error carries a details dict so routes can hand it straight back to the
caller, and the HTTP status routes should answer with.
"""

from typing import Any, Dict, Optional


class RotaError(Exception):
    """Base class for rota engine errors."""

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class MalformedPatternError(RotaError):
    """Raised when a recurrence pattern cannot be created as given."""

    status_code = 422


class InvalidStatusTransitionError(RotaError):
    """Raised when a request or leave status would move out of a terminal state."""

    status_code = 409


class StaleApprovalReplayError(RotaError):
    """Raised when an approval is replayed against an already-approved request."""

    status_code = 409


class RecordNotFoundError(RotaError):
    """Raised when a referenced store row does not exist."""

    status_code = 404
