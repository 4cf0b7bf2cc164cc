"""
Domain error taxonomy for the case tracker
"""

from typing import Any, Dict, Optional


class CaseTrackerError(Exception):
    """Base class for all domain errors"""

    error_type = "CASE_TRACKER_ERROR"
    status_code = 500

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}


class ValidationError(CaseTrackerError):
    """Missing or out-of-range input"""

    error_type = "VALIDATION_ERROR"
    status_code = 400


class NotFoundError(CaseTrackerError):
    """Operation on an unknown id"""

    error_type = "RESOURCE_NOT_FOUND"
    status_code = 404


class InvalidTransitionError(CaseTrackerError):
    """Stage change outside the transition table"""

    error_type = "INVALID_TRANSITION"
    status_code = 409

    def __init__(self, current: str, requested: str, entity: str = "case"):
        super().__init__(
            f"Cannot move {entity} from '{current}' to '{requested}'",
            {"current_stage": current, "requested_stage": requested},
        )
        self.current = current
        self.requested = requested


class DecodeError(CaseTrackerError, ValueError):
    """Malformed date string, QR payload or backup document.

    Subclasses ValueError so pydantic validators surface it as a field error.
    """

    error_type = "DECODE_ERROR"
    status_code = 422


class PersistenceError(CaseTrackerError):
    """Local cache store read/write failure"""

    error_type = "PERSISTENCE_ERROR"
    status_code = 503


class RemoteError(CaseTrackerError):
    """Backup/restore network, timeout or auth failure"""

    error_type = "REMOTE_ERROR"
    status_code = 502
