"""
Domain errors raised by the audit services.

Endpoints translate these into HTTP responses; none of them are retried.
"""
from typing import Dict, Optional


class AuditError(Exception):
    """Base exception for audit errors."""
    def __init__(self, message: str, details: Dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(AuditError):
    """Audit or audit item does not exist."""


class InvalidTransitionError(AuditError):
    """Requested status change is not in the transition table."""
    def __init__(self, from_status: str, to_status: str, message: Optional[str] = None):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            message or f"Cannot change status from {from_status} to {to_status}",
            {"from": from_status, "to": to_status},
        )


class PreconditionFailedError(AuditError):
    """Operation is not allowed in the audit's current state."""


class AuditValidationError(AuditError):
    """Request is well-formed but carries an unsupported value."""
