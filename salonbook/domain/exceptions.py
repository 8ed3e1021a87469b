"""
Domain-specific exception hierarchy for the salon booking application.
"""

from typing import Dict, Optional


class SalonBookError(Exception):
    """Base class for all application-level errors."""


class InvalidInput(SalonBookError, ValueError):
    """Raised for malformed time strings, invalid booking windows or form data."""


class BookingValidationError(InvalidInput):
    """Raised when a booking form fails validation; carries per-field messages."""

    def __init__(self, errors: Dict[str, str], message: Optional[str] = None):
        self.errors = dict(errors)
        super().__init__(message or "; ".join(self.errors.values()))


class BackendError(SalonBookError):
    """Raised when the hosted backend cannot be reached or rejects a request."""


class PaymentError(SalonBookError):
    """Raised when a payment instruction cannot be created, verified or confirmed."""


class QueueError(SalonBookError):
    """Raised when joining the walk-in queue fails."""
