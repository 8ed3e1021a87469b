"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .booking import BackendClientProtocol, BookingService, ExistingAppointment, TimeSelection
from .payments import ConfirmationResult, PaymentService
from .queue import QueueTracker

__all__ = [
    "BackendClientProtocol",
    "BookingService",
    "ExistingAppointment",
    "TimeSelection",
    "ConfirmationResult",
    "PaymentService",
    "QueueTracker",
]
