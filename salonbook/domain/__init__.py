"""
Domain layer - Pure business logic without external dependencies.
"""

from .availability import AvailabilityCalculator, compute_disabled_times
from .exceptions import (
    BackendError,
    BookingValidationError,
    InvalidInput,
    PaymentError,
    QueueError,
    SalonBookError,
)
from .models import (
    Appointment,
    BookingRequest,
    BookingWindow,
    PaymentInstruction,
    QueueEntry,
    QueueState,
    Service,
    ServiceCategory,
)

__all__ = [
    "AvailabilityCalculator",
    "compute_disabled_times",
    "BackendError",
    "BookingValidationError",
    "InvalidInput",
    "PaymentError",
    "QueueError",
    "SalonBookError",
    "Appointment",
    "BookingRequest",
    "BookingWindow",
    "PaymentInstruction",
    "QueueEntry",
    "QueueState",
    "Service",
    "ServiceCategory",
]
