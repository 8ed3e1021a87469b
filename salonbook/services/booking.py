"""
Application services for choosing an appointment time and preparing a booking.

The service coordinates fetching booked slots through a backend client and
delegates the availability computation to the domain-level
``AvailabilityCalculator``. The backend dependency is described by a simple
protocol so tests can pass in a stub.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Protocol, Sequence, Tuple

from ..domain.availability import AvailabilityCalculator
from ..domain.exceptions import BackendError, BookingValidationError, InvalidInput
from ..domain.models import (
    Appointment,
    BookingRequest,
    QueueEntry,
    QueueState,
    Service,
    ServiceCategory,
)
from ..domain.timeofday import format_12_hour
from ..domain.validation import (
    is_valid_mobile_number,
    normalize_phone_number,
    sanitize_name,
    validate_booking_form,
)

logger = logging.getLogger(__name__)

FULLY_BOOKED_MESSAGE = "This date is fully booked. Please select another."
TIMES_UNAVAILABLE_MESSAGE = "Unable to load available times."
SELECTION_INVALIDATED_MESSAGE = (
    "The previously selected time is now unavailable. Please choose a new time."
)


class BackendClientProtocol(Protocol):
    """Protocol describing the backend operations the services rely on."""

    def fetch_services_and_config(self) -> Tuple[List[ServiceCategory], Dict[str, List[Service]]]:
        """Return service categories and services grouped by category."""

    def fetch_booked_times(self, date: str) -> List[str]:
        """Return ``HH:MM`` start times of active appointments on a date."""

    def fetch_fully_booked_dates(self) -> List[str]:
        """Return dates that cannot take more bookings."""

    def check_existing_appointment(self, phone: str, date: str) -> Optional[Appointment]:
        """Return the customer's active appointment on a date, if any."""

    def add_appointment(self, request: BookingRequest, payment_id: Optional[str]) -> Appointment:
        """Insert a new appointment."""

    def update_appointment(self, appointment_id: Any, request: BookingRequest, payment_id: Optional[str]) -> Appointment:
        """Reschedule an existing appointment."""

    def record_failed_appointment(
        self,
        request: BookingRequest,
        appointment_id: Any = None,
        reason: Optional[str] = None,
    ) -> None:
        """Record a booking that could not be completed, and why."""

    def finalize_cancellation(self, appointment_id: Any) -> None:
        """Cancel an appointment after the cancellation fee was paid."""

    def get_appointment(self, appointment_id: Any) -> Optional[Appointment]:
        """Fetch an appointment by id."""

    def add_feedback(self, rating: int, comment: str = "", from_user: Optional[str] = None) -> None:
        """Store customer feedback."""

    def get_queue_state(self) -> QueueState:
        """Return the active queue."""

    def find_active_queue_entry(self, qr_code: str) -> Optional[QueueEntry]:
        """Return the active entry for a QR code, if any."""

    def count_active_queue_entries(self) -> int:
        """Return the number of active queue entries."""

    def insert_queue_entry(self, entry: Dict[str, Any]) -> QueueEntry:
        """Insert a queue entry."""


@dataclass
class TimeSelection:
    """Time options for one date, as shown by a time picker."""
    date: str
    disabled_times: FrozenSet[str] = frozenset()
    available_times: List[str] = field(default_factory=list)
    fully_booked: bool = False
    error: Optional[str] = None

    @property
    def is_available(self) -> bool:
        """False when the time control should be shown as unavailable."""
        return not self.fully_booked and self.error is None

    def is_disabled(self, time_of_day: str) -> bool:
        return time_of_day in self.disabled_times


@dataclass
class ExistingAppointment:
    """Notice that a customer already holds an appointment on the chosen day."""
    appointment: Appointment
    message: str


class BookingService:
    """
    Orchestrates time selection and booking form preparation.

    Every call recomputes availability from freshly fetched booked slots;
    nothing is cached between calls.
    """

    def __init__(
        self,
        backend: BackendClientProtocol,
        calculator: AvailabilityCalculator,
    ) -> None:
        self._backend = backend
        self._calculator = calculator

    @property
    def calculator(self) -> AvailabilityCalculator:
        return self._calculator

    def load_services(self) -> Tuple[List[ServiceCategory], Dict[str, List[Service]]]:
        """Fetch the service catalogue."""
        return self._backend.fetch_services_and_config()

    def load_time_selection(self, date: str) -> TimeSelection:
        """
        Build the time options for a date.

        Fully booked dates and failures to load or compute availability are
        reported on the result rather than raised; the underlying error is
        only logged.
        """
        try:
            if date in self._backend.fetch_fully_booked_dates():
                return TimeSelection(date=date, fully_booked=True, error=FULLY_BOOKED_MESSAGE)

            booked = self._backend.fetch_booked_times(date)
            disabled = self._calculator.disabled_times(booked)
            available = self._calculator.available_start_times(booked)
        except (InvalidInput, BackendError) as exc:
            logger.warning("Could not load available times for %s: %s", date, exc)
            return TimeSelection(date=date, error=TIMES_UNAVAILABLE_MESSAGE)

        logger.debug(
            "%s: %d booked slot(s), %d disabled time(s)", date, len(booked), len(disabled)
        )
        return TimeSelection(date=date, disabled_times=disabled, available_times=available)

    def reconcile_selected_time(
        self,
        selected: Optional[str],
        disabled: Iterable[str],
    ) -> Optional[str]:
        """
        Drop a selected time that has since become unavailable.

        Returns:
            The selection if it is still valid, otherwise None
        """
        if selected and selected in set(disabled):
            logger.warning("Selected time %s is no longer available", selected)
            return None
        return selected

    def check_existing_appointment(self, phone: str, date: str) -> Optional[ExistingAppointment]:
        """Look up an active appointment for the same phone number and date."""
        normalized_phone = normalize_phone_number(phone)
        if not date or not is_valid_mobile_number(normalized_phone):
            return None

        appointment = self._backend.check_existing_appointment(normalized_phone, date)
        if appointment is None:
            return None

        try:
            display_time = format_12_hour(appointment.time)
        except InvalidInput:
            display_time = appointment.time

        return ExistingAppointment(
            appointment=appointment,
            message=f"You already have an appointment on this day at {display_time}.",
        )

    @staticmethod
    def calculate_total(
        selected_services: Sequence[str],
        services_by_category: Dict[str, List[Service]],
    ) -> float:
        """Sum the prices of the selected services (identified by display name)."""
        prices = {
            service.display_name: service.price
            for services in services_by_category.values()
            for service in services
        }
        return sum(prices.get(name, 0.0) for name in selected_services)

    def prepare_booking(
        self,
        *,
        name: str,
        phone: str,
        email: str,
        date: str,
        time_of_day: str,
        selected_services: Sequence[str],
        wants_sms: bool = True,
        wants_email: bool = False,
        rescheduling: bool = False,
        services_by_category: Optional[Dict[str, List[Service]]] = None,
    ) -> BookingRequest:
        """
        Validate and sanitise booking form data.

        Raises:
            BookingValidationError: With per-field messages if the form is invalid,
                the customer already has an appointment that day, or the time is taken
        """
        errors = validate_booking_form(
            name=name,
            phone=phone,
            email=email,
            date=date,
            time_of_day=time_of_day,
            selected_services=selected_services,
            wants_sms=wants_sms,
            wants_email=wants_email,
        )
        if errors:
            raise BookingValidationError(errors)

        normalized_phone = normalize_phone_number(phone)

        if not rescheduling:
            existing = self.check_existing_appointment(normalized_phone, date)
            if existing is not None:
                raise BookingValidationError({"date": existing.message})

        selection = self.load_time_selection(date)
        if not selection.is_available:
            raise BookingValidationError({"date": selection.error or TIMES_UNAVAILABLE_MESSAGE})
        try:
            blocked = self._calculator.is_start_blocked(time_of_day, selection.disabled_times)
        except InvalidInput as exc:
            raise BookingValidationError({"time": str(exc)}) from exc
        if blocked:
            raise BookingValidationError({"time": SELECTION_INVALIDATED_MESSAGE})

        if services_by_category is None:
            _, services_by_category = self.load_services()

        known = {
            service.display_name
            for services in services_by_category.values()
            for service in services
        }
        unknown = [name for name in selected_services if name not in known]
        if unknown:
            raise BookingValidationError(
                {"services": f"Unknown service(s): {', '.join(unknown)}."}
            )

        return BookingRequest(
            name=sanitize_name(name),
            phone=normalized_phone,
            email=email.strip() if email else "",
            date=date,
            time=time_of_day,
            selected_services=list(selected_services),
            total_price=self.calculate_total(selected_services, services_by_category),
        )
