"""
Manual GCash payment flow: instruction, reference entry and confirmation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from ..config import AppConfig
from ..domain.availability import AvailabilityCalculator
from ..domain.exceptions import BackendError, InvalidInput, PaymentError
from ..domain.models import Appointment, BookingRequest, PaymentInstruction
from ..domain.payments import (
    PAYMENT_STATUS_PENDING_VERIFICATION,
    PAYMENT_STATUS_VERIFIED,
    PaymentInstructionStore,
    generate_secure_reference,
)
from ..domain.validation import validate_gcash_reference
from .booking import SELECTION_INVALIDATED_MESSAGE, BackendClientProtocol

logger = logging.getLogger(__name__)

PAYMENT_TYPE_BOOKING = "booking"
PAYMENT_TYPE_RESCHEDULE = "reschedule"
PAYMENT_TYPE_CANCELLATION = "cancellation"

_SUCCESS_MESSAGES = {
    PAYMENT_TYPE_BOOKING: "Booking successful! Your appointment is pending verification.",
    PAYMENT_TYPE_RESCHEDULE: "Reschedule fee submitted. Your appointment is pending verification.",
    PAYMENT_TYPE_CANCELLATION: "Cancellation fee submitted. Your appointment will be cancelled shortly.",
}


@dataclass
class ConfirmationResult:
    """Outcome of a confirmed payment."""
    instruction: PaymentInstruction
    message: str
    appointment: Optional[Appointment] = None


class PaymentService:
    """
    Coordinates payment instructions with appointment changes.

    1. ``request_payment`` issues an instruction (reference number, amount, recipient)
    2. The customer pays through GCash and copies the transaction reference
    3. ``confirm`` records the reference and books, reschedules or cancels
    """

    def __init__(
        self,
        backend: BackendClientProtocol,
        store: PaymentInstructionStore,
        config: AppConfig,
        calculator: Optional[AvailabilityCalculator] = None,
    ) -> None:
        self._backend = backend
        self._store = store
        self._config = config
        self._calculator = calculator or AvailabilityCalculator(config.booking.to_window())

    def request_payment(
        self,
        request: BookingRequest,
        payment_type: str = PAYMENT_TYPE_BOOKING,
        appointment_id: Any = None,
    ) -> PaymentInstruction:
        """Create and store a payment instruction for a booking, reschedule or cancellation."""
        if payment_type not in _SUCCESS_MESSAGES:
            raise PaymentError(f"Unknown payment type: {payment_type}")
        if payment_type != PAYMENT_TYPE_BOOKING and appointment_id is None:
            raise PaymentError(f"A {payment_type} payment needs an appointment id")

        payment = self._config.payment
        business = self._config.business
        amount = (
            payment.cancellation_fee
            if payment_type == PAYMENT_TYPE_CANCELLATION
            else payment.booking_fee
        )
        now = self._store.now()

        instruction = PaymentInstruction(
            reference_number=generate_secure_reference(),
            amount=float(amount),
            currency=payment.currency,
            payment_type=payment_type,
            recipient={
                "gcash_number": business.gcash_number,
                "gcash_name": business.gcash_name,
                "business_name": business.name,
            },
            appointment=request,
            appointment_id=appointment_id,
            created_at=now,
            expires_at=now.add(hours=payment.instruction_ttl_hours),
        )
        self._store.save(instruction)

        logger.info(
            "Created %s payment instruction %s for %s %s",
            payment_type, instruction.reference_number, instruction.amount, instruction.currency,
        )
        return instruction

    def request_cancellation(self, appointment_id: Any) -> PaymentInstruction:
        """Create a cancellation-fee instruction for an existing appointment."""
        appointment = self._backend.get_appointment(appointment_id)
        if appointment is None:
            raise PaymentError(f"Appointment {appointment_id} not found")

        return self.request_payment(
            appointment.to_booking_request(),
            payment_type=PAYMENT_TYPE_CANCELLATION,
            appointment_id=appointment.id,
        )

    def verify(self, reference_number: str, gcash_reference: str) -> PaymentInstruction:
        """
        Record the customer's GCash transaction reference.

        Raises:
            PaymentError: If the reference is invalid, the instruction is unknown
                or expired, or it was already verified
        """
        try:
            gcash_reference = validate_gcash_reference(gcash_reference)
        except InvalidInput as exc:
            raise PaymentError(str(exc)) from exc

        instruction = self._store.find(reference_number)
        if instruction is None:
            raise PaymentError("Payment instruction not found")
        if instruction.status == PAYMENT_STATUS_VERIFIED:
            raise PaymentError("Payment already verified")

        updated = self._store.update_status(
            reference_number, PAYMENT_STATUS_PENDING_VERIFICATION, gcash_reference
        )
        if updated is None:
            raise PaymentError("Failed to update payment status")
        return updated

    def confirm(self, reference_number: str, gcash_reference: str) -> ConfirmationResult:
        """
        Verify the payment and apply the appointment change it pays for.

        Each instruction is used once: after the change is saved it is marked
        verified, so confirming it again raises ``PaymentError``.

        Raises:
            PaymentError: If verification fails, the booked time has been taken
                in the meantime, or the backend rejects the change; in the
                latter case the failed appointment is recorded
        """
        instruction = self.verify(reference_number, gcash_reference)
        payment_id = instruction.gcash_reference
        appointment: Optional[Appointment] = None

        if instruction.payment_type != PAYMENT_TYPE_CANCELLATION:
            self._ensure_time_still_free(instruction)

        try:
            if instruction.payment_type == PAYMENT_TYPE_CANCELLATION:
                self._backend.finalize_cancellation(instruction.appointment_id)
            elif instruction.payment_type == PAYMENT_TYPE_RESCHEDULE:
                appointment = self._backend.update_appointment(
                    instruction.appointment_id, instruction.appointment, payment_id
                )
            else:
                appointment = self._backend.add_appointment(instruction.appointment, payment_id)
        except BackendError as exc:
            logger.error("Could not apply payment %s: %s", reference_number, exc)
            self._record_failure(instruction, str(exc))
            raise PaymentError(
                f"An error occurred while saving your appointment: {exc}"
            ) from exc

        instruction = self._store.update_status(
            reference_number, PAYMENT_STATUS_VERIFIED, payment_id
        ) or instruction

        return ConfirmationResult(
            instruction=instruction,
            message=_SUCCESS_MESSAGES[instruction.payment_type],
            appointment=appointment,
        )

    def purge_expired(self) -> int:
        return self._store.purge_expired()

    def _ensure_time_still_free(self, instruction: PaymentInstruction) -> None:
        """
        Re-check the paid-for start time against the current bookings.

        A rescheduled appointment does not block its own new time.
        """
        request = instruction.appointment
        try:
            booked = list(self._backend.fetch_booked_times(request.date))
            if instruction.payment_type == PAYMENT_TYPE_RESCHEDULE:
                current = self._backend.get_appointment(instruction.appointment_id)
                if current is not None and current.date == request.date and current.time in booked:
                    booked.remove(current.time)

            disabled = self._calculator.disabled_times(booked)
            blocked = self._calculator.is_start_blocked(request.time, disabled)
        except (InvalidInput, BackendError) as exc:
            logger.warning("Could not re-check %s %s: %s", request.date, request.time, exc)
            raise PaymentError(f"Could not confirm the appointment time: {exc}") from exc

        if blocked:
            logger.warning(
                "%s %s was taken before payment %s was confirmed",
                request.date, request.time, instruction.reference_number,
            )
            raise PaymentError(SELECTION_INVALIDATED_MESSAGE)

    def _record_failure(self, instruction: PaymentInstruction, reason: str) -> None:
        try:
            self._backend.record_failed_appointment(instruction.appointment, reason=reason)
        except BackendError as exc:
            logger.error("Could not record failed appointment: %s", exc)
