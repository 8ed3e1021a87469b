"""
Tests for domain models and time-of-day helpers.
"""

import pendulum
import pytest

from salonbook.domain.exceptions import InvalidInput
from salonbook.domain.models import (
    Appointment,
    BookingRequest,
    BookingWindow,
    PaymentInstruction,
    QueueEntry,
    QueueState,
    Service,
)
from salonbook.domain.timeofday import (
    format_12_hour,
    format_time_of_day,
    parse_time_of_day,
    truncate_seconds,
)


class TestTimeOfDay:
    """Tests for HH:MM parsing and formatting."""

    def test_parse_and_format(self):
        assert parse_time_of_day("00:00") == 0
        assert parse_time_of_day("14:45") == 885
        assert parse_time_of_day("9:05") == 545
        assert format_time_of_day(885) == "14:45"
        assert format_time_of_day(545) == "09:05"

    @pytest.mark.parametrize(
        "value", ["abc", "", "14", "14:5", "24:00", "12:60", "1400", "١٤:00", "14:００"]
    )
    def test_parse_rejects_malformed(self, value):
        with pytest.raises(InvalidInput):
            parse_time_of_day(value)

    def test_parse_rejects_non_string(self):
        with pytest.raises(InvalidInput):
            parse_time_of_day(None)

    def test_truncate_seconds(self):
        assert truncate_seconds("14:00:00") == "14:00"
        assert truncate_seconds("14:00") == "14:00"

    def test_format_12_hour(self):
        assert format_12_hour("14:00") == "2:00 PM"
        assert format_12_hour("09:05") == "9:05 AM"
        assert format_12_hour("12:30") == "12:30 PM"


class TestBookingWindow:
    """Tests for BookingWindow validation."""

    def test_valid_window_grid(self):
        window = BookingWindow(min_time="11:00", max_time="12:00", increment=15)

        assert window.grid() == [660, 675, 690, 705, 720]
        assert window.service_duration == 60

    def test_min_after_max_raises(self):
        with pytest.raises(InvalidInput, match="must not be later"):
            BookingWindow(min_time="18:00", max_time="11:00")

    def test_non_positive_increment_raises(self):
        with pytest.raises(InvalidInput):
            BookingWindow(min_time="11:00", max_time="18:00", increment=0)

    def test_negative_duration_raises(self):
        with pytest.raises(InvalidInput):
            BookingWindow(min_time="11:00", max_time="18:00", service_duration=-15)

    def test_malformed_time_raises(self):
        with pytest.raises(InvalidInput):
            BookingWindow(min_time="eleven", max_time="18:00")


class TestRecords:
    """Tests for backend record conversion."""

    def test_service_display_name_and_price(self):
        service = Service.from_record(
            {"id": 1, "service": "Haircut", "category": "hair care", "price": "250.00"}
        )

        assert service.display_name == "Haircut - Hair Care"
        assert service.price == 250.0

    def test_service_unparsable_price_is_zero(self):
        service = Service.from_record({"id": 2, "service": "Consult", "category": "misc", "price": "free"})

        assert service.price == 0.0

    def test_appointment_from_record(self):
        appointment = Appointment.from_record(
            {
                "id": 7,
                "Name": "Maria Santos",
                "Phone": "9171234567",
                "Date": "2026-11-02",
                "Time": "13:30:00",
                "Services": '["Haircut - Hair Care"]',
                "Total": "250",
                "status": "confirmed",
            }
        )

        assert appointment.time == "13:30"
        assert appointment.services == ["Haircut - Hair Care"]
        assert appointment.total == 250.0
        assert appointment.is_active
        assert appointment.to_booking_request().selected_services == ["Haircut - Hair Care"]

    def test_queue_state_waiting_excludes_served(self):
        state = QueueState(
            entries=[
                QueueEntry(id=3, user_id="c", position=2, estimated_wait_time=40, qr_code="APPT-C00000"),
                QueueEntry(id=1, user_id="a", position=0, estimated_wait_time=0, qr_code="APPT-A00000"),
                QueueEntry(id=2, user_id="b", position=1, estimated_wait_time=20, qr_code="APPT-B00000"),
            ],
            current_serving=4,
        )

        assert [entry.id for entry in state.waiting] == [2, 3]
        assert state.find(1).user_id == "a"
        assert state.find(99) is None


class TestPaymentInstruction:
    """Tests for PaymentInstruction."""

    def test_expiry_and_serialisation(self):
        created = pendulum.datetime(2026, 11, 1, 10, 0, tz="UTC")
        instruction = PaymentInstruction(
            reference_number="GPabc1234",
            amount=100.0,
            currency="PHP",
            payment_type="booking",
            recipient={"gcash_number": "09171234567"},
            appointment=BookingRequest(
                name="Maria", phone="9171234567", email="", date="2026-11-02", time="15:00",
                selected_services=["Haircut - Hair Care"], total_price=250.0,
            ),
            created_at=created,
            expires_at=created.add(hours=24),
        )

        assert not instruction.is_expired(created.add(hours=23))
        assert instruction.is_expired(created.add(hours=24))

        restored = PaymentInstruction.from_dict(instruction.to_dict())
        assert restored.expires_at == instruction.expires_at
        assert restored.appointment == instruction.appointment
