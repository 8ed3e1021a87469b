"""
Tests for the REST backend client, using a fake requests session.
"""

import json

import pytest
import requests

from salonbook.adapters.backend_client import BackendClient
from salonbook.domain.exceptions import BackendError, InvalidInput
from salonbook.domain.models import BookingRequest


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self.status_code = status_code
        self.content = b"" if payload is None else json.dumps(payload).encode()

    def json(self):
        return json.loads(self.content)

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


class FakeSession:
    """Records requests and replays queued responses."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def request(self, method, url, **kwargs):
        self.calls.append({"method": method, "url": url, **kwargs})
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


def _client(*responses):
    session = FakeSession(*responses)
    client = BackendClient("https://salon.example.co/", "anon-key", timeout=5, session=session)
    return client, session


class TestRequests:
    """Tests for URL, header and error handling."""

    def test_fetch_booked_times(self):
        client, session = _client(
            FakeResponse([{"Time": "13:30:00", "Services": []}, {"Time": "14:00:00"}])
        )

        assert client.fetch_booked_times("2026-11-02") == ["13:30", "14:00"]

        call = session.calls[0]
        assert call["method"] == "GET"
        assert call["url"] == "https://salon.example.co/rest/v1/Appointments"
        assert call["params"]["Date"] == "eq.2026-11-02"
        assert call["params"]["status"] == "in.(pending,verified,confirmed,assigned)"
        assert call["headers"]["apikey"] == "anon-key"
        assert call["headers"]["Authorization"] == "Bearer anon-key"
        assert call["timeout"] == 5

    def test_empty_date_skips_request(self):
        client, session = _client()

        assert client.fetch_booked_times("") == []
        assert session.calls == []

    def test_error_status_raises_backend_error(self):
        client, _ = _client(FakeResponse({"message": "boom"}, status_code=500))

        with pytest.raises(BackendError, match="500"):
            client.fetch_booked_times("2026-11-02")

    def test_connection_error_raises_backend_error(self):
        client, _ = _client(requests.ConnectionError("unreachable"))

        with pytest.raises(BackendError, match="unreachable"):
            client.fetch_fully_booked_dates()

    def test_fully_booked_dates_rpc(self):
        client, session = _client(FakeResponse([{"booking_date": "2026-12-24"}]))

        assert client.fetch_fully_booked_dates() == ["2026-12-24"]
        assert session.calls[0]["method"] == "POST"
        assert session.calls[0]["url"].endswith("/rest/v1/rpc/get_fully_booked_dates")


class TestAppointments:
    """Tests for appointment writes."""

    def test_add_appointment_asks_for_representation(self):
        request = BookingRequest(
            name="Maria Clara", phone="9201234567", email="", date="2026-11-02", time="15:00",
            selected_services=["Haircut - Hair Care"], total_price=250.0,
        )
        client, session = _client(
            FakeResponse([{"id": 9, "Name": "Maria Clara", "Phone": "9201234567",
                           "Date": "2026-11-02", "Time": "15:00:00", "status": "pending",
                           "payment_id": "GC99887766"}])
        )

        appointment = client.add_appointment(request, "GC99887766")

        call = session.calls[0]
        assert call["headers"]["Prefer"] == "return=representation"
        assert call["json"]["Time"] == "15:00"
        assert call["json"]["status"] == "pending"
        assert appointment.id == 9
        assert appointment.time == "15:00"

    def test_failed_appointment_keeps_reason(self):
        request = BookingRequest(
            name="Maria Clara", phone="9201234567", email="", date="2026-11-02", time="15:00",
            selected_services=["Haircut - Hair Care"], total_price=250.0,
        )
        client, session = _client(FakeResponse(status_code=201))

        client.record_failed_appointment(request, reason="duplicate key")

        call = session.calls[0]
        assert call["method"] == "POST"
        assert call["json"]["status"] == "failed"
        assert call["json"]["failure_reason"] == "duplicate key"

    def test_finalize_cancellation_without_body(self):
        client, session = _client(FakeResponse(status_code=204))

        client.finalize_cancellation(7)

        call = session.calls[0]
        assert call["method"] == "PATCH"
        assert call["params"] == {"id": "eq.7"}
        assert call["json"]["cancellation_fee_paid"] is True
        assert "Prefer" not in call["headers"]


class TestQueueAndFeedback:
    """Tests for queue and feedback endpoints."""

    def test_get_queue_state(self):
        client, _ = _client(
            FakeResponse([{"id": 1, "user_id": "guest-1", "position": 1,
                           "estimated_wait_time": 20, "qr_code": "APPT-1001ABCDEF",
                           "is_active": True}]),
            FakeResponse([{"id": 1, "current_serving": 4}]),
        )

        state = client.get_queue_state()

        assert state.current_serving == 4
        assert state.entries[0].qr_code == "APPT-1001ABCDEF"

    def test_feedback_requires_rating(self):
        client, session = _client()

        with pytest.raises(InvalidInput, match="Rating is required"):
            client.add_feedback(0, "nice")
        assert session.calls == []

    def test_feedback_comment_is_sanitized(self):
        client, session = _client(FakeResponse(status_code=201))

        client.add_feedback(5, "Great <b>service</b>!", from_user="9171234567")

        assert session.calls[0]["json"] == {
            "rating": 5,
            "comment": "Great bserviceb!",
            "from_user": "9171234567",
        }
