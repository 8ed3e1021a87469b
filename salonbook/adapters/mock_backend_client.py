"""
Mock backend client for running without a hosted backend.
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import pendulum

from ..domain.exceptions import BackendError, InvalidInput
from ..domain.models import (
    ACTIVE_APPOINTMENT_STATUSES,
    EXISTING_APPOINTMENT_STATUSES,
    Appointment,
    BookingRequest,
    QueueEntry,
    QueueState,
    Service,
    ServiceCategory,
)
from ..domain.timeofday import truncate_seconds
from ..domain.validation import sanitize_comment
from .backend_client import group_services_by_category


class MockBackendClient:
    """
    In-memory stand-in for ``BackendClient``.

    Loads sample salon data from mock_backend_data.json (or from ``data``)
    and applies inserts and updates to its own copy, so a session behaves
    like a small live backend.
    """

    def __init__(self, data: Optional[Dict[str, Any]] = None):
        """
        Initialize the mock client.

        Args:
            data: Optional dataset; defaults to the bundled JSON file
        """
        if data is None:
            data = self._load_bundled_data()
        else:
            data = copy.deepcopy(data)

        self.service_categories: List[Dict[str, Any]] = data.get("service_categories", [])
        self.services: List[Dict[str, Any]] = data.get("services", [])
        self.appointments: List[Dict[str, Any]] = data.get("appointments", [])
        self.fully_booked_dates: List[str] = data.get("fully_booked_dates", [])
        self.queue_entries: List[Dict[str, Any]] = data.get("queue_entries", [])
        self.queue_settings: Dict[str, Any] = data.get("queue_settings", {"current_serving": 0})
        self.feedback: List[Dict[str, Any]] = []

    @staticmethod
    def _load_bundled_data() -> Dict[str, Any]:
        data_file = Path(__file__).parent / "mock_backend_data.json"

        if data_file.exists():
            with open(data_file, "r", encoding="utf-8") as f:
                return json.load(f)

        return {}

    def _next_id(self, rows: List[Dict[str, Any]]) -> int:
        return max((int(row.get("id") or 0) for row in rows), default=0) + 1

    def _find_appointment_row(self, appointment_id: Any) -> Optional[Dict[str, Any]]:
        for row in self.appointments:
            if str(row.get("id")) == str(appointment_id):
                return row
        return None

    def fetch_services_and_config(self) -> Tuple[List[ServiceCategory], Dict[str, List[Service]]]:
        categories = sorted(
            (ServiceCategory.from_record(row) for row in self.service_categories),
            key=lambda category: category.sort_order,
        )
        services = [Service.from_record(row) for row in self.services]
        return categories, group_services_by_category(services)

    def fetch_booked_times(self, date: str) -> List[str]:
        return [
            truncate_seconds(row["Time"])
            for row in self.appointments
            if row.get("Date") == date
            and row.get("status") in ACTIVE_APPOINTMENT_STATUSES
            and row.get("Time")
        ]

    def fetch_fully_booked_dates(self) -> List[str]:
        return list(self.fully_booked_dates)

    def check_existing_appointment(self, phone: str, date: str) -> Optional[Appointment]:
        for row in self.appointments:
            if (
                row.get("Phone") == phone
                and row.get("Date") == date
                and row.get("status") in EXISTING_APPOINTMENT_STATUSES
            ):
                return Appointment.from_record(row)
        return None

    def add_appointment(self, request: BookingRequest, payment_id: Optional[str]) -> Appointment:
        row = self._appointment_record(request)
        row.update(
            {
                "id": self._next_id(self.appointments),
                "status": "pending",
                "date_created": pendulum.today().to_date_string(),
                "payment_id": payment_id,
            }
        )
        self.appointments.append(row)
        return Appointment.from_record(row)

    def update_appointment(
        self,
        appointment_id: Any,
        request: BookingRequest,
        payment_id: Optional[str],
    ) -> Appointment:
        row = self._find_appointment_row(appointment_id)
        if row is None:
            raise BackendError(f"Appointment {appointment_id} not found")

        row.update(
            {
                "Email": request.email,
                "Date": request.date,
                "Time": request.time,
                "Services": list(request.selected_services),
                "Total": request.total_price,
                "status": "pending",
                "payment_id": payment_id,
            }
        )
        return Appointment.from_record(row)

    def record_failed_appointment(
        self,
        request: BookingRequest,
        appointment_id: Any = None,
        reason: Optional[str] = None,
    ) -> None:
        if appointment_id is not None:
            row = self._find_appointment_row(appointment_id)
            if row is not None:
                row.update({"status": "failed", "failure_reason": reason})
            return

        row = self._appointment_record(request)
        row.update(
            {
                "id": self._next_id(self.appointments),
                "status": "failed",
                "failure_reason": reason,
                "date_created": pendulum.today().to_date_string(),
            }
        )
        self.appointments.append(row)

    def finalize_cancellation(self, appointment_id: Any) -> None:
        row = self._find_appointment_row(appointment_id)
        if row is not None:
            row.update(
                {
                    "status": "failed",
                    "cancelled_at": pendulum.now("UTC").to_iso8601_string(),
                    "cancellation_fee_paid": True,
                }
            )

    def get_appointment(self, appointment_id: Any) -> Optional[Appointment]:
        row = self._find_appointment_row(appointment_id)
        return Appointment.from_record(row) if row else None

    def add_feedback(self, rating: int, comment: str = "", from_user: Optional[str] = None) -> None:
        if not rating:
            raise InvalidInput("Rating is required.")
        self.feedback.append(
            {"rating": rating, "comment": sanitize_comment(comment), "from_user": from_user}
        )

    def get_queue_state(self) -> QueueState:
        active = sorted(
            (row for row in self.queue_entries if row.get("is_active")),
            key=lambda row: row.get("position", 0),
        )
        return QueueState(
            entries=[QueueEntry.from_record(row) for row in active],
            current_serving=int(self.queue_settings.get("current_serving") or 0),
        )

    def find_active_queue_entry(self, qr_code: str) -> Optional[QueueEntry]:
        for row in self.queue_entries:
            if row.get("qr_code") == qr_code and row.get("is_active"):
                return QueueEntry.from_record(row)
        return None

    def count_active_queue_entries(self) -> int:
        return sum(1 for row in self.queue_entries if row.get("is_active"))

    def insert_queue_entry(self, entry: Dict[str, Any]) -> QueueEntry:
        row = dict(entry)
        row.setdefault("id", self._next_id(self.queue_entries))
        row.setdefault("created_at", pendulum.now("UTC").to_iso8601_string())
        self.queue_entries.append(row)
        return QueueEntry.from_record(row)

    @staticmethod
    def _appointment_record(request: BookingRequest) -> Dict[str, Any]:
        return {
            "Name": request.name,
            "Phone": request.phone,
            "Email": request.email,
            "Date": request.date,
            "Time": request.time,
            "Services": list(request.selected_services),
            "Total": request.total_price,
        }
