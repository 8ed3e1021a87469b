"""
REST client for the hosted backend (PostgREST-style API, e.g. Supabase).
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pendulum
import requests

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

logger = logging.getLogger(__name__)


def _in_filter(values: Sequence[str]) -> str:
    return f"in.({','.join(values)})"


def group_services_by_category(services: List[Service]) -> Dict[str, List[Service]]:
    """Group services by their database category name."""
    grouped: Dict[str, List[Service]] = {}
    for service in services:
        grouped.setdefault(service.category, []).append(service)
    return grouped


class BackendClient:
    """
    Client for the booking backend's table and RPC endpoints.

    Tables are reached under ``/rest/v1/<table>`` with PostgREST filter
    parameters (``Date=eq.2024-11-25``); functions under ``/rest/v1/rpc/<name>``.
    """

    REST_PREFIX = "/rest/v1"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout: int = 30,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the backend client.

        Args:
            base_url: Project URL, e.g. ``https://xyz.supabase.co``
            api_key: Public (anon) API key
            timeout: Request timeout in seconds
            session: Optional pre-configured requests session
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, str]] = None,
        payload: Any = None,
        returning: bool = False,
    ) -> Any:
        """
        Send a request and decode the JSON response.

        Raises:
            BackendError: If the request fails or the backend returns an error status
        """
        url = f"{self.base_url}{self.REST_PREFIX}{path}"
        headers = dict(self.headers)
        if returning:
            headers["Prefer"] = "return=representation"

        logger.debug("%s %s params=%s", method, path, params)

        try:
            response = self.session.request(
                method,
                url,
                headers=headers,
                params=params,
                json=payload,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise BackendError(f"Backend request {method} {path} failed: {e}") from e

        if response.status_code == 204 or not response.content:
            return None

        try:
            return response.json()
        except ValueError as e:
            raise BackendError(f"Backend returned invalid JSON for {method} {path}") from e

    @staticmethod
    def _first(rows: Any) -> Optional[Dict[str, Any]]:
        if isinstance(rows, list):
            return rows[0] if rows else None
        return rows

    def fetch_services_and_config(self) -> Tuple[List[ServiceCategory], Dict[str, List[Service]]]:
        """
        Fetch the service categories (UI configuration) and all services.

        Returns:
            Tuple of (categories ordered by sort_order, services grouped by category)
        """
        category_rows = self._request(
            "GET",
            "/ServiceCategories",
            params={"select": "*", "order": "sort_order.asc"},
        ) or []
        service_rows = self._request("GET", "/Services", params={"select": "*"}) or []

        categories = [ServiceCategory.from_record(row) for row in category_rows]
        services = [Service.from_record(row) for row in service_rows]

        return categories, group_services_by_category(services)

    def fetch_booked_times(self, date: str) -> List[str]:
        """
        Fetch start times of active appointments on a date.

        Returns:
            ``HH:MM`` start times (seconds stripped)
        """
        if not date:
            return []

        rows = self._request(
            "GET",
            "/Appointments",
            params={
                "select": "Time,Services",
                "Date": f"eq.{date}",
                "status": _in_filter(ACTIVE_APPOINTMENT_STATUSES),
            },
        ) or []

        return [truncate_seconds(row["Time"]) for row in rows if row.get("Time")]

    def fetch_fully_booked_dates(self) -> List[str]:
        """Fetch dates with no remaining capacity via the ``get_fully_booked_dates`` RPC."""
        rows = self._request("POST", "/rpc/get_fully_booked_dates", payload={}) or []
        return [row["booking_date"] for row in rows if row.get("booking_date")]

    def check_existing_appointment(self, phone: str, date: str) -> Optional[Appointment]:
        """Return the customer's pending or confirmed appointment on a date, if any."""
        rows = self._request(
            "GET",
            "/Appointments",
            params={
                "select": "id,Time,Name,Phone,Date,Services,Total,Email,status",
                "Phone": f"eq.{phone}",
                "Date": f"eq.{date}",
                "status": _in_filter(EXISTING_APPOINTMENT_STATUSES),
                "limit": "1",
            },
        )
        row = self._first(rows)
        return Appointment.from_record(row) if row else None

    def add_appointment(self, request: BookingRequest, payment_id: Optional[str]) -> Appointment:
        """Insert a new pending appointment."""
        record = self._appointment_record(request)
        record.update(
            {
                "status": "pending",
                "date_created": pendulum.today().to_date_string(),
                "payment_id": payment_id,
            }
        )
        row = self._first(
            self._request("POST", "/Appointments", payload=record, returning=True)
        )
        if not row:
            raise BackendError("Backend did not return the created appointment")
        return Appointment.from_record(row)

    def update_appointment(
        self,
        appointment_id: Any,
        request: BookingRequest,
        payment_id: Optional[str],
    ) -> Appointment:
        """Reschedule an appointment; it goes back to pending verification."""
        record = {
            "Email": request.email,
            "Date": request.date,
            "Time": request.time,
            "Services": list(request.selected_services),
            "Total": request.total_price,
            "status": "pending",
            "payment_id": payment_id,
        }
        row = self._first(
            self._request(
                "PATCH",
                "/Appointments",
                params={"id": f"eq.{appointment_id}"},
                payload=record,
                returning=True,
            )
        )
        if not row:
            raise BackendError(f"Appointment {appointment_id} not found")
        return Appointment.from_record(row)

    def record_failed_appointment(
        self,
        request: BookingRequest,
        appointment_id: Any = None,
        reason: Optional[str] = None,
    ) -> None:
        """Mark an appointment as failed, or insert a failed record if it has no id."""
        failed = {"status": "failed", "failure_reason": reason}

        if appointment_id is not None:
            self._request(
                "PATCH",
                "/Appointments",
                params={"id": f"eq.{appointment_id}"},
                payload=failed,
            )
            return

        record = self._appointment_record(request)
        record.update(failed)
        record["date_created"] = pendulum.today().to_date_string()
        self._request("POST", "/Appointments", payload=record)

    def finalize_cancellation(self, appointment_id: Any) -> None:
        """Cancel an appointment once the cancellation fee has been submitted."""
        self._request(
            "PATCH",
            "/Appointments",
            params={"id": f"eq.{appointment_id}"},
            payload={
                "status": "failed",
                "cancelled_at": pendulum.now("UTC").to_iso8601_string(),
                "cancellation_fee_paid": True,
            },
        )

    def get_appointment(self, appointment_id: Any) -> Optional[Appointment]:
        if appointment_id is None:
            return None
        rows = self._request(
            "GET",
            "/Appointments",
            params={"select": "*", "id": f"eq.{appointment_id}"},
        )
        row = self._first(rows)
        return Appointment.from_record(row) if row else None

    def add_feedback(self, rating: int, comment: str = "", from_user: Optional[str] = None) -> None:
        """
        Store customer feedback.

        Raises:
            InvalidInput: If no rating is given
        """
        if not rating:
            raise InvalidInput("Rating is required.")

        self._request(
            "POST",
            "/Feedback",
            payload={
                "rating": rating,
                "comment": sanitize_comment(comment),
                "from_user": from_user,
            },
        )

    def get_queue_state(self) -> QueueState:
        """Fetch the active queue and the number currently being served."""
        entry_rows = self._request(
            "GET",
            "/queue_entries",
            params={"select": "*", "is_active": "eq.true", "order": "position.asc"},
        ) or []
        settings = self._first(
            self._request(
                "GET",
                "/queue_settings",
                params={"select": "*", "id": "eq.1"},
            )
        ) or {}

        return QueueState(
            entries=[QueueEntry.from_record(row) for row in entry_rows],
            current_serving=int(settings.get("current_serving") or 0),
        )

    def find_active_queue_entry(self, qr_code: str) -> Optional[QueueEntry]:
        rows = self._request(
            "GET",
            "/queue_entries",
            params={"select": "*", "qr_code": f"eq.{qr_code}", "is_active": "eq.true"},
        )
        row = self._first(rows)
        return QueueEntry.from_record(row) if row else None

    def count_active_queue_entries(self) -> int:
        rows = self._request(
            "GET",
            "/queue_entries",
            params={"select": "position", "is_active": "eq.true"},
        ) or []
        return len(rows)

    def insert_queue_entry(self, entry: Dict[str, Any]) -> QueueEntry:
        row = self._first(
            self._request("POST", "/queue_entries", payload=entry, returning=True)
        )
        if not row:
            raise BackendError("Backend did not return the created queue entry")
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
