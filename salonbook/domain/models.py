"""
Domain models for bookings, payments and the walk-in queue.
"""

import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional

import pendulum
from pendulum import DateTime

from .exceptions import InvalidInput
from .timeofday import parse_time_of_day, truncate_seconds
from .validation import title_case

# Appointment statuses that occupy a time slot
ACTIVE_APPOINTMENT_STATUSES = ("pending", "verified", "confirmed", "assigned")

# Statuses that count towards the one-appointment-per-day rule
EXISTING_APPOINTMENT_STATUSES = ("pending", "confirmed")


@dataclass(frozen=True)
class BookingWindow:
    """
    Immutable configuration of the bookable time-of-day window.

    Invariants: min_time <= max_time, increment > 0, service_duration >= 0.
    """
    min_time: str
    max_time: str
    increment: int = 15
    service_duration: int = 60

    def __post_init__(self):
        if self.min_minutes > self.max_minutes:
            raise InvalidInput(
                f"min_time {self.min_time} must not be later than max_time {self.max_time}"
            )
        if self.increment <= 0:
            raise InvalidInput(f"increment must be positive, got {self.increment}")
        if self.service_duration < 0:
            raise InvalidInput(
                f"service_duration must not be negative, got {self.service_duration}"
            )

    @property
    def min_minutes(self) -> int:
        return parse_time_of_day(self.min_time)

    @property
    def max_minutes(self) -> int:
        return parse_time_of_day(self.max_time)

    def grid(self) -> List[int]:
        """Return every grid point of the window in minutes since midnight."""
        return list(range(self.min_minutes, self.max_minutes + 1, self.increment))


@dataclass
class Service:
    """A bookable service with its category and price."""
    id: Any
    service: str
    category: str
    price: float = 0.0

    @property
    def display_name(self) -> str:
        """Key used to identify a selected service, e.g. ``Haircut - Hair Care``."""
        return f"{self.service} - {title_case(self.category)}"

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Service":
        try:
            price = float(record.get("price") or 0)
        except (TypeError, ValueError):
            price = 0.0
        return cls(
            id=record.get("id"),
            service=record.get("service", ""),
            category=record.get("category", ""),
            price=price,
        )


@dataclass
class ServiceCategory:
    """UI grouping of services (exclusive pick-one or add-on pick-many)."""
    category_key: str
    label: str
    type: str = "ExclusiveDropdown"
    db_category: str = ""
    depends_on: Optional[str] = None
    column: str = "full"
    sort_order: int = 0

    @property
    def is_exclusive(self) -> bool:
        return self.type == "ExclusiveDropdown"

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "ServiceCategory":
        return cls(
            category_key=record.get("category_key", ""),
            label=record.get("label", ""),
            type=record.get("type", "ExclusiveDropdown"),
            db_category=record.get("db_category", ""),
            depends_on=record.get("depends_on"),
            column=record.get("column", "full"),
            sort_order=int(record.get("sort_order") or 0),
        )


@dataclass
class BookingRequest:
    """Sanitised booking form data."""
    name: str
    phone: str
    email: str
    date: str
    time: str
    selected_services: List[str] = field(default_factory=list)
    total_price: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "date": self.date,
            "time": self.time,
            "selected_services": list(self.selected_services),
            "total_price": self.total_price,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BookingRequest":
        return cls(
            name=data.get("name", ""),
            phone=data.get("phone", ""),
            email=data.get("email", ""),
            date=data.get("date", ""),
            time=data.get("time", ""),
            selected_services=_coerce_services(data.get("selected_services")),
            total_price=float(data.get("total_price") or 0),
        )


@dataclass
class Appointment:
    """
    An appointment row as stored by the backend.

    The backend uses capitalised column names (``Name``, ``Date``, ...);
    ``from_record`` maps them onto attribute names.
    """
    id: Any
    name: str
    phone: str
    date: str
    time: str
    email: str = ""
    services: List[str] = field(default_factory=list)
    total: float = 0.0
    status: str = "pending"
    payment_id: Optional[str] = None
    date_created: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_APPOINTMENT_STATUSES

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "Appointment":
        time_value = record.get("Time") or ""
        return cls(
            id=record.get("id"),
            name=record.get("Name", ""),
            phone=record.get("Phone", ""),
            email=record.get("Email") or "",
            date=record.get("Date", ""),
            time=truncate_seconds(time_value),
            services=_coerce_services(record.get("Services")),
            total=float(record.get("Total") or 0),
            status=record.get("status", "pending"),
            payment_id=record.get("payment_id"),
            date_created=record.get("date_created"),
        )

    def to_booking_request(self) -> BookingRequest:
        return BookingRequest(
            name=self.name,
            phone=self.phone,
            email=self.email,
            date=self.date,
            time=self.time,
            selected_services=list(self.services),
            total_price=self.total,
        )


@dataclass
class PaymentInstruction:
    """
    Manual GCash payment instruction shown to the customer.

    The customer pays ``amount`` to the recipient, quoting ``reference_number``,
    then enters the GCash transaction reference to confirm.
    """
    reference_number: str
    amount: float
    currency: str
    payment_type: str
    recipient: Dict[str, Optional[str]]
    appointment: BookingRequest
    created_at: DateTime
    expires_at: DateTime
    appointment_id: Any = None
    status: str = "pending"
    gcash_reference: Optional[str] = None
    verified_at: Optional[DateTime] = None

    def is_expired(self, now: DateTime) -> bool:
        return self.expires_at <= now

    def with_status(self, status: str, gcash_reference: Optional[str], now: DateTime) -> "PaymentInstruction":
        return replace(
            self,
            status=status,
            gcash_reference=gcash_reference,
            verified_at=now if status == "verified" else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reference_number": self.reference_number,
            "amount": self.amount,
            "currency": self.currency,
            "payment_type": self.payment_type,
            "recipient": dict(self.recipient),
            "appointment": self.appointment.to_dict(),
            "appointment_id": self.appointment_id,
            "status": self.status,
            "created_at": self.created_at.to_iso8601_string(),
            "expires_at": self.expires_at.to_iso8601_string(),
            "gcash_reference": self.gcash_reference,
            "verified_at": self.verified_at.to_iso8601_string() if self.verified_at else None,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PaymentInstruction":
        verified_at = data.get("verified_at")
        return cls(
            reference_number=data["reference_number"],
            amount=float(data["amount"]),
            currency=data.get("currency", "PHP"),
            payment_type=data.get("payment_type", "booking"),
            recipient=dict(data.get("recipient") or {}),
            appointment=BookingRequest.from_dict(data.get("appointment") or {}),
            appointment_id=data.get("appointment_id"),
            status=data.get("status", "pending"),
            created_at=pendulum.parse(data["created_at"]),
            expires_at=pendulum.parse(data["expires_at"]),
            gcash_reference=data.get("gcash_reference"),
            verified_at=pendulum.parse(verified_at) if verified_at else None,
        )


@dataclass
class QueueEntry:
    """A walk-in customer's place in the queue."""
    id: Any
    user_id: str
    position: int
    estimated_wait_time: int
    qr_code: str
    is_active: bool = True
    phone: Optional[str] = None
    email: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "QueueEntry":
        return cls(
            id=record.get("id"),
            user_id=record.get("user_id", ""),
            position=int(record.get("position") or 0),
            estimated_wait_time=int(record.get("estimated_wait_time") or 0),
            qr_code=record.get("qr_code", ""),
            is_active=bool(record.get("is_active", True)),
            phone=record.get("phone"),
            email=record.get("email"),
            created_at=record.get("created_at"),
        )


@dataclass
class QueueState:
    """Snapshot of the active queue and the number currently being served."""
    entries: List[QueueEntry] = field(default_factory=list)
    current_serving: int = 0

    @property
    def waiting(self) -> List[QueueEntry]:
        """Entries still waiting (position > 0), in queue order."""
        return sorted(
            (entry for entry in self.entries if entry.position > 0),
            key=lambda entry: entry.position,
        )

    def find(self, entry_id: Any) -> Optional[QueueEntry]:
        for entry in self.entries:
            if entry.id == entry_id:
                return entry
        return None


def _coerce_services(value: Any) -> List[str]:
    """
    Normalise a services column to a list of names.

    The backend may hand back a JSON-encoded string instead of an array.
    """
    if value is None:
        return []
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            return [value]
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    return []
