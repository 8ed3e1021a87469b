"""
Walk-in queue tracking.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from ..domain.exceptions import BackendError, QueueError
from ..domain.models import QueueEntry, QueueState
from ..domain.validation import generate_sample_qr, verify_qr_code
from .booking import BackendClientProtocol

logger = logging.getLogger(__name__)


class QueueTracker:
    """
    Tracks the walk-in queue and the current user's place in it.

    State is refreshed by polling ``refresh``; the user's entry is dropped as
    soon as it leaves the active queue (served or removed).
    """

    def __init__(
        self,
        backend: BackendClientProtocol,
        minutes_per_customer: int = 20,
        user_position: Optional[QueueEntry] = None,
    ) -> None:
        self._backend = backend
        self.minutes_per_customer = minutes_per_customer
        self.state = QueueState()
        self.user_position = user_position
        self.error: Optional[str] = None

    @property
    def queue(self) -> List[QueueEntry]:
        return self.state.entries

    @property
    def current_serving(self) -> int:
        return self.state.current_serving

    @property
    def waiting(self) -> List[QueueEntry]:
        return self.state.waiting

    def refresh(self) -> QueueState:
        """
        Reload the queue.

        A backend failure is kept in ``error`` and the previous state is retained.
        """
        try:
            state = self._backend.get_queue_state()
        except BackendError as exc:
            logger.warning("Failed to fetch queue: %s", exc)
            self.error = str(exc)
            return self.state

        self.error = None
        self.state = state

        if self.user_position is not None:
            current = state.find(self.user_position.id)
            if current is None or not current.is_active:
                logger.info("Queue entry %s is no longer active", self.user_position.id)
                self.user_position = None
            elif current != self.user_position:
                self.user_position = current

        return state

    def join(
        self,
        qr_code: str,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> QueueEntry:
        """
        Join the queue with a walk-in QR code.

        Raises:
            QueueError: If the QR code is malformed, already queued, or the backend fails
        """
        self.error = None

        if not verify_qr_code(qr_code):
            self.error = "Invalid QR code format. Code should be APPT-XXXXXX"
            raise QueueError(self.error)

        try:
            if self._backend.find_active_queue_entry(qr_code) is not None:
                self.error = "This QR code is already in the queue"
                raise QueueError(self.error)

            position = self._backend.count_active_queue_entries() + 1
            entry = self._backend.insert_queue_entry(
                {
                    "user_id": user_id or f"guest-{int(time.time() * 1000)}",
                    "position": position,
                    "estimated_wait_time": position * self.minutes_per_customer,
                    "qr_code": qr_code,
                    "is_active": True,
                    "phone": phone or None,
                    "email": email or None,
                }
            )
        except BackendError as exc:
            self.error = str(exc)
            raise QueueError(f"Failed to join queue: {exc}") from exc

        logger.info("Joined queue at position %d with %s", entry.position, qr_code)
        self.user_position = entry
        self.refresh()
        return entry

    def auto_join(self, phone: Optional[str] = None, email: Optional[str] = None) -> QueueEntry:
        """Join with a generated QR code unless already queued."""
        if self.user_position is not None:
            return self.user_position
        return self.join(generate_sample_qr(), phone=phone, email=email)

    def poll(
        self,
        interval_seconds: float,
        iterations: Optional[int] = None,
        on_update: Optional[Callable[["QueueTracker"], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Refresh the queue every ``interval_seconds``.

        Args:
            interval_seconds: Delay between refreshes
            iterations: Number of refreshes; None polls until interrupted
            on_update: Called with the tracker after each refresh
            sleep: Sleep function (replaceable in tests)
        """
        count = 0
        while iterations is None or count < iterations:
            self.refresh()
            if on_update is not None:
                on_update(self)
            count += 1
            if iterations is None or count < iterations:
                sleep(interval_seconds)
