"""
Payment reference generation and storage for manual GCash payments.
"""

from __future__ import annotations

import json
import logging
import secrets
import time
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pendulum
from pendulum import DateTime

from .models import PaymentInstruction

logger = logging.getLogger(__name__)

PAYMENT_STATUS_PENDING = "pending"
PAYMENT_STATUS_PENDING_VERIFICATION = "pending_verification"
PAYMENT_STATUS_VERIFIED = "verified"

_BASE36_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: List[str] = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_secure_reference(prefix: str = "GP") -> str:
    """
    Generate a payment reference number.

    Format: prefix + base36 millisecond timestamp + four random base36 characters.
    """
    timestamp = _to_base36(int(time.time() * 1000))
    random_part = "".join(
        _to_base36(byte) for byte in secrets.token_bytes(4)
    ).upper()[:4]
    return f"{prefix}{timestamp}{random_part}"


class PaymentInstructionStore:
    """
    Keeps payment instructions keyed by reference number.

    Lifecycle: instructions are created on request, expire after their TTL
    and are dropped by ``purge_expired``. Optionally backed by a JSON file so
    the flow survives separate CLI invocations.
    """

    def __init__(
        self,
        path: Path | None = None,
        clock: Callable[[], DateTime] = pendulum.now,
    ):
        """
        Initialize the store.

        Args:
            path: Optional JSON file to persist instructions to
            clock: Callable returning the current time
        """
        self.path = path
        self._clock = clock
        self._instructions: Dict[str, PaymentInstruction] = self._load()

    def __len__(self) -> int:
        return len(self._instructions)

    def now(self) -> DateTime:
        return self._clock()

    def save(self, instruction: PaymentInstruction) -> None:
        """Add or replace an instruction."""
        self._instructions[instruction.reference_number] = instruction
        self._persist()

    def find(self, reference_number: str) -> Optional[PaymentInstruction]:
        """Return the instruction for a reference, or None if unknown or expired."""
        instruction = self._instructions.get(reference_number)
        if instruction is None:
            return None
        if instruction.is_expired(self.now()):
            logger.debug("Payment instruction %s has expired", reference_number)
            return None
        return instruction

    def update_status(
        self,
        reference_number: str,
        status: str,
        gcash_reference: Optional[str] = None,
    ) -> Optional[PaymentInstruction]:
        """
        Update an instruction's status.

        Returns:
            The updated instruction, or None if it does not exist
        """
        instruction = self.find(reference_number)
        if instruction is None:
            return None

        updated = instruction.with_status(status, gcash_reference, self.now())
        self.save(updated)
        return updated

    def purge_expired(self) -> int:
        """Drop expired instructions; return how many were removed."""
        now = self.now()
        expired = [
            reference for reference, instruction in self._instructions.items()
            if instruction.is_expired(now)
        ]
        for reference in expired:
            del self._instructions[reference]

        if expired:
            logger.info("Purged %d expired payment instruction(s)", len(expired))
            self._persist()

        return len(expired)

    def _load(self) -> Dict[str, PaymentInstruction]:
        if self.path is None or not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as file_handle:
                raw = json.load(file_handle)
        except (OSError, ValueError) as exc:
            logger.warning("Could not load payment instructions from %s: %s", self.path, exc)
            return {}

        instructions: Dict[str, PaymentInstruction] = {}
        for item in raw if isinstance(raw, list) else []:
            try:
                instruction = PaymentInstruction.from_dict(item)
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping unreadable payment instruction: %s", exc)
                continue
            instructions[instruction.reference_number] = instruction

        return instructions

    def _persist(self) -> None:
        if self.path is None:
            return

        serialized = json.dumps(
            [instruction.to_dict() for instruction in self._instructions.values()],
            indent=2,
        )
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as file_handle:
                file_handle.write(serialized)
            self.path.chmod(0o600)
        except OSError as exc:
            logger.warning("Could not save payment instructions to %s: %s", self.path, exc)
