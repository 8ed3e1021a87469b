"""
Input sanitising and validation for booking forms, payments and the queue.
"""

import re
import secrets
import string
import time
from typing import Dict, Sequence

from .exceptions import InvalidInput

NAME_MAX_LENGTH = 50
COMMENT_MAX_LENGTH = 500

_EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_MOBILE_PATTERN = re.compile(r"^9\d{9}$")
_QR_PATTERN = re.compile(r"^APPT-[A-Z0-9]{6,}$")
_GCASH_REFERENCE_PATTERN = re.compile(r"^[A-Z0-9]+$")


def title_case(value: str) -> str:
    """Lower-case the value, then capitalise the first letter of each word."""
    return " ".join(word[:1].upper() + word[1:] for word in value.lower().split(" "))


def sanitize_name(name: str) -> str:
    """
    Clean a customer name for storage.

    Keeps letters, spaces, hyphens and apostrophes, collapses whitespace,
    strips leading/trailing punctuation, limits the length and title-cases it.
    """
    cleaned = re.sub(r"[^a-zA-Z\s'-]", "", name.strip())
    cleaned = re.sub(r"\s+", " ", cleaned)
    cleaned = re.sub(r"^['\-\s]+|['\-\s]+$", "", cleaned)
    return title_case(cleaned[:NAME_MAX_LENGTH])


def sanitize_phone(phone: str) -> str:
    """Remove every non-digit character."""
    if not phone:
        return ""
    return re.sub(r"[^0-9]", "", phone)


def normalize_phone_number(phone: str) -> str:
    """
    Normalise a Philippine mobile number to its 10-digit ``9XXXXXXXXX`` form.

    ``639171234567`` and ``09171234567`` both become ``9171234567``; anything
    else is returned as bare digits.
    """
    cleaned = sanitize_phone(phone.strip() if phone else "")
    if cleaned.startswith("639") and len(cleaned) == 12:
        return cleaned[2:]
    if cleaned.startswith("09") and len(cleaned) == 11:
        return cleaned[1:]
    return cleaned


def is_valid_mobile_number(phone: str) -> bool:
    return bool(_MOBILE_PATTERN.match(normalize_phone_number(phone)))


def validate_email(email: str) -> bool:
    if not email:
        return False
    return bool(_EMAIL_PATTERN.match(str(email).lower()))


def sanitize_comment(comment: str) -> str:
    """Keep letters, digits, whitespace and basic punctuation; limit the length."""
    if not comment:
        return ""
    cleaned = re.sub(r"[^a-zA-Z0-9\s?!.,]", "", comment.strip())
    return cleaned[:COMMENT_MAX_LENGTH]


def validate_gcash_reference(reference: str) -> str:
    """
    Validate a GCash transaction reference entered by the customer.

    Returns:
        The upper-cased reference

    Raises:
        InvalidInput: With a user-facing message if the reference is invalid
    """
    if not reference or len(reference.strip()) < 8:
        raise InvalidInput("Reference number must be at least 8 characters")

    normalized = reference.strip().upper()
    if not _GCASH_REFERENCE_PATTERN.match(normalized):
        raise InvalidInput("Reference number can only contain letters and numbers")

    return normalized


def verify_qr_code(qr_code: str) -> bool:
    """Check a walk-in QR code has the ``APPT-XXXXXX`` format."""
    return bool(qr_code) and bool(_QR_PATTERN.match(qr_code))


def generate_sample_qr() -> str:
    """Generate a queue QR code: last four timestamp digits plus six random characters."""
    timestamp = str(int(time.time() * 1000))
    alphabet = string.ascii_uppercase + string.digits
    suffix = "".join(secrets.choice(alphabet) for _ in range(6))
    return f"APPT-{timestamp[-4:]}{suffix}"


def validate_booking_form(
    *,
    name: str,
    phone: str,
    email: str,
    date: str,
    time_of_day: str,
    selected_services: Sequence[str],
    wants_sms: bool,
    wants_email: bool,
) -> Dict[str, str]:
    """
    Validate a booking form.

    Returns:
        Mapping of field name to error message; empty when the form is valid
    """
    errors: Dict[str, str] = {}

    sanitized_name = sanitize_name(name or "")
    if not sanitized_name.strip():
        errors["name"] = "Name is required."
    elif len(sanitized_name) < 2:
        errors["name"] = "Name must be at least 2 characters."

    if not wants_sms and not wants_email:
        errors["notifications"] = "Please select at least one notification method."

    if wants_sms:
        if not (phone or "").strip():
            errors["phone"] = "Phone number is required for SMS notifications."
        elif not is_valid_mobile_number(phone):
            errors["phone"] = "Please enter a valid PH mobile number (e.g. 09171234567)."

    if wants_email:
        if not (email or "").strip():
            errors["email"] = "Email is required for email notifications."
        elif not validate_email(email):
            errors["email"] = "Please enter a valid email address."

    if not selected_services:
        errors["services"] = "Please select at least one service."
    if not date:
        errors["date"] = "Date is required."
    if not time_of_day:
        errors["time"] = "Time is required."

    return errors
