"""
Helpers for wall-clock time-of-day values in ``HH:MM`` form.
"""

import re

import pendulum

from .exceptions import InvalidInput

_TIME_PATTERN = re.compile(r"^([0-9]{1,2}):([0-9]{2})$")

MINUTES_PER_DAY = 24 * 60


def parse_time_of_day(value: str) -> int:
    """
    Convert an ``HH:MM`` string to minutes since midnight.

    Raises:
        InvalidInput: If the value is not a valid ``HH:MM`` time of day
    """
    if not isinstance(value, str):
        raise InvalidInput(f"Time of day must be a string, got {value!r}")

    match = _TIME_PATTERN.match(value.strip())
    if not match:
        raise InvalidInput(f"Invalid time of day: {value!r} (expected HH:MM)")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23 or minutes > 59:
        raise InvalidInput(f"Time of day out of range: {value!r}")

    return hours * 60 + minutes


def format_time_of_day(minutes: int) -> str:
    """Format minutes since midnight as a zero-padded ``HH:MM`` string."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def truncate_seconds(value: str) -> str:
    """Strip a trailing seconds component (``HH:MM:SS`` -> ``HH:MM``)."""
    return value[:5] if value else value


def format_12_hour(value: str) -> str:
    """Format ``HH:MM`` for display, e.g. ``14:00`` -> ``2:00 PM``."""
    minutes = parse_time_of_day(value)
    moment = pendulum.datetime(2000, 1, 1).add(minutes=minutes)
    return moment.format("h:mm A")
