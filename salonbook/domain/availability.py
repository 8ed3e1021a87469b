"""
Core business logic for computing which appointment times are unavailable.

Pure domain logic: no backend calls, no I/O, no hidden state. Results are
recomputed from scratch whenever the booked slots or the window change.
"""

from typing import AbstractSet, FrozenSet, Iterable, List

from .models import BookingWindow
from .timeofday import format_time_of_day, parse_time_of_day


def compute_disabled_times(booked_slots: Iterable[str], window: BookingWindow) -> FrozenSet[str]:
    """
    Compute the grid points that overlap an existing booking.

    Every booked start time occupies ``[start, start + service_duration)``.
    A grid point of the window is disabled if it falls inside any occupied
    interval, so overlapping bookings merge naturally through the set union.

    Args:
        booked_slots: ``HH:MM`` start times of active appointments, any order
        window: The booking window configuration

    Returns:
        Frozen set of disabled ``HH:MM`` strings

    Raises:
        InvalidInput: If a booked slot is not a valid ``HH:MM`` time
    """
    # Parse everything up front so malformed input fails before any result exists
    starts = [parse_time_of_day(slot) for slot in booked_slots]

    if not starts or window.service_duration == 0:
        return frozenset()

    occupied = [(start, start + window.service_duration) for start in starts]

    return frozenset(
        format_time_of_day(point)
        for point in window.grid()
        if any(start <= point < end for start, end in occupied)
    )


class AvailabilityCalculator:
    """
    Computes disabled and selectable appointment start times for one window.

    Algorithm:
    1. Convert booked start times to minutes since midnight
    2. Build the occupied interval of each booking
    3. Walk the window grid and mark points inside any occupied interval
    4. A new start is blocked if its own service block would hit a marked point
    """

    def __init__(self, window: BookingWindow):
        self.window = window

    def disabled_times(self, booked_slots: Iterable[str]) -> FrozenSet[str]:
        """Return the disabled-time set for the given booked slots."""
        return compute_disabled_times(booked_slots, self.window)

    def sorted_disabled_times(self, booked_slots: Iterable[str]) -> List[str]:
        """Return the disabled times in ascending order."""
        # Zero-padded HH:MM sorts chronologically
        return sorted(self.disabled_times(booked_slots))

    def is_start_blocked(self, candidate: str, disabled: AbstractSet[str]) -> bool:
        """
        Check whether a new appointment may not start at ``candidate``.

        A start is blocked when it lies outside the window, or when any grid
        step of its own service block runs into a disabled time.

        Raises:
            InvalidInput: If ``candidate`` is not a valid ``HH:MM`` time
        """
        start = parse_time_of_day(candidate)

        if start < self.window.min_minutes or start > self.window.max_minutes:
            return True

        end = start + self.window.service_duration
        if start == end:
            return format_time_of_day(start) in disabled

        return any(
            format_time_of_day(point) in disabled
            for point in range(start, end, self.window.increment)
        )

    def available_start_times(self, booked_slots: Iterable[str]) -> List[str]:
        """Return window grid points at which a new appointment can start, ascending."""
        disabled = self.disabled_times(booked_slots)
        candidates = (format_time_of_day(point) for point in self.window.grid())

        return [
            candidate for candidate in candidates
            if not self.is_start_blocked(candidate, disabled)
        ]
