"""
Tests for the availability calculator.
"""

import pytest

from salonbook.domain.availability import AvailabilityCalculator, compute_disabled_times
from salonbook.domain.exceptions import InvalidInput
from salonbook.domain.models import BookingWindow


@pytest.fixture
def window():
    return BookingWindow(min_time="11:00", max_time="18:00", increment=15, service_duration=60)


class TestComputeDisabledTimes:
    """Tests for compute_disabled_times."""

    def test_single_booking_blocks_its_service_block(self, window):
        """A 14:00 booking disables every grid point until 15:00 (exclusive)."""
        result = compute_disabled_times(["14:00"], window)

        assert result == {"14:00", "14:15", "14:30", "14:45"}
        assert "15:00" not in result
        assert "13:45" not in result

    def test_overlapping_bookings_merge(self, window):
        """Overlapping bookings produce one region without duplicates."""
        result = compute_disabled_times(["13:30", "14:00"], window)

        assert result == {"13:30", "13:45", "14:00", "14:15", "14:30", "14:45"}

    def test_booking_ending_at_window_start_disables_nothing(self, window):
        """[10:00, 11:00) does not reach the 11:00 grid point."""
        assert compute_disabled_times(["10:00"], window) == set()

    def test_booking_partially_before_window_is_clipped(self, window):
        assert compute_disabled_times(["10:30"], window) == {"11:00", "11:15"}

    def test_booking_at_max_time_stops_at_window_end(self, window):
        """Nothing past max_time is ever disabled."""
        assert compute_disabled_times(["18:00"], window) == {"18:00"}
        assert compute_disabled_times(["17:30"], window) == {"17:30", "17:45", "18:00"}

    def test_empty_bookings(self, window):
        assert compute_disabled_times([], window) == set()

    def test_zero_duration_disables_nothing(self):
        window = BookingWindow(min_time="11:00", max_time="18:00", increment=15, service_duration=0)

        assert compute_disabled_times(["14:00", "15:00"], window) == set()

    def test_off_grid_booking_uses_interval_membership(self):
        """A 14:10 booking on a 30-minute grid blocks the points inside [14:10, 15:10)."""
        window = BookingWindow(min_time="11:00", max_time="18:00", increment=30, service_duration=60)

        assert compute_disabled_times(["14:10"], window) == {"14:30", "15:00"}

    def test_malformed_time_raises(self, window):
        with pytest.raises(InvalidInput):
            compute_disabled_times(["abc"], window)

    def test_malformed_time_among_valid_ones_raises(self, window):
        with pytest.raises(InvalidInput):
            compute_disabled_times(["14:00", "25:00"], window)

    def test_non_ascii_digits_raise(self, window):
        """Only ASCII digits form a valid HH:MM."""
        with pytest.raises(InvalidInput):
            compute_disabled_times(["١٤:00"], window)

    def test_seconds_are_not_accepted(self, window):
        """Callers must truncate HH:MM:SS before calling."""
        with pytest.raises(InvalidInput):
            compute_disabled_times(["14:00:00"], window)

    def test_order_independent_and_idempotent(self, window):
        booked = ["16:00", "11:30", "13:45"]

        first = compute_disabled_times(booked, window)
        second = compute_disabled_times(list(reversed(booked)), window)
        third = compute_disabled_times(booked, window)

        assert first == second == third

    def test_every_point_inside_interval_and_none_outside(self, window):
        result = compute_disabled_times(["12:15"], window)
        start, end = 12 * 60 + 15, 13 * 60 + 15

        for point in window.grid():
            label = f"{point // 60:02d}:{point % 60:02d}"
            assert (label in result) == (start <= point < end)


class TestAvailabilityCalculator:
    """Tests for the AvailabilityCalculator helpers."""

    def test_sorted_disabled_times(self, window):
        calculator = AvailabilityCalculator(window)

        assert calculator.sorted_disabled_times(["14:00", "13:30"]) == [
            "13:30", "13:45", "14:00", "14:15", "14:30", "14:45",
        ]

    def test_start_blocked_when_block_runs_into_booking(self, window):
        calculator = AvailabilityCalculator(window)
        disabled = calculator.disabled_times(["14:00"])

        assert calculator.is_start_blocked("13:15", disabled)
        assert calculator.is_start_blocked("14:30", disabled)
        assert not calculator.is_start_blocked("13:00", disabled)
        assert not calculator.is_start_blocked("15:00", disabled)

    def test_start_outside_window_is_blocked(self, window):
        calculator = AvailabilityCalculator(window)

        assert calculator.is_start_blocked("10:45", frozenset())
        assert calculator.is_start_blocked("18:15", frozenset())

    def test_start_blocked_rejects_malformed_candidate(self, window):
        calculator = AvailabilityCalculator(window)

        with pytest.raises(InvalidInput):
            calculator.is_start_blocked("noon", frozenset())

    def test_available_start_times(self, window):
        calculator = AvailabilityCalculator(window)

        available = calculator.available_start_times(["14:00"])

        assert len(available) == 22
        assert available[0] == "11:00"
        assert available[-1] == "18:00"
        assert "13:00" in available
        assert "13:15" not in available
        assert "14:45" not in available
        assert "15:00" in available

    def test_available_start_times_without_bookings(self, window):
        calculator = AvailabilityCalculator(window)

        assert len(calculator.available_start_times([])) == len(window.grid()) == 29
