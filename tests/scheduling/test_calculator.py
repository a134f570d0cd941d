"""
Tests for the scheduling calculator (pure functions).
No database or Flask dependencies.

Calendar used throughout: Mon-Fri 09:00-17:00, Item 1 = 10 min, Item 2 = 15 min.
January 2024: Mon 1, Tue 2, Wed 3, Thu 4, Fri 5, Sat 6, Sun 7, Mon 8.
"""
import pytest
from datetime import datetime

from prodqueue.config import DEFAULT_PRODUCTION_SETTINGS
from prodqueue.scheduling import (
    WorkingCalendar,
    calculate_order_estimate,
    compute_duration,
    estimate_completion,
    format_duration,
    get_simulation_start,
    get_total_queued_minutes,
)


@pytest.fixture
def calendar():
    return WorkingCalendar.from_dict(DEFAULT_PRODUCTION_SETTINGS)


TUESDAY_10 = datetime(2024, 1, 2, 10, 0)
TUESDAY_16 = datetime(2024, 1, 2, 16, 0)
FRIDAY_09 = datetime(2024, 1, 5, 9, 0)


# ==============================================================================
# DURATION TESTS
# ==============================================================================

class TestComputeDuration:
    """Tests for quantities -> production minutes."""

    def test_mixed_order(self, calendar):
        assert compute_duration({'1': 2, '2': 1}, calendar) == 35

    def test_all_zero_is_zero(self, calendar):
        assert compute_duration({'1': 0, '2': 0}, calendar) == 0

    def test_empty_quantities_is_zero(self, calendar):
        assert compute_duration({}, calendar) == 0

    def test_missing_item_counts_as_zero(self, calendar):
        assert compute_duration({'2': 4}, calendar) == 60

    def test_linear_in_quantities(self, calendar):
        """Doubling every quantity doubles the duration."""
        single = compute_duration({'1': 3, '2': 5}, calendar)
        double = compute_duration({'1': 6, '2': 10}, calendar)
        assert double == 2 * single


# ==============================================================================
# SIMULATION START TESTS
# ==============================================================================

class TestGetSimulationStart:
    """Tests for where the calendar walk begins."""

    def test_within_window_starts_now(self, calendar):
        assert get_simulation_start(TUESDAY_10, calendar) == TUESDAY_10

    def test_seconds_are_dropped(self, calendar):
        now = datetime(2024, 1, 2, 10, 15, 42, 500)
        assert get_simulation_start(now, calendar) == datetime(2024, 1, 2, 10, 15)

    def test_before_start_moves_to_start(self, calendar):
        now = datetime(2024, 1, 2, 7, 30)
        assert get_simulation_start(now, calendar) == datetime(2024, 1, 2, 9, 0)

    def test_after_end_moves_to_next_working_day(self, calendar):
        now = datetime(2024, 1, 2, 18, 0)
        assert get_simulation_start(now, calendar) == datetime(2024, 1, 3, 9, 0)

    def test_friday_evening_moves_to_monday(self, calendar):
        now = datetime(2024, 1, 5, 17, 30)
        assert get_simulation_start(now, calendar) == datetime(2024, 1, 8, 9, 0)

    def test_weekend_daytime_moves_to_monday(self, calendar):
        now = datetime(2024, 1, 6, 11, 0)
        assert get_simulation_start(now, calendar) == datetime(2024, 1, 8, 9, 0)

    def test_exactly_end_time_stays_put(self, calendar):
        now = datetime(2024, 1, 2, 17, 0)
        assert get_simulation_start(now, calendar) == now


# ==============================================================================
# CALENDAR WALK TESTS
# ==============================================================================

class TestEstimateCompletion:
    """Tests for walking minutes forward through working time."""

    def test_same_day(self, calendar):
        assert estimate_completion(35, 0, calendar, TUESDAY_10) == datetime(2024, 1, 2, 10, 35)

    def test_zero_minutes_returns_start(self, calendar):
        assert estimate_completion(0, 0, calendar, TUESDAY_10) == TUESDAY_10

    def test_zero_minutes_after_hours_returns_next_start(self, calendar):
        now = datetime(2024, 1, 2, 20, 0)
        assert estimate_completion(0, 0, calendar, now) == datetime(2024, 1, 3, 9, 0)

    def test_skips_weekend(self, calendar):
        """481 minutes from Friday 09:00 lands on Monday 09:01."""
        assert estimate_completion(481, 0, calendar, FRIDAY_09) == datetime(2024, 1, 8, 9, 1)

    def test_exactly_fills_day_ends_at_end_time(self, calendar):
        assert estimate_completion(480, 0, calendar, FRIDAY_09) == datetime(2024, 1, 5, 17, 0)

    def test_queued_minutes_are_added(self, calendar):
        """500 queued + 10 new from Tuesday 16:00: 60 Tuesday, 450 into Wednesday."""
        result = estimate_completion(10, 500, calendar, TUESDAY_16)
        assert result == datetime(2024, 1, 3, 16, 30)

    def test_backlog_spills_into_thursday(self, calendar):
        """560 queued + 10 new from Tuesday 16:00: 60 Tuesday, 480 Wednesday, 30 Thursday."""
        result = estimate_completion(10, 560, calendar, TUESDAY_16)
        assert result == datetime(2024, 1, 4, 9, 30)

    def test_queued_and_duration_are_interchangeable(self, calendar):
        a = estimate_completion(100, 300, calendar, TUESDAY_10)
        b = estimate_completion(300, 100, calendar, TUESDAY_10)
        assert a == b

    def test_deterministic(self, calendar):
        results = {estimate_completion(1234, 56, calendar, TUESDAY_10) for _ in range(5)}
        assert len(results) == 1

    def test_never_before_simulation_start(self, calendar):
        now = datetime(2024, 1, 6, 12, 0)
        for minutes in (0, 1, 479, 480, 481, 2000):
            assert estimate_completion(minutes, 0, calendar, now) >= get_simulation_start(now, calendar)

    def test_result_is_on_a_working_day_within_window(self, calendar):
        for minutes in (1, 200, 480, 481, 999, 4800):
            result = estimate_completion(minutes, 0, calendar, TUESDAY_10)
            assert calendar.is_working_day(result)
            assert calendar.start_time <= result.time() <= calendar.end_time

    def test_single_working_day_calendar(self):
        calendar = WorkingCalendar.from_dict({
            'items': [{'id': '1', 'name': 'Widget', 'production_time_per_unit': 60}],
            'start_time': '08:00',
            'end_time': '10:00',
            'working_days': [3],  # Wednesday
        })
        # Tuesday: walk jumps to Wednesday, 2h there, then the following Wednesday
        result = estimate_completion(180, 0, calendar, TUESDAY_10)
        assert result == datetime(2024, 1, 10, 9, 0)


# ==============================================================================
# BACKLOG AND FORMATTING TESTS
# ==============================================================================

class TestQueuedMinutes:
    """Tests for summing the active backlog."""

    def test_counts_only_active_orders(self):
        orders = [
            {'status': 'pending', 'total_production_time': 30},
            {'status': 'in-progress', 'total_production_time': 45},
            {'status': 'completed', 'total_production_time': 100},
            {'status': 'cancelled', 'total_production_time': 200},
        ]
        assert get_total_queued_minutes(orders) == 75

    def test_accepts_objects(self):
        class FakeOrder:
            def __init__(self, status, minutes):
                self.status = status
                self.total_production_time = minutes

        assert get_total_queued_minutes([FakeOrder('pending', 20), FakeOrder('completed', 5)]) == 20

    def test_empty(self):
        assert get_total_queued_minutes([]) == 0


class TestFormatDuration:

    @pytest.mark.parametrize('minutes,expected', [
        (0, '0 minutes'),
        (1, '1 minute'),
        (45, '45 minutes'),
        (60, '1 hour'),
        (120, '2 hours'),
        (65, '1 hour and 5 minutes'),
        (121, '2 hours and 1 minute'),
    ])
    def test_format(self, minutes, expected):
        assert format_duration(minutes) == expected


class TestCalculateOrderEstimate:

    def test_returns_both_fields(self, calendar):
        result = calculate_order_estimate({'1': 2, '2': 1}, calendar, 0, TUESDAY_10)
        assert result == {
            'total_production_time': 35,
            'estimated_completion_date': datetime(2024, 1, 2, 10, 35),
        }
