"""
Tests for the order lifecycle state machine and production-time accounting.
Orders are test doubles; no database involved.
"""
import pytest
from datetime import datetime, timedelta
from unittest.mock import Mock

from prodqueue.exceptions import InvalidTransitionError
from prodqueue.queue.lifecycle import (
    ALLOWED_TRANSITIONS,
    CANCELLED,
    COMPLETED,
    IN_PROGRESS,
    ORDER_STATUSES,
    PENDING,
    actual_production_minutes,
    apply_transition,
    can_transition,
    validate_transition,
)


T0 = datetime(2024, 1, 2, 10, 0)


@pytest.fixture
def order():
    """A fresh pending order double."""
    order = Mock()
    order.status = PENDING
    order.production_start_time = None
    order.production_time_accumulated = 0
    order.updated_at = None
    return order


class TestTransitionTable:

    @pytest.mark.parametrize('current,new', [
        (PENDING, IN_PROGRESS),
        (PENDING, COMPLETED),
        (PENDING, CANCELLED),
        (IN_PROGRESS, PENDING),
        (IN_PROGRESS, COMPLETED),
        (IN_PROGRESS, CANCELLED),
    ])
    def test_allowed(self, current, new):
        assert can_transition(current, new)
        validate_transition(current, new)

    @pytest.mark.parametrize('current', [COMPLETED, CANCELLED])
    def test_terminal_states_have_no_exits(self, current):
        for new in ORDER_STATUSES:
            assert not can_transition(current, new)
            with pytest.raises(InvalidTransitionError):
                validate_transition(current, new)

    @pytest.mark.parametrize('status', [PENDING, IN_PROGRESS])
    def test_same_status_rejected(self, status):
        with pytest.raises(InvalidTransitionError):
            validate_transition(status, status)

    def test_unknown_status_rejected(self):
        with pytest.raises(InvalidTransitionError, match="status must be one of"):
            validate_transition(PENDING, 'shipped')

    def test_every_status_in_table(self):
        assert set(ALLOWED_TRANSITIONS) == set(ORDER_STATUSES)


class TestApplyTransition:

    def test_start_sets_start_time(self, order):
        added = apply_transition(order, IN_PROGRESS, T0)

        assert added == 0
        assert order.status == IN_PROGRESS
        assert order.production_start_time == T0
        assert order.updated_at == T0

    def test_complete_flushes_elapsed_minutes(self, order):
        apply_transition(order, IN_PROGRESS, T0)
        added = apply_transition(order, COMPLETED, T0 + timedelta(minutes=12, seconds=40))

        assert added == 12
        assert order.production_time_accumulated == 12
        assert order.production_start_time is None
        assert order.status == COMPLETED

    def test_pause_and_resume_accumulates(self, order):
        """5 minutes, pause, 10 minutes, complete -> 15 minutes total."""
        apply_transition(order, IN_PROGRESS, T0)
        apply_transition(order, PENDING, T0 + timedelta(minutes=5))
        assert order.production_time_accumulated == 5
        assert order.production_start_time is None

        resume = T0 + timedelta(hours=1)
        apply_transition(order, IN_PROGRESS, resume)
        apply_transition(order, COMPLETED, resume + timedelta(minutes=10))

        assert order.production_time_accumulated == 15
        assert order.production_start_time is None

    def test_cancel_from_in_progress_keeps_time(self, order):
        apply_transition(order, IN_PROGRESS, T0)
        apply_transition(order, CANCELLED, T0 + timedelta(minutes=7))
        assert order.production_time_accumulated == 7

    def test_complete_from_pending_adds_nothing(self, order):
        added = apply_transition(order, COMPLETED, T0)
        assert added == 0
        assert order.production_time_accumulated == 0

    def test_invalid_transition_leaves_order_untouched(self, order):
        order.status = COMPLETED
        with pytest.raises(InvalidTransitionError):
            apply_transition(order, IN_PROGRESS, T0)
        assert order.status == COMPLETED
        assert order.production_start_time is None

    def test_accumulated_never_decreases(self, order):
        """A clock that went backwards contributes 0, not a negative span."""
        apply_transition(order, IN_PROGRESS, T0)
        apply_transition(order, PENDING, T0 - timedelta(minutes=3))
        assert order.production_time_accumulated == 0


class TestActualProductionMinutes:

    def test_includes_running_span(self, order):
        order.status = IN_PROGRESS
        order.production_time_accumulated = 20
        order.production_start_time = T0
        assert actual_production_minutes(order, T0 + timedelta(minutes=4)) == 24

    def test_completed_uses_accumulated_only(self, order):
        order.status = COMPLETED
        order.production_time_accumulated = 33
        assert actual_production_minutes(order, T0) == 33
