"""
Order lifecycle state machine and production-time accounting.

Works on any object exposing status, production_start_time,
production_time_accumulated and updated_at (an Order model or a test double).
"""
from datetime import datetime
from typing import Dict, FrozenSet, Optional

from prodqueue.datetime_utils import elapsed_minutes
from prodqueue.exceptions import InvalidTransitionError


PENDING = 'pending'
IN_PROGRESS = 'in-progress'
COMPLETED = 'completed'
CANCELLED = 'cancelled'

ORDER_STATUSES = (PENDING, IN_PROGRESS, COMPLETED, CANCELLED)
TERMINAL_STATUSES = frozenset({COMPLETED, CANCELLED})

ALLOWED_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    PENDING: frozenset({IN_PROGRESS, COMPLETED, CANCELLED}),
    IN_PROGRESS: frozenset({PENDING, COMPLETED, CANCELLED}),
    COMPLETED: frozenset(),
    CANCELLED: frozenset(),
}


def can_transition(current: str, new: str) -> bool:
    return new in ALLOWED_TRANSITIONS.get(current, frozenset())


def validate_transition(current: str, new: str) -> None:
    """
    Raise InvalidTransitionError unless current -> new is in the table.

    Terminal states have no outgoing transitions and a same-status request is
    not a transition.
    """
    if new not in ORDER_STATUSES:
        raise InvalidTransitionError(
            f"status must be one of: {', '.join(ORDER_STATUSES)}. Got: {new!r}"
        )
    if current in TERMINAL_STATUSES:
        raise InvalidTransitionError(f"Order is already {current}; no further status changes are allowed")
    if not can_transition(current, new):
        raise InvalidTransitionError(f"Cannot change status from {current} to {new}")


def flush_production_time(order, now: datetime) -> int:
    """
    Add the running in-progress span to the accumulated total and stop the timer.

    Returns:
        int: Minutes added (0 if the timer was not running)
    """
    added = elapsed_minutes(order.production_start_time, now)
    order.production_time_accumulated = (order.production_time_accumulated or 0) + added
    order.production_start_time = None
    return added


def apply_transition(order, new_status: str, now: Optional[datetime] = None) -> int:
    """
    Move an order to a new status and update production-time accounting.

    - entering in-progress starts the timer (production_start_time = now)
    - leaving in-progress flushes the elapsed span into
      production_time_accumulated and clears production_start_time

    Args:
        order: Object with status / production_start_time / production_time_accumulated / updated_at
        new_status: Target status
        now: Transition instant (defaults to datetime.now())

    Returns:
        int: Minutes added to production_time_accumulated by this transition

    Raises:
        InvalidTransitionError: If the transition is not allowed
    """
    if now is None:
        now = datetime.now()

    current = order.status
    validate_transition(current, new_status)

    added = 0
    if current == IN_PROGRESS:
        added = flush_production_time(order, now)

    if new_status == IN_PROGRESS:
        order.production_start_time = now

    order.status = new_status
    order.updated_at = now
    return added


def actual_production_minutes(order, now: Optional[datetime] = None) -> int:
    """
    Production time so far, for display.

    Formula: accumulated + (elapsed since production_start_time if in-progress)
    """
    if now is None:
        now = datetime.now()

    minutes = order.production_time_accumulated or 0
    if order.status == IN_PROGRESS and order.production_start_time:
        minutes += elapsed_minutes(order.production_start_time, now)
    return minutes
