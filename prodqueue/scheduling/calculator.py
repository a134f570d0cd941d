"""
Scheduling calculation module.

Pure functions: item quantities to production minutes, and production minutes
to an estimated completion timestamp by walking forward through the working
calendar. No database or Flask dependencies.
"""

from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Mapping, Optional

from prodqueue.datetime_utils import minutes_of_day, truncate_to_minute
from prodqueue.scheduling.config import WorkingCalendar


ACTIVE_STATUSES = ('pending', 'in-progress')


def compute_duration(
    quantities: Mapping[str, int],
    calendar: WorkingCalendar
) -> int:
    """
    Calculate total production minutes for an order.

    Formula: sum(quantity × production_time_per_unit) over configured items

    Args:
        quantities: Map of item id -> quantity (callers validate >= 0)
        calendar: Working calendar holding the per-unit rates

    Returns:
        int: Total minutes (0 when all quantities are 0)
    """
    minutes = 0
    for item in calendar.items:
        quantity = quantities.get(item.id, 0) or 0
        minutes += quantity * item.production_time_per_unit
    return minutes


def _next_day_start(cursor: datetime, calendar: WorkingCalendar) -> datetime:
    next_day = cursor + timedelta(days=1)
    return datetime.combine(next_day.date(), calendar.start_time)


def _first_working_start(cursor: datetime, calendar: WorkingCalendar) -> datetime:
    """Start of the working window on the first working date after cursor's date."""
    cursor = _next_day_start(cursor, calendar)
    while not calendar.is_working_day(cursor):
        cursor = _next_day_start(cursor, calendar)
    return cursor


def get_simulation_start(now: datetime, calendar: WorkingCalendar) -> datetime:
    """
    Determine the instant the walk starts from.

    - Before today's start_time: today at start_time
    - After today's end_time: start_time on the next working date
    - Otherwise now, provided today is a working day; if it is not, the
      start moves to the next working date at start_time
    """
    now = truncate_to_minute(now)
    clock = minutes_of_day(now)

    if clock < calendar.start_minutes:
        return datetime.combine(now.date(), calendar.start_time)

    if clock > calendar.end_minutes:
        return _first_working_start(now, calendar)

    if not calendar.is_working_day(now):
        return _first_working_start(now, calendar)

    return now


def estimate_completion(
    duration_minutes: int,
    queued_minutes_ahead: int,
    calendar: WorkingCalendar,
    now: Optional[datetime] = None
) -> datetime:
    """
    Walk forward through working time to find when an order will be done.

    Formula: completion = start + (duration + queued ahead) working minutes,
    skipping non-working days and the hours outside start_time..end_time.

    Args:
        duration_minutes: Production minutes for this order
        queued_minutes_ahead: Production minutes of the active orders ahead of it
        calendar: Validated working calendar (non-empty working_days)
        now: Reference instant (defaults to datetime.now())

    Returns:
        datetime: Estimated completion timestamp, minute precision
    """
    if now is None:
        now = datetime.now()

    total_needed = max(0, int(duration_minutes)) + max(0, int(queued_minutes_ahead))
    cursor = get_simulation_start(now, calendar)

    while total_needed > 0:
        if calendar.is_working_day(cursor):
            minutes_left_today = max(0, calendar.end_minutes - minutes_of_day(cursor))

            if total_needed <= minutes_left_today:
                cursor = cursor + timedelta(minutes=total_needed)
                total_needed = 0
            else:
                total_needed -= minutes_left_today
                cursor = _next_day_start(cursor, calendar)
        else:
            cursor = _next_day_start(cursor, calendar)

    return cursor


def get_total_queued_minutes(orders: Iterable[Any]) -> int:
    """
    Sum of total_production_time over active orders.

    Args:
        orders: Order models or dicts with 'status' and 'total_production_time'
    """
    total = 0
    for order in orders:
        if isinstance(order, dict):
            status = order.get('status')
            minutes = order.get('total_production_time')
        else:
            status = order.status
            minutes = order.total_production_time
        if status in ACTIVE_STATUSES:
            total += minutes or 0
    return total


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def format_duration(minutes: int) -> str:
    """
    Human readable duration.

    Examples: "45 minutes", "2 hours", "1 hour and 5 minutes"
    """
    if minutes < 60:
        return _plural(minutes, 'minute')

    hours, remaining = divmod(minutes, 60)
    if remaining == 0:
        return _plural(hours, 'hour')

    return f"{_plural(hours, 'hour')} and {_plural(remaining, 'minute')}"


def calculate_order_estimate(
    quantities: Mapping[str, int],
    calendar: WorkingCalendar,
    queued_minutes_ahead: int,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Calculate both scheduling fields for a prospective order.

    Returns:
        dict: total_production_time (int) and estimated_completion_date (datetime)
    """
    total_production_time = compute_duration(quantities, calendar)
    estimated_completion_date = estimate_completion(
        total_production_time,
        queued_minutes_ahead,
        calendar,
        now
    )
    return {
        'total_production_time': total_production_time,
        'estimated_completion_date': estimated_completion_date,
    }
