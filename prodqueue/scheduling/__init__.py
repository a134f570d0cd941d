"""
Scheduling module for production-time and completion-date calculations.

Pure code: a duration calculator and a working-calendar walker over an
immutable WorkingCalendar snapshot.
"""

from prodqueue.scheduling.config import WorkingCalendar, CalendarItem
from prodqueue.scheduling.calculator import (
    compute_duration,
    estimate_completion,
    get_simulation_start,
    get_total_queued_minutes,
    format_duration,
    calculate_order_estimate,
)

__all__ = [
    'WorkingCalendar',
    'CalendarItem',
    'compute_duration',
    'estimate_completion',
    'get_simulation_start',
    'get_total_queued_minutes',
    'format_duration',
    'calculate_order_estimate',
]
