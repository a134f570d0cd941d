"""
DateTime utility functions for the application.

All scheduling timestamps are naive facility-local datetimes.
"""
from datetime import datetime, time
from typing import Optional


def parse_clock_time(value) -> time:
    """
    Parse an 'HH:MM' wall-clock string.

    Args:
        value: 'HH:MM' string or datetime.time

    Returns:
        datetime.time

    Raises:
        ValueError: If the string is not a valid HH:MM time
    """
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)

    parts = str(value).strip().split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Time must be in HH:MM format. Got: {value!r}")

    return time(int(parts[0]), int(parts[1]))


def format_clock_time(value: time) -> str:
    """Format a time back to 'HH:MM'."""
    return value.strftime("%H:%M")


def minutes_of_day(value) -> int:
    """Minutes since midnight for a time or datetime."""
    return value.hour * 60 + value.minute


def sunday_based_weekday(dt) -> int:
    """
    Weekday index with 0=Sunday .. 6=Saturday.

    Python's weekday() is 0=Monday .. 6=Sunday.
    """
    return (dt.weekday() + 1) % 7


def truncate_to_minute(dt: datetime) -> datetime:
    """Drop seconds and microseconds."""
    return dt.replace(second=0, microsecond=0)


def elapsed_minutes(start: Optional[datetime], end: datetime) -> int:
    """
    Whole minutes elapsed between two datetimes (floored, never negative).

    Returns 0 if start is None.
    """
    if start is None:
        return 0
    seconds = (end - start).total_seconds()
    if seconds <= 0:
        return 0
    return int(seconds // 60)


def parse_datetime(value) -> Optional[datetime]:
    """
    Parse an ISO timestamp into a naive datetime.

    Args:
        value: datetime object, ISO string, or None

    Returns:
        datetime or None

    Raises:
        ValueError: If the string is not ISO formatted
    """
    if not value:
        return None

    if isinstance(value, datetime):
        dt = value
    else:
        dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))

    # Scheduling is not time-zone aware; drop any offset the client sent
    if dt.tzinfo is not None:
        dt = dt.replace(tzinfo=None)
    return dt


def format_datetime(dt: Optional[datetime]) -> Optional[str]:
    """ISO format a datetime, or None."""
    if not dt:
        return None
    return dt.isoformat()
