"""
Working calendar configuration.

A WorkingCalendar is the immutable snapshot of an owner's production settings
that the duration calculator and the calendar walker run against. Invalid
settings are rejected here, before a walk can start.
"""

from dataclasses import dataclass, field
from datetime import time
from numbers import Real
from typing import Any, Dict, List, Tuple

from prodqueue.datetime_utils import (
    format_clock_time,
    minutes_of_day,
    parse_clock_time,
    sunday_based_weekday,
)
from prodqueue.exceptions import ConfigurationError


WEEKDAY_NAMES = ['Sunday', 'Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday']


@dataclass(frozen=True)
class CalendarItem:
    """A named unit type and the minutes it takes to produce one unit."""
    id: str
    name: str
    production_time_per_unit: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'production_time_per_unit': self.production_time_per_unit,
        }


@dataclass(frozen=True)
class WorkingCalendar:
    """
    Production settings used for one computation.

    Attributes:
        items: Ordered unit types with their per-unit minutes
        working_hours_per_day: Informational capacity figure; the walker uses
            start_time/end_time instead
        start_time: Start of the working window on an active day
        end_time: End of the working window on an active day
        working_days: Active weekday indices, 0=Sunday .. 6=Saturday
    """
    items: Tuple[CalendarItem, ...]
    start_time: time
    end_time: time
    working_days: frozenset
    working_hours_per_day: float = 8
    _item_index: Dict[str, CalendarItem] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        self.validate()
        object.__setattr__(self, '_item_index', {item.id: item for item in self.items})

    def validate(self) -> None:
        """
        Raise ConfigurationError for settings the walker cannot run against.

        - working_days must be non-empty and within 0..6
        - start_time must be strictly before end_time
        - every per-unit time must be a positive integer
        - item ids must be unique
        """
        if not self.working_days:
            raise ConfigurationError("working_days must contain at least one weekday")

        for day in self.working_days:
            if not isinstance(day, int) or isinstance(day, bool) or not 0 <= day <= 6:
                raise ConfigurationError(f"working_days entries must be integers 0-6. Got: {day!r}")

        if self.start_time >= self.end_time:
            raise ConfigurationError(
                f"start_time must be before end_time. Got: "
                f"{format_clock_time(self.start_time)} - {format_clock_time(self.end_time)}"
            )

        seen = set()
        for item in self.items:
            rate = item.production_time_per_unit
            if not isinstance(rate, int) or isinstance(rate, bool) or rate <= 0:
                raise ConfigurationError(
                    f"production_time_per_unit for '{item.name}' must be a positive integer. Got: {rate!r}"
                )
            if item.id in seen:
                raise ConfigurationError(f"Duplicate item id: {item.id}")
            seen.add(item.id)

        hours = self.working_hours_per_day
        if hours is not None:
            if not isinstance(hours, Real) or isinstance(hours, bool):
                raise ConfigurationError(f"working_hours_per_day must be a number. Got: {hours!r}")
            if hours <= 0:
                raise ConfigurationError("working_hours_per_day must be positive")

    @property
    def start_minutes(self) -> int:
        return minutes_of_day(self.start_time)

    @property
    def end_minutes(self) -> int:
        return minutes_of_day(self.end_time)

    @property
    def window_minutes(self) -> int:
        """Length of the working window on an active day."""
        return self.end_minutes - self.start_minutes

    def is_working_day(self, dt) -> bool:
        return sunday_based_weekday(dt) in self.working_days

    def get_item(self, item_id: str) -> CalendarItem:
        return self._item_index.get(str(item_id))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WorkingCalendar':
        """
        Build a calendar from a settings payload.

        Args:
            data: Dict with items, working_hours_per_day, start_time, end_time, working_days

        Raises:
            ConfigurationError: If any field is missing or invalid
        """
        if not isinstance(data, dict):
            raise ConfigurationError("Settings payload must be an object")

        try:
            items = tuple(
                CalendarItem(
                    id=str(raw['id']),
                    name=str(raw.get('name') or f"Item {raw['id']}"),
                    production_time_per_unit=raw['production_time_per_unit'],
                )
                for raw in data.get('items') or []
            )
            start_time = parse_clock_time(data['start_time'])
            end_time = parse_clock_time(data['end_time'])
        except KeyError as exc:
            raise ConfigurationError(f"Missing settings field: {exc.args[0]}") from exc
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(str(exc)) from exc

        working_days = data.get('working_days') or []
        if not isinstance(working_days, (list, tuple, set, frozenset)):
            raise ConfigurationError("working_days must be a list of weekday integers")
        for day in working_days:
            if not isinstance(day, int) or isinstance(day, bool):
                raise ConfigurationError(f"working_days entries must be integers 0-6. Got: {day!r}")

        return cls(
            items=items,
            start_time=start_time,
            end_time=end_time,
            working_days=frozenset(working_days),
            working_hours_per_day=8 if data.get('working_hours_per_day') is None else data['working_hours_per_day'],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'items': [item.to_dict() for item in self.items],
            'working_hours_per_day': self.working_hours_per_day,
            'start_time': format_clock_time(self.start_time),
            'end_time': format_clock_time(self.end_time),
            'working_days': sorted(self.working_days),
        }


def describe_working_days(working_days) -> List[str]:
    """Weekday names for a set of 0=Sunday based indices."""
    return [WEEKDAY_NAMES[d] for d in sorted(working_days)]
