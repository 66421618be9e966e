"""Date matching for series recurrence patterns.

Pure functions, no I/O. Weekdays are numbered 0=Sunday .. 6=Saturday.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from .models import Repeat, RepeatType


def to_date(value: date | datetime | str) -> date:
    """Accept a date, a datetime or an ISO ``YYYY-MM-DD`` string."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def weekday(day: date) -> int:
    """0=Sunday .. 6=Saturday."""
    return day.isoweekday() % 7


def matches(day: date | datetime | str, repeat: Repeat | Mapping[str, Any] | str | None) -> bool:
    """Does *day* fall on the recurrence described by *repeat*?

    Random series never match a date; they are sampled instead. ``once``
    and unknown types never match.
    """
    day = to_date(day)
    repeat = Repeat.from_value(repeat)
    if repeat is None:
        return False
    if repeat.start and day < repeat.start:
        return False

    if repeat.type == RepeatType.DAILY:
        return True
    if repeat.type == RepeatType.WEEKLY:
        return weekday(day) in repeat.days_of_week
    if repeat.type == RepeatType.MONTHLY:
        return day.day in repeat.days_of_month
    if repeat.type == RepeatType.YEARLY:
        return f"{day.month:02d}-{day.day:02d}" in repeat.dates
    return False
