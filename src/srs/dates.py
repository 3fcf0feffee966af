"""
Calendar-day helpers.

Scheduling works on calendar dates only. Nothing here touches instants or
timezones, so "due today" never flips because of a UTC offset.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, timedelta

Clock = Callable[[], date]


def today() -> date:
    """Current date in the local calendar."""
    return date.today()


def add_days(day: date, n: int) -> date:
    """Return the date ``n`` days after ``day`` (``n`` may be negative)."""
    return day + timedelta(days=n)


def days_between(a: date, b: date) -> int:
    """
    Signed number of days from ``a`` to ``b``.

    Positive when ``b`` is later. The sign matters: negative means the
    reference is overdue.
    """
    return (b - a).days


def is_on_or_before(day: date, reference: date) -> bool:
    return day <= reference


def parse_date(value: date | datetime | str) -> date:
    """
    Parse a calendar date.

    Strings may be plain ``YYYY-MM-DD`` or full ISO datetimes; only the
    leading date portion is read, so a trailing offset never shifts the day.

    Raises:
        ValueError: If the value is not a recognizable date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValueError(f"Not a date: {value!r}")

    text = value.strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError as e:
        raise ValueError(f"Not a date: {value!r}") from e


def to_iso(day: date) -> str:
    return day.isoformat()
