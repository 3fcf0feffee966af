"""
Session and Deck Statistics.

Summaries produced for the caller:
- SessionStats: end-of-session totals (per-grade tally, completions, time)
- Forecast: items coming due tomorrow and within the next week
- DeckStats: due/overdue/new/learning/mastered counts for a dashboard
- NextDueInfo: when the next batch of items comes due
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from .dates import add_days, days_between, to_iso
from .deck import Item
from .scheduler import Grade

# Dashboard flags a backlog above this many due items
URGENT_DUE_COUNT = 15


@dataclass(frozen=True)
class Forecast:
    """Upcoming workload, computed over the whole item snapshot."""

    due_tomorrow: int = 0
    due_within_week: int = 0


def compute_forecast(items: Iterable[Item], day: date) -> Forecast:
    """
    Count items due tomorrow and within the next 7 days.

    "Within the week" is strictly after ``day`` and on or before
    ``day + 7``; items already due are not part of the forecast.
    """
    tomorrow = add_days(day, 1)
    week_end = add_days(day, 7)

    due_tomorrow = 0
    due_within_week = 0
    for item in items:
        if item.next_review_date == tomorrow:
            due_tomorrow += 1
        if day < item.next_review_date <= week_end:
            due_within_week += 1

    return Forecast(due_tomorrow=due_tomorrow, due_within_week=due_within_week)


@dataclass
class SessionStats:
    """A finished session summary."""

    mode: str
    started_at: datetime
    ended_at: datetime
    completed_count: int
    new_items_shown: int
    grade_counts: dict[Grade, int] = field(default_factory=lambda: {g: 0 for g in Grade})
    forecast: Forecast = field(default_factory=Forecast)

    @property
    def total_graded(self) -> int:
        """All grading events, repeats included."""
        return sum(self.grade_counts.values())

    @property
    def duration(self) -> timedelta:
        return self.ended_at - self.started_at

    @property
    def duration_minutes(self) -> float:
        return self.duration.total_seconds() / 60

    @property
    def accuracy(self) -> float:
        """Share of grading events that passed."""
        if self.total_graded == 0:
            return 0.0
        return 1 - self.grade_counts.get(Grade.AGAIN, 0) / self.total_graded

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat(),
            "duration_minutes": round(self.duration_minutes, 2),
            "completed": self.completed_count,
            "new_items_shown": self.new_items_shown,
            "total_graded": self.total_graded,
            "accuracy_percent": round(self.accuracy * 100, 1),
            "grades": {grade.value: count for grade, count in self.grade_counts.items()},
            "due_tomorrow": self.forecast.due_tomorrow,
            "due_within_week": self.forecast.due_within_week,
        }


@dataclass(frozen=True)
class DeckStats:
    """Dashboard counts for a snapshot."""

    total: int
    due: int
    overdue: int
    new: int
    learning: int
    mastered: int
    forecast: Forecast

    @property
    def progress_percent(self) -> int:
        """Mastered share of the deck, rounded."""
        if self.total == 0:
            return 0
        return round(self.mastered / self.total * 100)

    @property
    def is_urgent(self) -> bool:
        return self.due > URGENT_DUE_COUNT


def deck_stats(items: Iterable[Item], day: date) -> DeckStats:
    items = list(items)
    due = [item for item in items if item.is_due(day)]
    return DeckStats(
        total=len(items),
        due=len(due),
        overdue=sum(1 for item in due if item.next_review_date < day),
        new=sum(1 for item in items if item.repetitions == 0),
        learning=sum(1 for item in items if item.repetitions > 0 and not item.mastered),
        mastered=sum(1 for item in items if item.mastered),
        forecast=compute_forecast(items, day),
    )


@dataclass(frozen=True)
class NextDueInfo:
    """The earliest future due date and how many items share it."""

    due_date: date
    count: int
    days_until: int

    @property
    def time_text(self) -> str:
        if self.days_until <= 1:
            return "tomorrow"
        if self.days_until <= 7:
            return f"in {self.days_until} days"
        return f"on {to_iso(self.due_date)}"


def next_due_info(items: Iterable[Item], day: date) -> NextDueInfo | None:
    """Next due date strictly after ``day``, or None if nothing is scheduled."""
    future = [item.next_review_date for item in items if item.next_review_date > day]
    if not future:
        return None

    next_date = min(future)
    return NextDueInfo(
        due_date=next_date,
        count=future.count(next_date),
        days_until=days_between(day, next_date),
    )
