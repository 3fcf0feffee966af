"""
Study streak: consecutive calendar days with activity.
"""

from __future__ import annotations

from loguru import logger

from .dates import Clock, days_between, parse_date, to_iso, today
from .store import KeyValueStore

STREAK_KEY = "srs_streak"


class StreakTracker:
    """Counts consecutive active days; a missed day resets the streak to 1."""

    def __init__(self, store: KeyValueStore, clock: Clock = today):
        self.store = store
        self.clock = clock

    def _load(self) -> tuple[int, str | None]:
        data = self.store.get(STREAK_KEY) or {}
        try:
            return int(data.get("count", 0)), data.get("lastActivity")
        except (AttributeError, TypeError, ValueError):
            logger.warning(f"Ignoring malformed streak record: {data!r}")
            return 0, None

    def current(self) -> int:
        """Streak length as of today (0 if the last activity is older than yesterday)."""
        count, last = self._load()
        if not last:
            return 0
        try:
            gap = days_between(parse_date(last), self.clock())
        except ValueError:
            return 0
        return count if gap <= 1 else 0

    def record_activity(self) -> int:
        """Mark today as active and return the updated streak."""
        day = self.clock()
        count, last = self._load()

        gap = None
        if last:
            try:
                gap = days_between(parse_date(last), day)
            except ValueError:
                gap = None

        if gap == 0:
            return max(count, 1)
        count = count + 1 if gap == 1 else 1

        self.store.set(STREAK_KEY, {"count": count, "lastActivity": to_iso(day)})
        logger.debug(f"Streak is now {count} day(s)")
        return count
