"""
Daily quota tracking.

Counts reviews completed and new items started per calendar day so
sessions can respect the daily ceilings. Counters live in the key-value
store under one key per day:

    srs_daily_counts:2024-03-10 -> {"reviews": 12, "newCards": 3}
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import date

from loguru import logger

from .dates import Clock, parse_date, to_iso, today
from .settings import SRSSettings, remaining
from .store import KeyValueStore

COUNTS_KEY_PREFIX = "srs_daily_counts:"


@dataclass(frozen=True)
class DailyCounts:
    """Work done on one calendar day."""

    reviews: int = 0
    new_cards: int = 0

    @classmethod
    def from_dict(cls, data: dict) -> DailyCounts:
        return cls(
            reviews=int(data.get("reviews", 0)),
            new_cards=int(data.get("newCards", 0)),
        )

    def to_dict(self) -> dict:
        return {"reviews": self.reviews, "newCards": self.new_cards}


class QuotaTracker:
    """
    Additive per-day counters backed by a store.

    One tracker per store; the store is passed in so tests can use a
    fresh one each time.
    """

    def __init__(self, store: KeyValueStore, clock: Clock = today):
        self.store = store
        self.clock = clock
        self._lock = threading.RLock()

    @staticmethod
    def key_for(day: date) -> str:
        return f"{COUNTS_KEY_PREFIX}{to_iso(day)}"

    def get_counts(self, day: date | None = None) -> DailyCounts:
        """
        Counts for ``day`` (default today). Unknown days read as zero.
        """
        day = day or self.clock()
        with self._lock:
            data = self.store.get(self.key_for(day))

        if not isinstance(data, dict):
            if data is not None:
                logger.warning(f"Ignoring malformed quota counters for {day}: {data!r}")
            return DailyCounts()

        try:
            return DailyCounts.from_dict(data)
        except (TypeError, ValueError):
            logger.warning(f"Ignoring malformed quota counters for {day}: {data!r}")
            return DailyCounts()

    def increment(
        self,
        reviews_delta: int,
        new_cards_delta: int,
        day: date | None = None,
    ) -> DailyCounts:
        """
        Add to the counters for ``day`` (default today).

        Args:
            reviews_delta: Unique items completed
            new_cards_delta: Unique new items shown

        Returns:
            The updated counts

        Raises:
            ValueError: If either delta is negative
        """
        if reviews_delta < 0 or new_cards_delta < 0:
            raise ValueError(
                f"Quota counters never decrease (got {reviews_delta}, {new_cards_delta})"
            )

        day = day or self.clock()
        with self._lock:
            current = self.get_counts(day)
            updated = DailyCounts(
                reviews=current.reviews + reviews_delta,
                new_cards=current.new_cards + new_cards_delta,
            )
            self.store.set(self.key_for(day), updated.to_dict())

        logger.debug(
            f"Quota for {day}: reviews {current.reviews} -> {updated.reviews}, "
            f"new {current.new_cards} -> {updated.new_cards}"
        )
        return updated

    def remaining(
        self,
        settings: SRSSettings,
        day: date | None = None,
    ) -> tuple[int | None, int | None]:
        """
        Slots left today as (reviews, new items). None means unlimited.
        """
        counts = self.get_counts(day)
        return (
            remaining(settings.max_reviews_limit, counts.reviews),
            remaining(settings.new_cards_limit, counts.new_cards),
        )

    def prune_before(self, day: date) -> int:
        """Delete counters for days before ``day``. Returns the number removed."""
        removed = 0
        with self._lock:
            for key in self.store.keys(COUNTS_KEY_PREFIX):
                try:
                    key_day = parse_date(key[len(COUNTS_KEY_PREFIX):])
                except ValueError:
                    continue
                if key_day < day and self.store.delete(key):
                    removed += 1

        if removed:
            logger.info(f"Pruned {removed} stale quota counters before {day}")
        return removed
