"""
SM-2 Spaced Repetition Scheduler.

Implements the SM-2 variant used for study sessions:
- Four self-assessed grades (again / hard / good / easy)
- Two configurable learning steps for the first successful reviews
- Ease-factor driven interval growth afterwards
- Optional auto-maturing of long-interval items

Grade effects:
again - fail: repetitions and interval reset, ease -0.20
hard  - pass: ease -0.15
good  - pass: ease unchanged
easy  - pass: ease +0.15
"""

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING

from loguru import logger

from .dates import Clock, add_days, today
from .deck import DEFAULT_EASE_FACTOR, Item

if TYPE_CHECKING:
    from .settings import SRSSettings

# Tolerance at the ease floor so repeated float subtraction settles on 1.3
EASE_EPSILON = 1e-9


class Grade(str, Enum):
    """Self-assessed recall quality for one review."""

    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"

    @property
    def is_pass(self) -> bool:
        return self is not Grade.AGAIN

    @classmethod
    def parse(cls, value: Grade | str | int) -> Grade:
        """
        Validate a grade coming from outside the engine.

        Accepts a Grade, its name ("good", "GOOD") or the 1-4 keys used by
        the terminal front-end (1 = again ... 4 = easy).

        Raises:
            ValueError: For anything else
        """
        if isinstance(value, Grade):
            return value
        if isinstance(value, bool):
            raise ValueError(f"Invalid grade: {value!r}")
        if isinstance(value, int):
            value = str(value)
        if isinstance(value, str):
            text = value.strip().lower()
            if text in _GRADE_KEYS:
                return _GRADE_KEYS[text]
            try:
                return cls(text)
            except ValueError:
                pass
        raise ValueError(f"Invalid grade: {value!r} (expected one of again, hard, good, easy)")


_GRADE_KEYS = {
    "1": Grade.AGAIN,
    "2": Grade.HARD,
    "3": Grade.GOOD,
    "4": Grade.EASY,
}


class SRSStage(str, Enum):
    """Coarse maturity bucket for display."""

    NEW = "new"
    LEARNING = "learning"
    YOUNG = "young"
    MATURE = "mature"


YOUNG_INTERVAL = 21
MATURE_INTERVAL = 60


def srs_stage(item: Item) -> SRSStage:
    if item.repetitions == 0:
        return SRSStage.NEW
    if item.interval < YOUNG_INTERVAL:
        return SRSStage.LEARNING
    if item.interval < MATURE_INTERVAL:
        return SRSStage.YOUNG
    return SRSStage.MATURE


def round_half_away(value: float) -> int:
    """Round to the nearest integer, halves away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


# =============================================================================
# SM-2 Algorithm
# =============================================================================


@dataclass
class SM2Config:
    """Configuration for SM-2 algorithm."""

    initial_easiness: float = DEFAULT_EASE_FACTOR
    minimum_easiness: float = 1.3
    first_interval: int = 1  # Days for first successful review
    second_interval: int = 6  # Days for second successful review
    fail_penalty: float = 0.2
    hard_penalty: float = 0.15
    easy_bonus: float = 0.15
    auto_mature: bool = True
    mature_interval: int = MATURE_INTERVAL

    @classmethod
    def from_settings(cls, settings: SRSSettings) -> SM2Config:
        step1, step2 = settings.learning_steps
        return cls(
            first_interval=step1,
            second_interval=step2,
            auto_mature=settings.auto_mature,
        )


class SM2Scheduler:
    """
    Pure grading function over items.

    ``grade`` never mutates its input and cannot fail; grade values are
    validated by callers via ``Grade.parse``.
    """

    def __init__(self, config: SM2Config | None = None, clock: Clock = today):
        """
        Initialize SM-2 scheduler.

        Args:
            config: Custom configuration (uses defaults if None)
            clock: Supplies the current calendar date
        """
        self.config = config or SM2Config()
        self.clock = clock

    def grade(self, item: Item, grade: Grade) -> Item:
        """
        Compute the item's next state after a review.

        Args:
            item: Current item state
            grade: The user's grade

        Returns:
            Updated copy of the item
        """
        config = self.config
        ease = item.ease_factor

        if grade is Grade.AGAIN:
            repetitions = 0
            interval = 0
            ease = self._floor_ease(ease - config.fail_penalty)
        else:
            if item.repetitions == 0:
                interval = max(1, config.first_interval)
            elif item.repetitions == 1:
                interval = max(1, config.second_interval)
            else:
                interval = round_half_away(item.interval * ease)
            repetitions = item.repetitions + 1

            if grade is Grade.HARD:
                ease = self._floor_ease(ease - config.hard_penalty)
            elif grade is Grade.EASY:
                ease = ease + config.easy_bonus

        # Mastery only ever moves toward True
        mastered = item.mastered or (config.auto_mature and interval >= config.mature_interval)

        day = self.clock()
        updated = replace(
            item,
            ease_factor=ease,
            interval=interval,
            repetitions=repetitions,
            next_review_date=add_days(day, interval),
            last_review_date=day,
            mastered=mastered,
        )

        logger.debug(
            f"Graded {item.id} {grade.value}: interval {item.interval}d -> {interval}d, "
            f"ease {item.ease_factor:.2f} -> {ease:.2f}, reps {repetitions}"
        )
        return updated

    def interval_preview(self, item: Item) -> dict[Grade, str]:
        """
        Interval label each grade would produce, without changing the item.

        Returns:
            Mapping of grade to "<1d", "1d" or "Nd"
        """
        preview = {}
        for grade in Grade:
            days = self.grade(item, grade).interval
            preview[grade] = "<1d" if days == 0 else f"{days}d"
        return preview

    def _floor_ease(self, value: float) -> float:
        minimum = self.config.minimum_easiness
        if value < minimum + EASE_EPSILON:
            return minimum
        return value
