"""
Review Session: the study-session queue.

A session moves through three phases:

    SETUP --start()--> ACTIVE --batch exhausted--> COMPLETE
    SETUP --start() fails--> SETUP (QuotaExhausted / EmptyQueue)
    ACTIVE --abandon()--> ABANDONED (no quota effects)
    COMPLETE --review_again()--> ACTIVE (practice)

The batch is an explicit list plus a cursor. Failed items are appended
to the tail and revisited later in the same session, as many times as
they keep failing. Quota counters are touched exactly once, when a
normal-mode session completes.
"""

from __future__ import annotations

import math
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from loguru import logger

from .dates import Clock, today
from .deck import ALL_SCOPE, Item, ItemDeck, Scope, scope_predicate
from .quota import QuotaTracker
from .scheduler import Grade, SM2Config, SM2Scheduler
from .settings import UNLIMITED, SRSSettings, limit_slots, min_slots, truncate
from .telemetry import SessionStats, compute_forecast

# =============================================================================
# Session Types
# =============================================================================


class SessionMode(str, Enum):
    """How grading results are treated."""

    NORMAL = "normal"  # Due items under quota; results are persisted
    PRACTICE = "practice"  # Any items in scope; nothing persisted, no quota


class SessionPhase(str, Enum):
    SETUP = "setup"
    ACTIVE = "active"
    COMPLETE = "complete"
    ABANDONED = "abandoned"


class SessionStartError(Exception):
    """A session could not start. The session stays in SETUP."""

    reason = "start_failed"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class QuotaExhausted(SessionStartError):
    """No review slots left today."""

    reason = "quota_exhausted"


class EmptyQueue(SessionStartError):
    """Nothing due or nothing matching the scope."""

    reason = "empty_queue"


class InvalidSessionState(RuntimeError):
    """An operation was called in a phase that does not allow it."""


@dataclass(frozen=True)
class GradeOutcome:
    """Result of grading the current item."""

    item: Item  # Updated copy
    grade: Grade
    requeued: bool  # Failed and appended to the batch tail
    persist: bool  # Caller should store ``item`` (normal mode only)
    complete: bool  # This grade finished the session


# =============================================================================
# Review Session
# =============================================================================


class ReviewSession:
    """
    One study session over an item snapshot.

    The session works on its own copies of the items. In normal mode each
    updated item is also written back into the session snapshot and handed
    to ``on_graded`` right away, so progress survives an interruption.
    """

    SECONDS_PER_CARD = 30

    def __init__(
        self,
        items: ItemDeck | Mapping[str, Item] | Iterable[Item],
        quota: QuotaTracker,
        settings: SRSSettings | None = None,
        scheduler: SM2Scheduler | None = None,
        clock: Clock = today,
        on_graded: Callable[[Item], None] | None = None,
    ):
        """
        Initialize the session in SETUP.

        Args:
            items: Item snapshot (copied)
            quota: Daily counters for normal-mode sessions
            settings: Study settings (defaults if None)
            scheduler: Grading function (built from settings if None)
            clock: Supplies the current calendar date
            on_graded: Called with each normal-mode updated item
        """
        if isinstance(items, Mapping):
            items = items.values()
        self._items: dict[str, Item] = {item.id: item.copy() for item in items}

        self.quota = quota
        self.settings = settings or SRSSettings()
        self.clock = clock
        self.scheduler = scheduler or SM2Scheduler(SM2Config.from_settings(self.settings), clock)
        self.on_graded = on_graded

        self._lock = threading.RLock()
        self.phase = SessionPhase.SETUP
        self.mode: SessionMode | None = None
        self.stats: SessionStats | None = None
        self.started_at: datetime | None = None

        self._initial_ids: list[str] = []
        self._batch: list[str] = []
        self._cursor = 0
        self._completed: set[str] = set()
        self._new_shown: set[str] = set()
        self._new_at_start: set[str] = set()
        self._grade_counts: dict[Grade, int] = {g: 0 for g in Grade}
        self._working: dict[str, Item] = {}

    # =========================================================================
    # Setup
    # =========================================================================

    def build_batch(
        self,
        scope: Scope = ALL_SCOPE,
        mode: SessionMode | str = SessionMode.NORMAL,
        session_limit: int | str | None = None,
    ) -> list[str]:
        """
        Select the item ids a session would start with.

        Args:
            scope: "all", a group key, or an item predicate
            mode: Normal (due items under quota) or practice (everything)
            session_limit: Cap on the batch (defaults to the settings value)

        Returns:
            Ordered item ids: reviews first, then new items

        Raises:
            QuotaExhausted: Normal mode with no review slots left today
            EmptyQueue: Nothing selected
            ValueError: Session limit is neither a positive int nor unlimited
        """
        mode = SessionMode(mode)
        cap = self.settings.session_limit if session_limit is None else session_limit
        valid_cap = cap == UNLIMITED or (
            isinstance(cap, int) and not isinstance(cap, bool) and cap >= 1
        )
        if not valid_cap:
            raise ValueError(f"Session limit must be a positive number or '{UNLIMITED}', got {cap!r}")

        day = self.clock()
        matches = scope_predicate(scope)
        in_scope = [item for item in self._items.values() if matches(item)]

        if mode is SessionMode.NORMAL:
            pool = self._select_due(in_scope, day)
        else:
            pool = [item.id for item in in_scope]

        pool = truncate(pool, limit_slots(cap))

        if not pool:
            if mode is SessionMode.NORMAL:
                raise EmptyQueue("Nothing is due for review. Check back later or practice instead.")
            raise EmptyQueue("No items match this scope.")

        return pool

    def _select_due(self, in_scope: list[Item], day: date) -> list[str]:
        """Apply due-ness and daily quotas to the scoped items."""
        due = [item for item in in_scope if item.is_due(day)]

        # Most overdue first; sorted() keeps snapshot order for ties
        reviews = sorted(
            (item for item in due if item.repetitions > 0),
            key=lambda item: (item.next_review_date, item.interval),
        )
        new = [item for item in due if item.repetitions == 0]

        review_slots, new_quota = self.quota.remaining(self.settings, day)
        if review_slots is not None and review_slots <= 0:
            raise QuotaExhausted(
                f"Daily review limit of {self.settings.max_reviews_limit} reached. "
                "Come back tomorrow or practice instead."
            )

        reviews = truncate(reviews, review_slots)
        slots_left = None if review_slots is None else review_slots - len(reviews)
        new = truncate(new, min_slots(new_quota, slots_left))

        logger.debug(
            f"Selected {len(reviews)} reviews + {len(new)} new from {len(due)} due "
            f"(review slots: {review_slots}, new quota: {new_quota})"
        )
        return [item.id for item in reviews] + [item.id for item in new]

    def start(
        self,
        scope: Scope = ALL_SCOPE,
        mode: SessionMode | str = SessionMode.NORMAL,
        session_limit: int | str | None = None,
    ) -> ReviewSession:
        """
        Build the batch and enter ACTIVE.

        Raises:
            QuotaExhausted, EmptyQueue: Session stays in SETUP
            InvalidSessionState: Not in SETUP
        """
        with self._lock:
            self._require(SessionPhase.SETUP)
            batch = self.build_batch(scope, mode, session_limit)
            self._begin(batch, SessionMode(mode))
        return self

    def _begin(
        self,
        ids: list[str],
        mode: SessionMode,
        working: dict[str, Item] | None = None,
    ) -> None:
        source = working or self._items
        self.mode = mode
        self._initial_ids = list(ids)
        self._batch = list(ids)
        self._cursor = 0
        self._completed = set()
        self._new_shown = set()
        self._grade_counts = {g: 0 for g in Grade}
        self._working = {item_id: source[item_id].copy() for item_id in ids}
        self._new_at_start = {
            item_id for item_id in ids if self._working[item_id].repetitions == 0
        }
        self.stats = None
        self.started_at = datetime.now()
        self.phase = SessionPhase.ACTIVE

        logger.info(
            f"Session started ({mode.value}): {len(ids)} items, "
            f"{len(self._new_at_start)} new (~{self.estimated_minutes} min)"
        )

    # =========================================================================
    # Active
    # =========================================================================

    def current(self) -> Item | None:
        """
        The item under the cursor, or None once the batch is exhausted.
        """
        with self._lock:
            if self.phase is SessionPhase.COMPLETE:
                return None
            self._require(SessionPhase.ACTIVE)

            if self._cursor >= len(self._batch):
                self._complete()
                return None
            return self._working[self._batch[self._cursor]].copy()

    def grade(self, grade: Grade | str | int) -> GradeOutcome:
        """
        Grade the current item and advance.

        A failed item is appended to the batch tail and is not counted as
        completed until it is passed later in the session.

        Raises:
            ValueError: Unknown grade value
            InvalidSessionState: Not ACTIVE
        """
        grade = Grade.parse(grade)

        with self._lock:
            self._require(SessionPhase.ACTIVE)
            if self._cursor >= len(self._batch):
                self._complete()
                raise InvalidSessionState("Session is complete; nothing left to grade")

            item_id = self._batch[self._cursor]
            if item_id in self._new_at_start:
                self._new_shown.add(item_id)

            updated = self.scheduler.grade(self._working[item_id], grade)
            self._working[item_id] = updated
            self._grade_counts[grade] += 1

            persist = self.mode is SessionMode.NORMAL
            if persist:
                self._items[item_id] = updated.copy()
                if self.on_graded is not None:
                    self.on_graded(updated.copy())

            requeued = grade is Grade.AGAIN
            if requeued:
                self._batch.append(item_id)
            else:
                self._completed.add(item_id)

            self._cursor += 1
            if self._cursor >= len(self._batch):
                self._complete()

            return GradeOutcome(
                item=updated.copy(),
                grade=grade,
                requeued=requeued,
                persist=persist,
                complete=self.phase is SessionPhase.COMPLETE,
            )

    def abandon(self) -> None:
        """Discard the session. Quota counters are not touched."""
        with self._lock:
            if self.phase is SessionPhase.ABANDONED:
                return
            if self.phase is SessionPhase.ACTIVE:
                logger.info(
                    f"Session abandoned after {self._cursor}/{len(self._batch)} cards"
                )
            self._batch = []
            self._cursor = 0
            self._working = {}
            self.phase = SessionPhase.ABANDONED

    # =========================================================================
    # Complete
    # =========================================================================

    def _complete(self) -> None:
        if self.phase is SessionPhase.COMPLETE:
            return

        day = self.clock()
        self.stats = SessionStats(
            mode=self.mode.value,
            started_at=self.started_at,
            ended_at=datetime.now(),
            completed_count=len(self._completed),
            new_items_shown=len(self._new_shown),
            grade_counts=dict(self._grade_counts),
            forecast=compute_forecast(self._items.values(), day),
        )

        if self.mode is SessionMode.NORMAL:
            self.quota.increment(len(self._completed), len(self._new_shown), day)

        self.phase = SessionPhase.COMPLETE
        logger.info(
            f"Session complete ({self.mode.value}): {self.stats.completed_count} completed, "
            f"{self.stats.total_graded} grades in {self.stats.duration_minutes:.1f} min"
        )

    def review_again(self) -> ReviewSession:
        """
        Run the same items again as a practice session.

        The batch is rebuilt from the original candidate order, not the
        completion order, and never affects quotas or stored items.
        """
        with self._lock:
            self._require(SessionPhase.COMPLETE)
            ids = list(dict.fromkeys(self._initial_ids))
            self._begin(ids, SessionMode.PRACTICE, working=self._working)
        return self

    # =========================================================================
    # Introspection
    # =========================================================================

    @property
    def batch(self) -> tuple[str, ...]:
        return tuple(self._batch)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def completed_ids(self) -> frozenset[str]:
        return frozenset(self._completed)

    @property
    def new_items_shown(self) -> frozenset[str]:
        return frozenset(self._new_shown)

    @property
    def grade_counts(self) -> dict[Grade, int]:
        return dict(self._grade_counts)

    @property
    def progress(self) -> tuple[int, int]:
        """(1-based position of the current card, batch length)."""
        return min(self._cursor + 1, len(self._batch)), len(self._batch)

    @property
    def remaining(self) -> int:
        return max(0, len(self._batch) - self._cursor)

    @property
    def estimated_minutes(self) -> int:
        return math.ceil(len(self._batch) * self.SECONDS_PER_CARD / 60)

    def snapshot(self) -> dict[str, Item]:
        """Item snapshot with normal-mode grading applied."""
        with self._lock:
            return {item_id: item.copy() for item_id, item in self._items.items()}

    def _require(self, phase: SessionPhase) -> None:
        if self.phase is not phase:
            raise InvalidSessionState(
                f"Operation requires {phase.value} session, current phase is {self.phase.value}"
            )
