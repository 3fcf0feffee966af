"""
SRS: Spaced Repetition Review Engine.

Decides which items are due, schedules the next review after each grade,
and runs a bounded study-session queue under daily quotas.

Components:
- dates: Calendar-day arithmetic
- ItemDeck / Item: Caller-owned item snapshot
- SM2Scheduler: Grading function (SM-2 variant)
- QuotaTracker: Daily review and new-item counters
- ReviewSession: Session queue state machine
- KeyValueStore: Memory, JSON file and SQL backings
"""

from .deck import Item, ItemDeck
from .quota import DailyCounts, QuotaTracker
from .scheduler import Grade, SM2Config, SM2Scheduler, SRSStage, srs_stage
from .session import (
    EmptyQueue,
    GradeOutcome,
    InvalidSessionState,
    QuotaExhausted,
    ReviewSession,
    SessionMode,
    SessionPhase,
    SessionStartError,
)
from .settings import UNLIMITED, ConfigurationError, SRSSettings
from .store import JsonFileStore, KeyValueStore, MemoryStore, SqlStore, open_store
from .streak import StreakTracker
from .telemetry import DeckStats, Forecast, NextDueInfo, SessionStats

__all__ = [
    # Items
    "Item",
    "ItemDeck",
    # Scheduling
    "Grade",
    "SM2Config",
    "SM2Scheduler",
    "SRSStage",
    "srs_stage",
    # Quotas
    "DailyCounts",
    "QuotaTracker",
    "StreakTracker",
    # Sessions
    "ReviewSession",
    "SessionMode",
    "SessionPhase",
    "GradeOutcome",
    "SessionStartError",
    "QuotaExhausted",
    "EmptyQueue",
    "InvalidSessionState",
    # Settings
    "SRSSettings",
    "ConfigurationError",
    "UNLIMITED",
    # Persistence
    "KeyValueStore",
    "MemoryStore",
    "JsonFileStore",
    "SqlStore",
    "open_store",
    # Statistics
    "SessionStats",
    "Forecast",
    "DeckStats",
    "NextDueInfo",
]
