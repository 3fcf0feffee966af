"""
Item Deck: the caller-owned item snapshot.

Holds the memorization items the engine schedules. The deck hands out
copies; updated items only come back in through ``apply_update``.

Items are stored under a single key as a JSON list, in the same shape the
import files use (camelCase keys, ISO dates).
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, replace
from datetime import date
from pathlib import Path
from typing import Any, Union

from loguru import logger

from .dates import Clock, days_between, is_on_or_before, parse_date, to_iso, today
from .store import KeyValueStore

DEFAULT_EASE_FACTOR = 2.5
MINIMUM_EASE_FACTOR = 1.3

ALL_SCOPE = "all"

Scope = Union[str, Callable[["Item"], bool], None]


# =============================================================================
# Item Data Class
# =============================================================================


@dataclass
class Item:
    """
    A single memorizable fact under spaced repetition.

    Only ``ease_factor``, ``interval``, ``repetitions``, the two dates and
    ``mastered`` are touched by the scheduler. The rest is payload.
    """

    id: str
    next_review_date: date
    front: str = ""
    back: str = ""
    group: str | None = None

    # SM-2 state
    ease_factor: float = DEFAULT_EASE_FACTOR
    interval: int = 0
    repetitions: int = 0
    last_review_date: date | None = None
    mastered: bool = False

    created_at: float | None = None

    @property
    def is_new(self) -> bool:
        """Never successfully graded, or just failed."""
        return self.repetitions == 0

    def is_due(self, on: date) -> bool:
        return is_on_or_before(self.next_review_date, on)

    def days_overdue(self, on: date) -> int:
        """Days past the scheduled review date (0 if not overdue)."""
        return max(0, days_between(self.next_review_date, on))

    def copy(self) -> Item:
        return replace(self)

    @classmethod
    def from_dict(cls, data: dict, clock: Clock = today) -> Item:
        """
        Create an Item from a dictionary (JSON).

        Accepts camelCase (stored/imported form) and snake_case keys.
        Records without scheduling fields become new items due today.

        Args:
            data: Dictionary from the store or an import file
            clock: Supplies "today" for records without a due date

        Returns:
            Item instance
        """

        def pick(*names: str, default: Any = None) -> Any:
            for name in names:
                if data.get(name) is not None:
                    return data[name]
            return default

        if pick("id") is None:
            raise ValueError(f"Item record has no id: {data!r}")

        next_review = pick("nextReviewDate", "next_review_date")
        last_review = pick("lastReviewDate", "last_review_date")
        group = pick("collectionId", "group")

        ease_factor = float(pick("easeFactor", "ease_factor", default=DEFAULT_EASE_FACTOR))
        interval = int(pick("interval", default=0))
        repetitions = int(pick("repetitions", default=0))
        if ease_factor < MINIMUM_EASE_FACTOR - 1e-9:
            raise ValueError(f"Item {data['id']}: ease factor {ease_factor} is below {MINIMUM_EASE_FACTOR}")
        if interval < 0 or repetitions < 0:
            raise ValueError(f"Item {data['id']}: interval and repetitions must not be negative")

        return cls(
            id=str(data["id"]),
            next_review_date=parse_date(next_review) if next_review else clock(),
            front=str(pick("front", "word", default="")),
            back=str(pick("back", "meaning", default="")),
            group=str(group) if group is not None else None,
            ease_factor=ease_factor,
            interval=interval,
            repetitions=repetitions,
            last_review_date=parse_date(last_review) if last_review else None,
            mastered=_parse_flag(pick("mastered", default=False)),
            created_at=pick("createdAt", "created_at"),
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "front": self.front,
            "back": self.back,
            "collectionId": self.group,
            "easeFactor": self.ease_factor,
            "interval": self.interval,
            "repetitions": self.repetitions,
            "nextReviewDate": to_iso(self.next_review_date),
            "lastReviewDate": to_iso(self.last_review_date) if self.last_review_date else None,
            "mastered": self.mastered,
            "createdAt": self.created_at,
        }


def _parse_flag(value: Any) -> bool:
    """Strict boolean: a bool, or the strings "true"/"false"."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise ValueError(f"Expected true or false, got {value!r}")


def scope_predicate(scope: Scope) -> Callable[[Item], bool]:
    """
    Turn a scope into an item filter.

    ``None`` and ``"all"`` match everything, any other string matches the
    item's group key, and callables are used as-is.
    """
    if scope is None or scope == ALL_SCOPE:
        return lambda item: True
    if callable(scope):
        return scope
    return lambda item: item.group == scope


# =============================================================================
# Item Deck
# =============================================================================


class ItemDeck:
    """
    Ordered id -> Item snapshot.

    Insertion order is kept; it is the order new items are introduced in.
    """

    ITEMS_KEY = "srs_items"

    def __init__(self, items: Iterable[Item] = ()):
        self._items: dict[str, Item] = {}
        for item in items:
            self._items[item.id] = item.copy()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Item]:
        return (item.copy() for item in self._items.values())

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def get(self, item_id: str) -> Item | None:
        item = self._items.get(item_id)
        return item.copy() if item else None

    def snapshot(self) -> dict[str, Item]:
        """Copy of the whole deck keyed by id."""
        return {item_id: item.copy() for item_id, item in self._items.items()}

    def apply_update(self, item: Item) -> None:
        """Replace the stored item with an updated copy."""
        if item.id not in self._items:
            logger.debug(f"apply_update adding unknown item {item.id}")
        self._items[item.id] = item.copy()

    def in_scope(self, scope: Scope = ALL_SCOPE) -> list[Item]:
        matches = scope_predicate(scope)
        return [item.copy() for item in self._items.values() if matches(item)]

    def due(self, on: date, scope: Scope = ALL_SCOPE) -> list[Item]:
        """Items due on or before ``on`` within ``scope``."""
        return [item for item in self.in_scope(scope) if item.is_due(on)]

    def groups(self) -> dict[str | None, int]:
        """Item count per group key."""
        counts: dict[str | None, int] = {}
        for item in self._items.values():
            counts[item.group] = counts.get(item.group, 0) + 1
        return counts

    # =========================================================================
    # Persistence
    # =========================================================================

    @classmethod
    def load(cls, store: KeyValueStore, clock: Clock = today) -> ItemDeck:
        """Load the deck from ``store``. Unreadable records are skipped."""
        records = store.get(cls.ITEMS_KEY, [])
        if not isinstance(records, list):
            logger.warning(f"Ignoring {cls.ITEMS_KEY}: expected a list")
            records = []
        return cls(cls._parse_records(records, clock))

    def save(self, store: KeyValueStore) -> None:
        store.set(self.ITEMS_KEY, [item.to_dict() for item in self._items.values()])

    @classmethod
    def load_json(cls, path: Path, clock: Clock = today) -> ItemDeck:
        """
        Load items from a JSON file.

        The file holds either a list of item records or an object with an
        ``items`` (or legacy ``words``) list.
        """
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)

        if isinstance(data, dict):
            data = data.get("items", data.get("words", []))
        if not isinstance(data, list):
            raise ValueError(f"{path}: expected a list of items")

        deck = cls(cls._parse_records(data, clock))
        logger.info(f"Loaded {len(deck)} items from {path}")
        return deck

    @staticmethod
    def _parse_records(records: list, clock: Clock) -> list[Item]:
        items = []
        for record in records:
            try:
                items.append(Item.from_dict(record, clock=clock))
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Skipping malformed item record: {e}")
        return items
