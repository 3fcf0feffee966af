"""
Persisted study settings.

Quota limits, learning steps, auto-mature and the session size cap live
in the key-value store as individual entries. They are validated once on
load; malformed values are rejected rather than clamped.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from typing import Any, ClassVar, Literal, TypeVar, Union

from loguru import logger
from pydantic import BaseModel, ConfigDict, PositiveInt, ValidationError, field_validator

from .store import KeyValueStore

T = TypeVar("T")

UNLIMITED = "unlimited"

# A daily ceiling: positive count, or the "unlimited" sentinel
Limit = Union[PositiveInt, Literal["unlimited"]]
SessionLimit = Literal[10, 20, 50, "unlimited"]


class ConfigurationError(ValueError):
    """Persisted settings are malformed."""


# =============================================================================
# Limit Arithmetic
# =============================================================================


def remaining(limit: Limit, used: int) -> int | None:
    """Slots left under ``limit`` after ``used``; None means unbounded."""
    if limit == UNLIMITED:
        return None
    return max(0, limit - used)


def min_slots(a: int | None, b: int | None) -> int | None:
    if a is None:
        return b
    if b is None:
        return a
    return min(a, b)


def truncate(values: Sequence[T], slots: int | None) -> list[T]:
    if slots is None:
        return list(values)
    return list(values[: max(0, slots)])


def limit_slots(limit: Limit) -> int | None:
    return None if limit == UNLIMITED else limit


# =============================================================================
# Settings Model
# =============================================================================


class SRSSettings(BaseModel):
    """Study settings with their documented defaults."""

    model_config = ConfigDict(frozen=True)

    new_cards_limit: Limit = 10
    max_reviews_limit: Limit = 100
    auto_mature: bool = True
    learning_steps: tuple[int, int] = (1, 6)
    session_limit: SessionLimit = 20

    KEYS: ClassVar[dict[str, str]] = {
        "new_cards_limit": "srs_new_cards_limit",
        "max_reviews_limit": "srs_max_reviews_limit",
        "auto_mature": "srs_auto_mature",
        "learning_steps": "srs_learning_steps",
        "session_limit": "srs_session_limit",
    }

    @field_validator("learning_steps")
    @classmethod
    def _steps_positive(cls, steps: tuple[int, int]) -> tuple[int, int]:
        if any(step < 1 for step in steps):
            raise ValueError(f"learning steps must be at least 1 day, got {list(steps)}")
        return steps

    @classmethod
    def load(cls, store: KeyValueStore) -> SRSSettings:
        """
        Read settings from ``store``; missing entries take defaults.

        Raises:
            ConfigurationError: If a stored value is invalid
        """
        values = {}
        for field_name, key in cls.KEYS.items():
            value = store.get(key)
            if value is not None:
                values[field_name] = value

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid SRS settings: {e}") from e

    def save(self, store: KeyValueStore) -> None:
        data = self.model_dump(mode="json")
        for field_name, key in self.KEYS.items():
            store.set(key, data[field_name])
        logger.debug(f"Saved SRS settings: {data}")

    def with_value(self, field_name: str, raw: Any) -> SRSSettings:
        """
        Return a copy with one field replaced, validating the new value.

        ``raw`` may be a command-line string ("unlimited", "20", "false",
        "1,6" or "[1, 6]").

        Raises:
            ConfigurationError: Unknown field or invalid value
        """
        if field_name not in self.KEYS:
            raise ConfigurationError(
                f"Unknown setting {field_name!r} (expected one of {', '.join(self.KEYS)})"
            )

        value = _coerce(raw)
        if field_name == "learning_steps" and isinstance(value, str):
            value = [part.strip() for part in value.split(",")]

        data = self.model_dump()
        data[field_name] = value
        try:
            return type(self)(**data)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid value for {field_name}: {raw!r}") from e


def _coerce(raw: Any) -> Any:
    if not isinstance(raw, str):
        return raw
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw.strip()
