"""
Key-Value Store for SRS state.

A flat string-keyed namespace holding JSON-serializable values. The
engine only needs get/set/delete, so any backing can serve:

- MemoryStore: in-process dict (tests, practice runs)
- JsonFileStore: one JSON document on disk (~/.srs/store.json)
- SqlStore: a single table through SQLAlchemy (SQLite file by default,
  any SQLAlchemy URL works)
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger
from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, delete, select, update

if TYPE_CHECKING:
    from config import Settings


class KeyValueStore(ABC):
    """Minimal storage capability used by the engine."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value for ``key`` or ``default``."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value under ``key``."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove ``key``. Returns True if it existed."""

    @abstractmethod
    def keys(self, prefix: str = "") -> list[str]:
        """List stored keys starting with ``prefix``."""


def _roundtrip(value: Any) -> Any:
    """Copy a value through JSON so callers never share mutable state with the store."""
    return json.loads(json.dumps(value))


class MemoryStore(KeyValueStore):
    """Dict-backed store. Values are copied in and out."""

    def __init__(self, initial: dict[str, Any] | None = None):
        self._data: dict[str, Any] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return _roundtrip(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = _roundtrip(value)

    def delete(self, key: str) -> bool:
        if key not in self._data:
            return False
        del self._data[key]
        return True

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))


class JsonFileStore(MemoryStore):
    """
    Store persisted as a single JSON document.

    Every call goes back to the file, so several stores opened on the same
    path (the CLI and a test, two terminals) see each other's writes. Each
    change is a read-modify-write of the whole document; the data is small
    (settings, a handful of counters, the item list).
    """

    DEFAULT_PATH = Path.home() / ".srs" / "store.json"

    def __init__(self, path: Path | None = None):
        self.path = path or self.DEFAULT_PATH
        self.path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__()
        logger.info(f"JsonFileStore initialized at {self.path}")

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring unreadable store file {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring store file {self.path}: top level is not an object")
            return {}
        return data

    def _flush(self) -> None:
        tmp_path = self.path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, indent=2, sort_keys=True)
        tmp_path.replace(self.path)

    def get(self, key: str, default: Any = None) -> Any:
        self._data = self._read()
        return super().get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data = self._read()
        super().set(key, value)
        self._flush()

    def delete(self, key: str) -> bool:
        self._data = self._read()
        removed = super().delete(key)
        if removed:
            self._flush()
        return removed

    def keys(self, prefix: str = "") -> list[str]:
        self._data = self._read()
        return super().keys(prefix)


class SqlStore(KeyValueStore):
    """
    Store backed by one ``kv_store`` table through SQLAlchemy.

    Values are kept as JSON text so every backend sees the same layout.
    """

    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.engine = create_engine(database_url, echo=echo, pool_pre_ping=True)
        self._metadata = MetaData()
        self._table = Table(
            "kv_store",
            self._metadata,
            Column("key", String(255), primary_key=True),
            Column("value", Text, nullable=False),
        )
        self._metadata.create_all(self.engine)
        logger.info(f"SqlStore initialized at {self.engine.url.render_as_string(hide_password=True)}")

    def get(self, key: str, default: Any = None) -> Any:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(self._table.c.value).where(self._table.c.key == key)
            ).first()

        if row is None:
            return default

        try:
            return json.loads(row.value)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring unreadable value for {key!r}: {e}")
            return default

    def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value)
        with self.engine.begin() as conn:
            result = conn.execute(
                update(self._table).where(self._table.c.key == key).values(value=payload)
            )
            if result.rowcount == 0:
                conn.execute(self._table.insert().values(key=key, value=payload))

    def delete(self, key: str) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(delete(self._table).where(self._table.c.key == key))
        return result.rowcount > 0

    def keys(self, prefix: str = "") -> list[str]:
        stmt = select(self._table.c.key).order_by(self._table.c.key)
        if prefix:
            stmt = stmt.where(self._table.c.key.startswith(prefix, autoescape=True))
        with self.engine.connect() as conn:
            return [row.key for row in conn.execute(stmt)]


def open_store(settings: Settings) -> KeyValueStore:
    """Build the store selected by the process settings."""
    backend = settings.store_backend
    if backend == "memory":
        return MemoryStore()
    if backend == "sql":
        return SqlStore(settings.resolved_database_url, echo=settings.log_level == "DEBUG")
    return JsonFileStore(settings.data_dir / "store.json")
