"""
Unit tests for key-value store backings.

Each backing must behave the same for get/set/delete/keys.
"""

import json

import pytest

from config import Settings
from src.srs.store import JsonFileStore, MemoryStore, SqlStore, open_store


@pytest.fixture(params=["memory", "json", "sql"])
def any_store(request, tmp_path):
    if request.param == "memory":
        return MemoryStore()
    if request.param == "json":
        return JsonFileStore(tmp_path / "store.json")
    return SqlStore(f"sqlite:///{tmp_path / 'srs.db'}")


class TestStoreContract:
    def test_missing_key_returns_default(self, any_store):
        assert any_store.get("nope") is None
        assert any_store.get("nope", 7) == 7

    def test_set_and_get_json_values(self, any_store):
        any_store.set("limit", 10)
        any_store.set("steps", [1, 6])
        any_store.set("counts", {"reviews": 2, "newCards": 1})
        any_store.set("flag", False)

        assert any_store.get("limit") == 10
        assert any_store.get("steps") == [1, 6]
        assert any_store.get("counts") == {"reviews": 2, "newCards": 1}
        assert any_store.get("flag") is False

    def test_overwrite(self, any_store):
        any_store.set("key", "a")
        any_store.set("key", "b")
        assert any_store.get("key") == "b"

    def test_delete(self, any_store):
        any_store.set("key", 1)
        assert any_store.delete("key") is True
        assert any_store.delete("key") is False
        assert any_store.get("key") is None

    def test_keys_with_prefix(self, any_store):
        any_store.set("srs_daily_counts:2024-03-10", {})
        any_store.set("srs_daily_counts:2024-03-09", {})
        any_store.set("srs_items", [])
        assert any_store.keys("srs_daily_counts:") == [
            "srs_daily_counts:2024-03-09",
            "srs_daily_counts:2024-03-10",
        ]
        assert len(any_store.keys()) == 3

    def test_values_are_copies(self, any_store):
        value = {"reviews": 1}
        any_store.set("counts", value)
        value["reviews"] = 99
        fetched = any_store.get("counts")
        fetched["reviews"] = 42
        assert any_store.get("counts") == {"reviews": 1}


class TestJsonFileStore:
    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "store.json"
        JsonFileStore(path).set("srs_new_cards_limit", 15)
        assert JsonFileStore(path).get("srs_new_cards_limit") == 15

    def test_two_stores_on_one_path_keep_each_others_writes(self, tmp_path):
        path = tmp_path / "store.json"
        first = JsonFileStore(path)
        second = JsonFileStore(path)

        first.set("srs_daily_counts:2024-03-10", {"reviews": 3, "newCards": 1})
        second.set("srs_items", [])

        assert second.get("srs_daily_counts:2024-03-10") == {"reviews": 3, "newCards": 1}
        assert JsonFileStore(path).keys() == ["srs_daily_counts:2024-03-10", "srs_items"]

        assert first.delete("srs_items") is True
        assert second.keys() == ["srs_daily_counts:2024-03-10"]

    def test_corrupt_file_starts_empty(self, tmp_path):
        path = tmp_path / "store.json"
        path.write_text("{not json", encoding="utf-8")
        store = JsonFileStore(path)
        assert store.keys() == []
        store.set("key", 1)
        assert json.loads(path.read_text(encoding="utf-8")) == {"key": 1}


class TestSqlStore:
    def test_persists_across_instances(self, tmp_path):
        url = f"sqlite:///{tmp_path / 'srs.db'}"
        SqlStore(url).set("srs_auto_mature", False)
        assert SqlStore(url).get("srs_auto_mature") is False

    def test_prefix_with_wildcard_characters(self, tmp_path):
        store = SqlStore(f"sqlite:///{tmp_path / 'srs.db'}")
        store.set("a_b", 1)
        store.set("axb", 2)
        assert store.keys("a_") == ["a_b"]


class TestOpenStore:
    def test_memory_backend(self):
        assert isinstance(open_store(Settings(store_backend="memory")), MemoryStore)

    def test_json_backend(self, tmp_path):
        store = open_store(Settings(store_backend="json", data_dir=tmp_path))
        assert isinstance(store, JsonFileStore)
        assert store.path == tmp_path / "store.json"

    def test_sql_backend_defaults_to_sqlite_in_data_dir(self, tmp_path):
        store = open_store(Settings(store_backend="sql", data_dir=tmp_path))
        assert isinstance(store, SqlStore)
        store.set("key", 1)
        assert (tmp_path / "srs.db").exists()
