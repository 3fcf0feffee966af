"""
Unit tests for the srs command line.

Every test runs against a JSON store in a temporary data directory.
"""

import json

import pytest
from typer.testing import CliRunner

from config import get_settings
from src.srs.cli import app
from src.srs.deck import ItemDeck
from src.srs.quota import QuotaTracker
from src.srs.store import JsonFileStore

runner = CliRunner()


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("SRS_STORE_BACKEND", "json")
    monkeypatch.setenv("SRS_DATA_DIR", str(tmp_path))
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


@pytest.fixture
def items_file(tmp_path):
    path = tmp_path / "items.json"
    path.write_text(json.dumps({
        "items": [
            {"id": "1", "front": "hola", "back": "hello", "group": "spanish"},
            {"id": "2", "front": "gato", "back": "cat", "group": "spanish"},
            {"id": "3", "word": "Hund", "meaning": "dog", "collectionId": "german"},
        ]
    }))
    return path


@pytest.fixture
def imported(data_dir, items_file):
    result = runner.invoke(app, ["import", str(items_file)])
    assert result.exit_code == 0, result.output
    return JsonFileStore(data_dir / "store.json")


class TestImport:
    def test_import_items(self, imported):
        deck = ItemDeck.load(imported)
        assert [item.id for item in deck] == ["1", "2", "3"]
        assert deck.get("3").group == "german"

    def test_import_merges(self, imported, items_file, tmp_path):
        extra = tmp_path / "extra.json"
        extra.write_text(json.dumps([{"id": "4", "front": "perro"}]))
        result = runner.invoke(app, ["import", str(extra)])
        assert "4 total" in result.output

    def test_import_replace(self, imported, tmp_path):
        extra = tmp_path / "extra.json"
        extra.write_text(json.dumps([{"id": "4", "front": "perro"}]))
        runner.invoke(app, ["import", str(extra), "--replace"])
        assert [item.id for item in ItemDeck.load(imported)] == ["4"]

    def test_unreadable_file(self, data_dir, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{oops")
        result = runner.invoke(app, ["import", str(bad)])
        assert result.exit_code == 1


class TestDue:
    def test_next_session_summary(self, imported):
        result = runner.invoke(app, ["due"])
        assert result.exit_code == 0
        assert "3 cards (0 reviews, 3 new)" in result.output

    def test_scope(self, imported):
        result = runner.invoke(app, ["due", "--scope", "german"])
        assert "1 cards" in result.output

    def test_nothing_due(self, data_dir):
        result = runner.invoke(app, ["due"])
        assert result.exit_code == 0
        assert "Nothing is due" in result.output


class TestStudy:
    def test_normal_session_saves_progress(self, imported):
        result = runner.invoke(
            app, ["study", "--scope", "german"], input="\n3\nn\n"
        )

        assert result.exit_code == 0, result.output
        assert "Session Complete!" in result.output
        item = ItemDeck.load(imported).get("3")
        assert (item.interval, item.repetitions) == (1, 1)
        assert QuotaTracker(imported).get_counts().new_cards == 1
        assert imported.get("srs_streak")["count"] == 1

    def test_practice_session_saves_nothing(self, imported):
        result = runner.invoke(
            app, ["study", "--scope", "german", "--practice"], input="\n4\nn\n"
        )

        assert result.exit_code == 0, result.output
        assert "Practice Complete!" in result.output
        assert ItemDeck.load(imported).get("3").repetitions == 0
        assert QuotaTracker(imported).get_counts().reviews == 0
        assert imported.get("srs_streak") is None

    def test_nothing_to_study(self, data_dir):
        result = runner.invoke(app, ["study"])
        assert result.exit_code == 0
        assert "Nothing is due" in result.output

    @pytest.mark.parametrize("limit", ["0", "-5", "abc"])
    def test_bad_limit(self, imported, limit):
        result = runner.invoke(app, ["study", "--limit", limit])
        assert result.exit_code == 2
        assert result.exception is None or isinstance(result.exception, SystemExit)


class TestStats:
    def test_stats_table(self, imported):
        result = runner.invoke(app, ["stats"])
        assert result.exit_code == 0
        assert "Total items" in result.output
        assert "Streak" in result.output


class TestPreview:
    def test_preview_new_item(self, imported):
        result = runner.invoke(app, ["preview", "1"])
        assert result.exit_code == 0
        assert "<1d" in result.output

    def test_unknown_item(self, imported):
        result = runner.invoke(app, ["preview", "missing"])
        assert result.exit_code == 1


class TestSettingsCommands:
    def test_show_defaults(self, data_dir):
        result = runner.invoke(app, ["settings", "show"])
        assert result.exit_code == 0
        assert "new_cards_limit" in result.output
        assert "max_reviews_limit" in result.output

    def test_set_and_persist(self, data_dir):
        result = runner.invoke(app, ["settings", "set", "max_reviews_limit", "unlimited"])
        assert result.exit_code == 0
        store = JsonFileStore(data_dir / "store.json")
        assert store.get("srs_max_reviews_limit") == "unlimited"

    @pytest.mark.parametrize(
        "name, value",
        [("learning_steps", "0,6"), ("session_limit", "15"), ("theme", "dark")],
    )
    def test_rejects_invalid(self, data_dir, name, value):
        result = runner.invoke(app, ["settings", "set", name, value])
        assert result.exit_code == 2

    def test_malformed_stored_settings(self, data_dir):
        JsonFileStore(data_dir / "store.json").set("srs_learning_steps", [0, 0])
        result = runner.invoke(app, ["settings", "show"])
        assert result.exit_code == 2
