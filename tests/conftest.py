"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import date
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.srs.deck import Item  # noqa: E402
from src.srs.quota import QuotaTracker  # noqa: E402
from src.srs.store import MemoryStore  # noqa: E402

# Every test runs on the same calendar day
TODAY = date(2024, 3, 10)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def today():
    return TODAY


@pytest.fixture
def clock():
    """Clock pinned to TODAY."""
    return lambda: TODAY


@pytest.fixture
def store():
    """Fresh in-memory store per test."""
    return MemoryStore()


@pytest.fixture
def quota(store, clock):
    return QuotaTracker(store, clock=clock)


@pytest.fixture
def make_item():
    """Factory for items; defaults to a new item due today."""

    def _make(item_id="item-1", **overrides):
        fields = {
            "id": item_id,
            "next_review_date": TODAY,
            "front": f"front {item_id}",
            "back": f"back {item_id}",
        }
        fields.update(overrides)
        return Item(**fields)

    return _make
