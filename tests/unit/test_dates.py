"""
Unit tests for calendar-day helpers.

Tests:
- add_days across month, year and leap-day boundaries
- Signed days_between
- Date parsing without timezone shifts
"""

from datetime import date, datetime

import pytest

from src.srs.dates import add_days, days_between, is_on_or_before, parse_date, to_iso


class TestAddDays:
    @pytest.mark.parametrize(
        "start, n, expected",
        [
            (date(2024, 1, 31), 1, date(2024, 2, 1)),
            (date(2023, 12, 31), 1, date(2024, 1, 1)),
            (date(2024, 2, 28), 1, date(2024, 2, 29)),
            (date(2023, 2, 28), 1, date(2023, 3, 1)),
            (date(2024, 3, 1), -1, date(2024, 2, 29)),
            (date(2024, 3, 10), 0, date(2024, 3, 10)),
        ],
    )
    def test_calendar_rollovers(self, start, n, expected):
        assert add_days(start, n) == expected

    @pytest.mark.parametrize("n", [-400, -31, -1, 1, 15, 60, 365, 1000])
    def test_round_trip(self, n):
        """Adding then subtracting the same count returns the original day."""
        for start in (date(2024, 2, 29), date(2023, 12, 31), date(2000, 1, 1)):
            assert add_days(add_days(start, n), -n) == start


class TestDaysBetween:
    def test_sign_carries_direction(self):
        assert days_between(date(2024, 3, 10), date(2024, 3, 15)) == 5
        assert days_between(date(2024, 3, 15), date(2024, 3, 10)) == -5

    def test_antisymmetry(self):
        pairs = [
            (date(2024, 2, 28), date(2024, 3, 1)),
            (date(2023, 12, 31), date(2025, 1, 1)),
            (date(2024, 3, 10), date(2024, 3, 10)),
        ]
        for a, b in pairs:
            assert days_between(a, b) == -days_between(b, a)

    def test_leap_year_span(self):
        assert days_between(date(2024, 2, 28), date(2024, 3, 1)) == 2
        assert days_between(date(2023, 2, 28), date(2023, 3, 1)) == 1


class TestIsOnOrBefore:
    def test_same_day_is_due(self):
        assert is_on_or_before(date(2024, 3, 10), date(2024, 3, 10))

    def test_past_is_due_future_is_not(self):
        assert is_on_or_before(date(2024, 3, 9), date(2024, 3, 10))
        assert not is_on_or_before(date(2024, 3, 11), date(2024, 3, 10))


class TestParseDate:
    def test_plain_iso_string(self):
        assert parse_date("2024-03-10") == date(2024, 3, 10)

    def test_offset_does_not_shift_day(self):
        """A late-evening timestamp with a negative offset stays on its own day."""
        assert parse_date("2024-03-10T23:30:00-08:00") == date(2024, 3, 10)
        assert parse_date("2024-03-10T00:15:00+14:00") == date(2024, 3, 10)

    def test_datetime_uses_date_part(self):
        assert parse_date(datetime(2024, 3, 10, 23, 59)) == date(2024, 3, 10)

    def test_date_passthrough(self):
        day = date(2024, 3, 10)
        assert parse_date(day) is day

    @pytest.mark.parametrize("value", ["", "yesterday", "2024-13-01", 42])
    def test_rejects_garbage(self, value):
        with pytest.raises(ValueError):
            parse_date(value)

    def test_to_iso(self):
        assert to_iso(date(2024, 3, 1)) == "2024-03-01"
