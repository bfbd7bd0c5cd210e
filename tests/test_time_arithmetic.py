"""Tests for clock-time arithmetic."""

import logging
from datetime import time
from decimal import Decimal

from wage_ledger.calculators.time_arithmetic import (
    format_clock_time,
    parse_clock_time,
    work_hours,
)


class TestParseClockTime:
    def test_parses_hours_and_minutes(self):
        assert parse_clock_time("09:30") == time(9, 30)

    def test_parses_seconds(self):
        assert parse_clock_time("18:05:30") == time(18, 5, 30)

    def test_passes_time_through(self):
        assert parse_clock_time(time(7, 15)) == time(7, 15)

    def test_malformed_returns_none(self):
        """Malformed values never raise."""
        for value in ("", "9", "25:00", "12:60", "ab:cd", "1:2:3:4", None, 930):
            assert parse_clock_time(value) is None

    def test_format_drops_seconds(self):
        assert format_clock_time(time(9, 5, 59)) == "09:05"
        assert format_clock_time(None) is None


class TestWorkHours:
    """Hours between check-in and check-out."""

    def test_regular_shift(self):
        assert work_hours("09:00", "18:00") == Decimal("9.00")

    def test_partial_hours(self):
        assert work_hours("09:00", "13:30") == Decimal("4.50")

    def test_overnight_shift_wraps(self):
        """22:00 → 06:00 is an eight-hour night shift, not negative."""
        assert work_hours("22:00", "06:00") == Decimal("8.00")

    def test_same_time_is_zero(self):
        assert work_hours("09:00", "09:00") == Decimal("0")

    def test_result_stays_within_a_day(self):
        assert Decimal("0") <= work_hours("00:00", "23:59:59") <= Decimal("24")
        assert work_hours("00:01", "00:00") <= Decimal("24")

    def test_missing_time_is_zero(self):
        assert work_hours(None, "18:00") == Decimal("0")
        assert work_hours("09:00", "") == Decimal("0")

    def test_malformed_time_is_zero_and_logged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="wage_ledger.calculators.time_arithmetic"):
            assert work_hours("nine", "18:00") == Decimal("0")
        assert "Unparseable clock times" in caplog.text

    def test_accepts_time_objects(self):
        assert work_hours(time(8, 0), time(12, 15)) == Decimal("4.25")
