"""Tests for next-occurrence calculation."""
from datetime import datetime

import pytest

from accountability.core.errors import ValidationError
from accountability.reminders.recurrence import Recurrence, next_occurrence, parse_recurrence


class TestNextOccurrence:
    def test_daily_adds_one_day(self):
        assert next_occurrence(datetime(2025, 3, 10, 9, 0), Recurrence.DAILY) == datetime(2025, 3, 11, 9, 0)

    def test_weekly_adds_seven_days(self):
        assert next_occurrence(datetime(2025, 3, 10, 9, 0), "weekly") == datetime(2025, 3, 17, 9, 0)

    def test_monthly_keeps_day_of_month(self):
        assert next_occurrence(datetime(2025, 3, 10, 9, 0), Recurrence.MONTHLY) == datetime(2025, 4, 10, 9, 0)

    def test_monthly_clamps_to_end_of_short_month(self):
        assert next_occurrence(datetime(2025, 1, 31, 9, 0), Recurrence.MONTHLY) == datetime(2025, 2, 28, 9, 0)
        assert next_occurrence(datetime(2024, 1, 31, 9, 0), Recurrence.MONTHLY) == datetime(2024, 2, 29, 9, 0)

    def test_monthly_crosses_year(self):
        assert next_occurrence(datetime(2025, 12, 15, 8, 30), Recurrence.MONTHLY) == datetime(2026, 1, 15, 8, 30)

    def test_none_has_no_successor(self):
        assert next_occurrence(datetime(2025, 3, 10, 9, 0), Recurrence.NONE) is None
        assert next_occurrence(datetime(2025, 3, 10, 9, 0), None) is None

    def test_stops_after_end_repeat(self):
        end = datetime(2025, 3, 16, 0, 0)
        assert next_occurrence(datetime(2025, 3, 10, 9, 0), Recurrence.WEEKLY, end) is None

    def test_occurrence_exactly_at_end_repeat_is_kept(self):
        end = datetime(2025, 3, 17, 9, 0)
        assert next_occurrence(datetime(2025, 3, 10, 9, 0), Recurrence.WEEKLY, end) == end


class TestParseRecurrence:
    def test_accepts_strings_case_insensitively(self):
        assert parse_recurrence(" Daily ") is Recurrence.DAILY

    def test_rejects_unknown_values(self):
        with pytest.raises(ValidationError):
            parse_recurrence("fortnightly")
