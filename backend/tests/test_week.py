"""Tests for ISO week lookup and week arithmetic"""
from datetime import date, datetime

import pytest

from weekboard.core.exceptions import InvalidDateError
from weekboard.services.week import (
    WeekRef, current_week, recurs_in_week, week_or_today, week_range, weeks_in_year,
)
from weekboard.models.records import Task


class TestCurrentWeek:

    def test_monday_start(self):
        assert current_week(date(2024, 3, 4)) == WeekRef(2024, 10)
        assert current_week(date(2024, 3, 10)) == WeekRef(2024, 10)
        assert current_week(date(2024, 3, 11)) == WeekRef(2024, 11)

    def test_first_week_contains_first_thursday(self):
        # Jan 1 2021 was a Friday, so it belongs to the last week of 2020
        assert current_week(date(2021, 1, 1)) == WeekRef(2020, 53)
        assert current_week(date(2021, 1, 4)) == WeekRef(2021, 1)

    def test_late_december_can_be_week_one(self):
        assert current_week(date(2024, 12, 30)) == WeekRef(2025, 1)

    def test_accepts_datetime_and_iso_strings(self):
        assert current_week(datetime(2024, 3, 6, 23, 59)) == WeekRef(2024, 10)
        assert current_week("2024-03-06") == WeekRef(2024, 10)
        assert current_week("2024-03-06T08:30:00") == WeekRef(2024, 10)

    @pytest.mark.parametrize("value", ["not a date", "2024-13-01", "", None, 42, True])
    def test_invalid_input(self, value):
        with pytest.raises(InvalidDateError):
            current_week(value)


class TestWeekRef:

    def test_rejects_week_outside_year(self):
        with pytest.raises(InvalidDateError):
            WeekRef(2024, 53)
        with pytest.raises(InvalidDateError):
            WeekRef(2024, 0)
        assert WeekRef(2020, 53).week_number == 53

    def test_weeks_in_year(self):
        assert weeks_in_year(2020) == 53
        assert weeks_in_year(2024) == 52

    def test_next_and_previous_cross_year(self):
        assert WeekRef(2024, 52).next() == WeekRef(2025, 1)
        assert WeekRef(2021, 1).previous() == WeekRef(2020, 53)

    def test_ordering_is_chronological(self):
        assert WeekRef(2023, 52) < WeekRef(2024, 1) < WeekRef(2024, 2)

    def test_range_and_label(self):
        week = WeekRef(2024, 10)
        assert week_range(week) == (date(2024, 3, 4), date(2024, 3, 10))
        assert str(week) == "2024-W10"
        assert week.weeks_until(WeekRef(2024, 12)) == 2

    def test_week_or_today_requires_both_parts(self):
        assert week_or_today(2024, 10) == WeekRef(2024, 10)
        with pytest.raises(InvalidDateError):
            week_or_today(2024, None)


class TestRecurrenceSpan:

    def _recurring(self, **fields):
        data = dict(
            id="t1", user_id="u1", category="weekly_recurring", title="Gym",
            is_recurring=True, week_number=10, week_year=2024, original_week_number=10,
        )
        data.update(fields)
        return Task(**data)

    def test_open_ended(self):
        task = self._recurring()
        assert not recurs_in_week(task, WeekRef(2024, 9))
        assert recurs_in_week(task, WeekRef(2024, 10))
        assert recurs_in_week(task, WeekRef(2025, 20))

    def test_limited_span(self):
        task = self._recurring(recurrence_weeks=3)
        assert recurs_in_week(task, WeekRef(2024, 12))
        assert not recurs_in_week(task, WeekRef(2024, 13))
