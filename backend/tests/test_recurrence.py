"""
Tests for next fire time calculation.
"""
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from app.models.report_schedule import ReportSchedule
from app.services.reports.recurrence import (
    compute_next_fire_time,
    is_configured,
    normalize_repeat_every,
    normalize_weekday,
    parse_time_of_day,
    repeat_interval,
    weekday_of,
)

# 2024-01-01 is a Monday
MONDAY_MORNING = datetime(2024, 1, 1, 9, 0)


def cadence(schedule_type="daily", repeat_every=1, time_of_day="14:30", weekday=None, **extra):
    return SimpleNamespace(
        schedule_type=schedule_type,
        repeat_every=repeat_every,
        time_of_day=time_of_day,
        weekday=weekday,
        **extra,
    )


class TestDaily:

    def test_before_time_of_day_fires_today(self):
        assert compute_next_fire_time(cadence(), datetime(2024, 1, 1, 10, 0)) == datetime(2024, 1, 1, 14, 30)

    def test_after_time_of_day_fires_tomorrow(self):
        assert compute_next_fire_time(cadence(), datetime(2024, 1, 1, 15, 0)) == datetime(2024, 1, 2, 14, 30)

    def test_exactly_at_time_of_day_is_already_past(self):
        assert compute_next_fire_time(cadence(), datetime(2024, 1, 1, 14, 30)) == datetime(2024, 1, 2, 14, 30)

    def test_repeat_every_applies_after_time_of_day(self):
        result = compute_next_fire_time(cadence(repeat_every=3), datetime(2024, 1, 1, 15, 0))
        assert result == datetime(2024, 1, 4, 14, 30)

    def test_repeat_every_ignored_before_time_of_day(self):
        result = compute_next_fire_time(cadence(repeat_every=3), datetime(2024, 1, 1, 10, 0))
        assert result == datetime(2024, 1, 1, 14, 30)

    def test_invalid_repeat_every_treated_as_one(self):
        result = compute_next_fire_time(cadence(repeat_every=0), datetime(2024, 1, 1, 15, 0))
        assert result == datetime(2024, 1, 2, 14, 30)


class TestWeekly:

    def test_upcoming_weekday_later_this_week(self):
        schedule = cadence("weekly", weekday=3)
        assert compute_next_fire_time(schedule, MONDAY_MORNING) == datetime(2024, 1, 3, 14, 30)

    @pytest.mark.parametrize("repeat_every", [1, 2, 4])
    def test_same_weekday_past_time_is_one_week_out(self, repeat_every):
        schedule = cadence("weekly", repeat_every=repeat_every, time_of_day="09:00", weekday=1)
        result = compute_next_fire_time(schedule, datetime(2024, 1, 1, 9, 30))
        assert result == datetime(2024, 1, 8, 9, 0)

    def test_same_weekday_before_time_fires_today(self):
        schedule = cadence("weekly", time_of_day="09:00", weekday=1)
        assert compute_next_fire_time(schedule, datetime(2024, 1, 1, 8, 0)) == datetime(2024, 1, 1, 9, 0)

    def test_sunday_is_weekday_zero(self):
        schedule = cadence("weekly", weekday=0)
        saturday = datetime(2024, 1, 6, 20, 0)
        assert compute_next_fire_time(schedule, saturday) == datetime(2024, 1, 7, 14, 30)

    def test_weekday_earlier_in_week_wraps_to_next_week(self):
        schedule = cadence("weekly", weekday=1)
        wednesday = datetime(2024, 1, 3, 9, 0)
        assert compute_next_fire_time(schedule, wednesday) == datetime(2024, 1, 8, 14, 30)

    def test_without_weekday_behaves_like_interval(self):
        schedule = cadence("weekly", repeat_every=2)
        assert compute_next_fire_time(schedule, datetime(2024, 1, 1, 15, 0)) == datetime(2024, 1, 15, 14, 30)
        assert compute_next_fire_time(schedule, datetime(2024, 1, 1, 10, 0)) == datetime(2024, 1, 1, 14, 30)

    def test_out_of_range_weekday_ignored(self):
        schedule = cadence("weekly", weekday=9)
        assert compute_next_fire_time(schedule, datetime(2024, 1, 1, 15, 0)) == datetime(2024, 1, 8, 14, 30)


class TestMonthly:

    def test_thirty_days_per_month(self):
        schedule = cadence("monthly")
        assert compute_next_fire_time(schedule, datetime(2024, 1, 31, 15, 0)) == datetime(2024, 3, 1, 14, 30)

    def test_repeat_every_multiplies_thirty_days(self):
        schedule = cadence("monthly", repeat_every=2)
        assert compute_next_fire_time(schedule, datetime(2024, 1, 1, 15, 0)) == datetime(2024, 3, 1, 14, 30)

    def test_before_time_of_day_fires_today(self):
        schedule = cadence("monthly", repeat_every=2)
        assert compute_next_fire_time(schedule, datetime(2024, 1, 1, 10, 0)) == datetime(2024, 1, 1, 14, 30)


class TestUnconfigured:

    @pytest.mark.parametrize("schedule", [
        cadence(schedule_type=None),
        cadence(schedule_type=""),
        cadence(schedule_type="hourly"),
        cadence(time_of_day=None),
        cadence(time_of_day=""),
        cadence(time_of_day="25:00"),
        cadence(time_of_day="noon"),
    ])
    def test_no_fire_time(self, schedule):
        assert compute_next_fire_time(schedule, MONDAY_MORNING) is None
        assert not is_configured(schedule)


def test_result_depends_only_on_cadence_and_now():
    now = datetime(2024, 1, 1, 15, 0)
    first = cadence(last_run_at=None, is_active=True)
    second = cadence(last_run_at=datetime(2023, 6, 1, 8, 0), is_active=False)

    assert compute_next_fire_time(first, now) == compute_next_fire_time(first, now)
    assert compute_next_fire_time(first, now) == compute_next_fire_time(second, now)


def test_result_is_always_in_the_future():
    now = datetime(2024, 1, 1, 0, 0)
    for step in range(0, 48 * 60, 17):
        moment = now + timedelta(minutes=step)
        for schedule_type in ("daily", "weekly", "monthly"):
            assert compute_next_fire_time(cadence(schedule_type), moment) > moment


def test_works_with_model_instances():
    schedule = ReportSchedule(schedule_type="daily", repeat_every=2, time_of_day="06:15")
    assert compute_next_fire_time(schedule, datetime(2024, 1, 1, 7, 0)) == datetime(2024, 1, 3, 6, 15)


@pytest.mark.parametrize("value,expected", [
    (None, 1), ("abc", 1), (0, 1), (-3, 1), ("4", 4), (2, 2),
])
def test_normalize_repeat_every(value, expected):
    assert normalize_repeat_every(value) == expected


def test_parse_time_of_day():
    assert parse_time_of_day("14:30") == (14, 30)
    assert parse_time_of_day("9:05") == (9, 5)
    assert parse_time_of_day(" 23:59 ") == (23, 59)
    assert parse_time_of_day("24:00") is None
    assert parse_time_of_day("12:60") is None
    assert parse_time_of_day(None) is None


def test_normalize_weekday():
    assert normalize_weekday(0) == 0
    assert normalize_weekday("6") == 6
    assert normalize_weekday(7) is None
    assert normalize_weekday("") is None
    assert normalize_weekday(None) is None


def test_weekday_of_counts_from_sunday():
    assert weekday_of(datetime(2024, 1, 7)) == 0
    assert weekday_of(datetime(2024, 1, 1)) == 1
    assert weekday_of(datetime(2024, 1, 6)) == 6


def test_repeat_interval():
    assert repeat_interval("daily", 2) == timedelta(days=2)
    assert repeat_interval("weekly", 3) == timedelta(days=21)
    assert repeat_interval("monthly", 2) == timedelta(days=60)
    assert repeat_interval("yearly", 1) is None
