"""Unit tests for canonical-timezone date handling"""
from datetime import date, datetime, timezone, timedelta
from unittest.mock import patch

from reading_journey.utils.datetime_helpers import (
    now_utc,
    previous_day,
    to_utc,
    today_canonical,
)


def test_now_utc_is_aware():
    now = now_utc()
    assert now.tzinfo is not None
    assert now.utcoffset() == timedelta(0)


def test_today_in_utc_by_default():
    late_evening = datetime(2024, 3, 15, 23, 30, tzinfo=timezone.utc)
    assert today_canonical(late_evening) == date(2024, 3, 15)


def test_today_follows_canonical_timezone():
    late_evening = datetime(2024, 3, 15, 23, 30, tzinfo=timezone.utc)
    with patch("reading_journey.utils.datetime_helpers.GAMIFICATION_TIMEZONE", "Asia/Tokyo"):
        assert today_canonical(late_evening) == date(2024, 3, 16)


def test_caller_offset_does_not_change_the_day():
    """The same instant is the same streak day whatever offset it was reported in"""
    instant = datetime(2024, 3, 15, 23, 30, tzinfo=timezone.utc)
    in_new_york = instant.astimezone(timezone(timedelta(hours=-4)))

    assert today_canonical(in_new_york) == today_canonical(instant)


def test_naive_now_is_treated_as_utc():
    assert today_canonical(datetime(2024, 3, 15, 23, 30)) == date(2024, 3, 15)


def test_to_utc_converts_aware_values():
    berlin_noon = datetime(2024, 7, 1, 12, 0, tzinfo=timezone(timedelta(hours=2)))
    assert to_utc(berlin_noon) == datetime(2024, 7, 1, 10, 0, tzinfo=timezone.utc)


def test_previous_day_crosses_leap_day():
    assert previous_day(date(2024, 3, 1)) == date(2024, 2, 29)
