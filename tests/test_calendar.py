"""
Calendar policy tests — working days, windows, offsets and holiday lookup.
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from doorlock.core.config import Settings
from doorlock.models.attendance import Holiday
from doorlock.services.calendar import (CalendarPolicy, ensure_utc,
                                        lookup_holiday, parse_utc_offset,
                                        time_to_minutes)


def _utc(y, m, d, hh, mm):
    return datetime(y, m, d, hh, mm, tzinfo=timezone.utc)


def test_time_to_minutes():
    assert time_to_minutes("00:00") == 0
    assert time_to_minutes("09:00") == 540
    assert time_to_minutes("16:50") == 1010
    assert time_to_minutes("23:59") == 1439


def test_parse_utc_offset_forms():
    assert parse_utc_offset("+05:00").utcoffset(None) == timedelta(hours=5)
    assert parse_utc_offset("-0330").utcoffset(None) == -timedelta(hours=3, minutes=30)
    assert parse_utc_offset("+02").utcoffset(None) == timedelta(hours=2)


def test_ensure_utc_handles_naive_and_offset_values():
    naive = datetime(2025, 3, 3, 9, 0)
    assert ensure_utc(naive) == _utc(2025, 3, 3, 9, 0)

    karachi = timezone(timedelta(hours=5))
    aware = datetime(2025, 3, 3, 14, 0, tzinfo=karachi)
    converted = ensure_utc(aware)
    assert converted.tzinfo == timezone.utc
    assert converted.hour == 9


def test_working_days_default_monday_to_friday(policy: CalendarPolicy):
    assert policy.is_working_day(date(2025, 3, 3))  # Monday
    assert policy.is_working_day(date(2025, 3, 7))  # Friday
    assert not policy.is_working_day(date(2025, 3, 8))  # Saturday
    assert not policy.is_working_day(date(2025, 3, 9))  # Sunday


def test_working_days_sunday_is_zero():
    policy = CalendarPolicy.from_settings(Settings(WORKING_DAYS="0,1,2,3,4"))
    assert policy.is_working_day(date(2025, 3, 9))  # Sunday
    assert not policy.is_working_day(date(2025, 3, 7))  # Friday


def test_checkout_window_is_inclusive(policy: CalendarPolicy):
    assert policy.is_within_checkout_window(_utc(2025, 3, 3, 16, 50))
    assert policy.is_within_checkout_window(_utc(2025, 3, 3, 17, 0))
    assert policy.is_within_checkout_window(_utc(2025, 3, 3, 17, 5))
    assert not policy.is_within_checkout_window(_utc(2025, 3, 3, 16, 49))
    assert not policy.is_within_checkout_window(_utc(2025, 3, 3, 17, 6))
    assert not policy.is_within_checkout_window(_utc(2025, 3, 3, 12, 30))


def test_local_day_follows_office_offset():
    policy = CalendarPolicy.from_settings(Settings(TIMEZONE_OFFSET="+05:00"))
    late_utc = _utc(2025, 3, 3, 21, 0)  # 02:00 next day in the office
    assert policy.local_day(late_utc) == date(2025, 3, 4)
    assert policy.minutes_since_midnight(late_utc) == 120


@pytest.mark.parametrize(
    "overrides",
    [
        {"OFFICE_OPENING_TIME": "9am"},
        {"CHECKOUT_WINDOW_END": "25:00"},
        {"WORKING_DAYS": "1,2,9"},
        {"WORKING_DAYS": ""},
        {"TIMEZONE_OFFSET": "UTC"},
        {"LATE_THRESHOLD_MINUTES": -5},
        {"CHECKOUT_WINDOW_START": "17:10", "CHECKOUT_WINDOW_END": "16:50"},
    ],
)
def test_malformed_calendar_config_is_rejected(overrides):
    with pytest.raises(ValidationError):
        Settings(**overrides)


# ── Holiday lookup ──────────────────────────────────────────────────
async def test_exact_date_holiday(db_session):
    db_session.add(Holiday(name="Founders Day", date=date(2025, 3, 5), is_recurring=False))
    await db_session.commit()

    match = await lookup_holiday(db_session, date(2025, 3, 5))
    assert match.is_holiday
    assert match.holiday_name == "Founders Day"

    miss = await lookup_holiday(db_session, date(2026, 3, 5))
    assert not miss.is_holiday
    assert miss.holiday_name is None


async def test_recurring_holiday_matches_across_years(db_session):
    db_session.add(Holiday(name="Christmas", date=date(2024, 12, 25), is_recurring=True))
    await db_session.commit()

    match = await lookup_holiday(db_session, date(2025, 12, 25))
    assert match.is_holiday
    assert match.holiday_name == "Christmas"

    assert not (await lookup_holiday(db_session, date(2025, 12, 26))).is_holiday


def test_count_working_days_matches_a_day_by_day_walk(policy: CalendarPolicy):
    start = date(2025, 3, 1)
    for length in range(0, 22):
        end = start + timedelta(days=length - 1)
        walked = sum(
            policy.is_working_day(start + timedelta(days=i)) for i in range(length)
        )
        assert policy.count_working_days(start, end) == walked


def test_count_working_days_at_calendar_edges(policy: CalendarPolicy):
    assert policy.count_working_days(date.max - timedelta(days=6), date.max) == 5
    assert policy.count_working_days(date.min, date.min) == 1  # Monday
    assert policy.count_working_days(date(2025, 3, 9), date(2025, 3, 8)) == 0

    weekend_shop = CalendarPolicy(
        opening_minutes=600,
        closing_minutes=1080,
        late_threshold_minutes=10,
        checkout_window_start=1070,
        checkout_window_end=1090,
        working_days=frozenset({0, 6}),
    )
    # 2025-03-03 (Mon) .. 2025-03-16 (Sun): two whole weeks
    assert weekend_shop.count_working_days(date(2025, 3, 3), date(2025, 3, 16)) == 4
