"""
Calendar policy — working days, holidays and time-of-day windows.

Everything except :func:`lookup_holiday` is pure and operates on a
:class:`CalendarPolicy` value built once from settings and injected
into the services that need it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from doorlock.core.config import Settings
from doorlock.models.attendance import Holiday

logger = logging.getLogger(__name__)


def time_to_minutes(value: str) -> int:
    """Parse ``HH:MM`` into minutes from midnight."""
    hours, minutes = value.strip().split(":")
    return int(hours) * 60 + int(minutes)


def parse_utc_offset(value: str) -> timezone:
    """Turn ``+05:00`` / ``-0330`` / ``+02`` into a fixed-offset tzinfo."""
    sign = 1 if value[0] == "+" else -1
    body = value[1:].replace(":", "")
    hours = int(body[:2])
    mins = int(body[2:4]) if len(body) > 2 else 0
    return timezone(timedelta(hours=sign * hours, minutes=sign * mins))


def ensure_utc(dt: datetime) -> datetime:
    """Normalise a potentially-naive timestamp to UTC-aware."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


@dataclass(frozen=True)
class HolidayMatch:
    is_holiday: bool
    holiday_name: str | None = None


@dataclass(frozen=True)
class CalendarPolicy:
    opening_minutes: int
    closing_minutes: int
    late_threshold_minutes: int
    checkout_window_start: int
    checkout_window_end: int
    working_days: frozenset[int]  # 0 = Sunday ... 6 = Saturday
    tz: timezone = timezone.utc

    @classmethod
    def from_settings(cls, cfg: Settings) -> "CalendarPolicy":
        return cls(
            opening_minutes=time_to_minutes(cfg.OFFICE_OPENING_TIME),
            closing_minutes=time_to_minutes(cfg.OFFICE_CLOSING_TIME),
            late_threshold_minutes=cfg.LATE_THRESHOLD_MINUTES,
            checkout_window_start=time_to_minutes(cfg.CHECKOUT_WINDOW_START),
            checkout_window_end=time_to_minutes(cfg.CHECKOUT_WINDOW_END),
            working_days=frozenset(int(d) for d in cfg.WORKING_DAYS.split(",")),
            tz=parse_utc_offset(cfg.TIMEZONE_OFFSET),
        )

    def to_local(self, ts: datetime) -> datetime:
        return ensure_utc(ts).astimezone(self.tz)

    def local_day(self, ts: datetime) -> date:
        """Calendar day the timestamp falls on in the office timezone."""
        return self.to_local(ts).date()

    def minutes_since_midnight(self, ts: datetime) -> int:
        local = self.to_local(ts)
        return local.hour * 60 + local.minute

    def is_working_day(self, day: date) -> bool:
        # isoweekday: Monday=1 ... Sunday=7, folded so Sunday=0
        return day.isoweekday() % 7 in self.working_days

    def count_working_days(self, start: date, end: date) -> int:
        """Working days in the inclusive range, counted in whole weeks plus a remainder."""
        total = (end - start).days + 1
        if total <= 0:
            return 0
        weeks, remainder = divmod(total, 7)
        first = start.isoweekday() % 7
        tail = sum(1 for i in range(remainder) if (first + i) % 7 in self.working_days)
        return weeks * len(self.working_days) + tail

    def is_within_checkout_window(self, ts: datetime) -> bool:
        minutes = self.minutes_since_midnight(ts)
        return self.checkout_window_start <= minutes <= self.checkout_window_end


async def lookup_holiday(db: AsyncSession, day: date) -> HolidayMatch:
    """Exact-date holiday first, then recurring holidays by (month, day)."""
    result = await db.execute(select(Holiday).where(Holiday.date == day).limit(1))
    holiday = result.scalar_one_or_none()
    if holiday is not None:
        return HolidayMatch(is_holiday=True, holiday_name=holiday.name)

    recurring = await db.execute(
        select(Holiday).where(Holiday.is_recurring.is_(True)).order_by(Holiday.date)
    )
    for candidate in recurring.scalars().all():
        if candidate.date.month == day.month and candidate.date.day == day.day:
            return HolidayMatch(is_holiday=True, holiday_name=candidate.name)

    return HolidayMatch(is_holiday=False)
