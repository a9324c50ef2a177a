"""
Attendance derivation engine.

Folds successful access events into one Attendance row per (user, day):

* the first event of the day is always the check-in, and check-in only
  ever moves earlier;
* check-out only comes from events inside the checkout window and only
  ever moves later, so a lunch-time badge-out never ends the day;
* the status is re-derived from the folded bounds on every event.

Also hosts the holiday CRUD and the date-range statistics.
"""

from __future__ import annotations

import asyncio
import logging
import weakref
from dataclasses import dataclass
from datetime import date, datetime, timezone

from fastapi import HTTPException
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from doorlock.models.attendance import Attendance, Holiday
from doorlock.models.user import User
from doorlock.schemas.attendance import (AttendanceCreate, AttendanceStats,
                                         HolidayCreate)
from doorlock.services.calendar import (CalendarPolicy, HolidayMatch,
                                        ensure_utc, lookup_holiday)

logger = logging.getLogger(__name__)

EARLY_DEPARTURE_MINUTES = 60
HALF_DAY_HOURS = 4
_COUNTED_STATUSES = ("present", "absent", "late", "early_departure", "half_day")


# ── Status classification ───────────────────────────────────────────
@dataclass(frozen=True)
class DayClassification:
    status: str
    minutes_late: int | None = None
    minutes_early: int | None = None
    total_hours: float | None = None


def classify_day(
    check_in: datetime | None,
    check_out: datetime | None,
    *,
    is_working_day: bool,
    is_holiday: bool,
    policy: CalendarPolicy,
) -> DayClassification:
    """Derive the day's status.

    Precedence: weekend > holiday > absent > half_day (no check-out)
    > late > early_departure > half_day (short hours) > present.
    """
    if not is_working_day:
        return DayClassification("weekend")
    if is_holiday:
        return DayClassification("holiday")
    if check_in is None:
        return DayClassification("absent")

    if check_out is not None and policy.local_day(check_in) != policy.local_day(check_out):
        # Minute arithmetic below compares wall-clock times of one day only
        raise ValueError("check-in and check-out must fall on the same calendar day")

    check_in_minutes = policy.minutes_since_midnight(check_in)
    minutes_late = None
    if check_in_minutes > policy.opening_minutes + policy.late_threshold_minutes:
        minutes_late = check_in_minutes - policy.opening_minutes

    minutes_early = None
    total_hours = None
    if check_out is not None:
        check_out_minutes = policy.minutes_since_midnight(check_out)
        if check_out_minutes < policy.closing_minutes:
            minutes_early = policy.closing_minutes - check_out_minutes
        seconds = (ensure_utc(check_out) - ensure_utc(check_in)).total_seconds()
        total_hours = round(seconds / 3600, 2)

    if check_out is None:
        status = "half_day"
    elif minutes_late is not None and minutes_late > policy.late_threshold_minutes:
        status = "late"
    elif minutes_early is not None and minutes_early > EARLY_DEPARTURE_MINUTES:
        status = "early_departure"
    elif total_hours is not None and total_hours < HALF_DAY_HOURS:
        status = "half_day"
    else:
        status = "present"

    return DayClassification(status, minutes_late, minutes_early, total_hours)


def attendance_id_for(user_id: str, day: date) -> str:
    return f"ATT-{day.isoformat()}-{user_id}"


def _apply(
    record: Attendance,
    check_in: datetime | None,
    check_out: datetime | None,
    is_working: bool,
    holiday: HolidayMatch,
    policy: CalendarPolicy,
) -> None:
    result = classify_day(
        check_in,
        check_out,
        is_working_day=is_working,
        is_holiday=holiday.is_holiday,
        policy=policy,
    )
    record.check_in = check_in
    record.check_out = check_out
    record.status = result.status
    record.minutes_late = result.minutes_late
    record.minutes_early = result.minutes_early
    record.total_hours = result.total_hours
    record.is_working_day = is_working
    record.is_holiday = holiday.is_holiday
    record.holiday_name = holiday.holiday_name


# ── Engine ──────────────────────────────────────────────────────────
class AttendanceEngine:
    # One lock per (user_id, day) for the lifetime of the folds using it
    _locks: "weakref.WeakValueDictionary[tuple[str, date], asyncio.Lock]" = (
        weakref.WeakValueDictionary()
    )

    def __init__(self, db: AsyncSession, policy: CalendarPolicy):
        self._db = db
        self._policy = policy

    @classmethod
    def _lock_for(cls, user_id: str, day: date) -> asyncio.Lock:
        key = (user_id, day)
        lock = cls._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            cls._locks[key] = lock
        return lock

    async def _load(self, user_id: str, day: date) -> Attendance | None:
        result = await self._db.execute(
            select(Attendance).where(Attendance.user_id == user_id, Attendance.date == day)
        )
        return result.scalar_one_or_none()

    async def record_attendance_from_access(
        self, user_id: str, timestamp: datetime
    ) -> Attendance | None:
        """Fold one successful access event into the user's day record."""
        ts = ensure_utc(timestamp)
        day = self._policy.local_day(ts)

        owner = await self._db.scalar(select(User.id).where(User.user_id == user_id))
        if owner is None:
            logger.warning("Skipping attendance for unknown user %s", user_id)
            return None

        is_working = self._policy.is_working_day(day)
        holiday = await lookup_holiday(self._db, day)
        in_window = self._policy.is_within_checkout_window(ts)

        async with self._lock_for(user_id, day):
            try:
                record = await self._fold(user_id, day, ts, in_window, is_working, holiday)
            except IntegrityError:
                # Another worker inserted the row first; merge into it instead
                await self._db.rollback()
                logger.info("Attendance row race for %s on %s, retrying as merge", user_id, day)
                record = await self._fold(user_id, day, ts, in_window, is_working, holiday)

        logger.info(
            "Attendance recorded for user %s on %s (%s)",
            user_id,
            day.isoformat(),
            "checkout window" if in_window else "regular access",
        )
        return record

    async def _fold(
        self,
        user_id: str,
        day: date,
        ts: datetime,
        in_window: bool,
        is_working: bool,
        holiday: HolidayMatch,
    ) -> Attendance:
        record = await self._load(user_id, day)
        if record is None:
            check_in = ts
            check_out = ts if in_window else None
            record = Attendance(
                attendance_id=attendance_id_for(user_id, day),
                user_id=user_id,
                date=day,
            )
            self._db.add(record)
        else:
            check_in = ensure_utc(record.check_in) if record.check_in else None
            check_out = ensure_utc(record.check_out) if record.check_out else None
            if check_in is None or ts < check_in:
                check_in = ts
            if in_window and (check_out is None or ts > check_out):
                check_out = ts

        _apply(record, check_in, check_out, is_working, holiday, self._policy)
        await self._db.commit()
        return record

    async def create_or_update_attendance(self, body: AttendanceCreate) -> Attendance:
        """Manual create-or-replace of one (user, day) record."""
        owner = await self._db.scalar(select(User.id).where(User.user_id == body.user_id))
        if owner is None:
            raise HTTPException(status_code=404, detail=f"User with ID {body.user_id} not found")

        for label, value in (("check_in", body.check_in), ("check_out", body.check_out)):
            if value is not None and self._policy.local_day(value) != body.date:
                raise HTTPException(
                    status_code=400,
                    detail=f"{label} must fall on {body.date.isoformat()}",
                )

        is_working = self._policy.is_working_day(body.date)
        holiday = await lookup_holiday(self._db, body.date)
        check_in = ensure_utc(body.check_in) if body.check_in else None
        check_out = ensure_utc(body.check_out) if body.check_out else None

        async with self._lock_for(body.user_id, body.date):
            record = await self._load(body.user_id, body.date)
            created = record is None
            if record is None:
                record = Attendance(
                    attendance_id=attendance_id_for(body.user_id, body.date),
                    user_id=body.user_id,
                    date=body.date,
                )
                self._db.add(record)
            _apply(record, check_in, check_out, is_working, holiday, self._policy)
            record.notes = body.notes
            await self._db.commit()

        logger.info(
            "Attendance %s for user %s on %s",
            "created" if created else "updated",
            body.user_id,
            body.date.isoformat(),
        )
        result = await self._db.execute(
            select(Attendance)
            .options(selectinload(Attendance.user))
            .where(Attendance.id == record.id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def list_attendance(
        self,
        *,
        user_id: str | None = None,
        since: date | None = None,
        until: date | None = None,
        status: str | None = None,
        department: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Attendance], int]:
        filters = []
        if user_id:
            filters.append(Attendance.user_id == user_id)
        if since:
            filters.append(Attendance.date >= since)
        if until:
            filters.append(Attendance.date <= until)
        if status:
            filters.append(Attendance.status == status)
        if department:
            filters.append(User.department == department)

        base = select(Attendance).join(User, Attendance.user_id == User.user_id).where(*filters)
        total = await self._db.scalar(select(func.count()).select_from(base.subquery()))
        result = await self._db.execute(
            base.options(selectinload(Attendance.user))
            .order_by(Attendance.date.desc(), Attendance.user_id)
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), int(total or 0)

    async def get_attendance_stats(
        self,
        user_id: str | None = None,
        since: date | None = None,
        until: date | None = None,
    ) -> AttendanceStats:
        today = self._policy.local_day(datetime.now(timezone.utc))
        start = since or today.replace(day=1)
        end = until or today

        stats = AttendanceStats()
        stats.total_days = max((end - start).days + 1, 0)
        stats.working_days = self._policy.count_working_days(start, end)
        stats.weekends = stats.total_days - stats.working_days

        stats.holidays = int(
            await self._db.scalar(
                select(func.count(Holiday.id)).where(Holiday.date >= start, Holiday.date <= end)
            )
            or 0
        )

        query = select(Attendance.status, Attendance.total_hours).where(
            Attendance.date >= start, Attendance.date <= end
        )
        if user_id:
            query = query.where(Attendance.user_id == user_id)
        rows = (await self._db.execute(query)).all()

        hours = []
        for status, total_hours in rows:
            if status in _COUNTED_STATUSES:
                setattr(stats, status, getattr(stats, status) + 1)
            if total_hours is not None:
                hours.append(total_hours)

        expected = stats.working_days - stats.holidays
        if expected > 0:
            stats.attendance_percentage = round(stats.present / expected * 100, 2)
        if hours:
            stats.average_hours_per_day = round(sum(hours) / len(hours), 2)
        return stats


# ── Holidays ────────────────────────────────────────────────────────
async def create_holiday(db: AsyncSession, body: HolidayCreate) -> Holiday:
    existing = await db.execute(select(Holiday).where(Holiday.date == body.date))
    if existing.scalar_one_or_none():
        raise HTTPException(
            status_code=400,
            detail=f"Holiday already exists for date {body.date.isoformat()}",
        )

    holiday = Holiday(**body.model_dump())
    db.add(holiday)
    await db.commit()
    await db.refresh(holiday)
    logger.info("Holiday created: %s on %s", holiday.name, holiday.date.isoformat())
    return holiday


async def list_holidays(
    db: AsyncSession, since: date | None = None, until: date | None = None
) -> list[Holiday]:
    query = select(Holiday).order_by(Holiday.date.asc())
    if since:
        query = query.where(Holiday.date >= since)
    if until:
        query = query.where(Holiday.date <= until)
    result = await db.execute(query)
    return list(result.scalars().all())


async def delete_holiday(db: AsyncSession, holiday_id: int) -> Holiday:
    result = await db.execute(select(Holiday).where(Holiday.id == holiday_id))
    holiday = result.scalar_one_or_none()
    if holiday is None:
        raise HTTPException(status_code=404, detail=f"Holiday with ID {holiday_id} not found")

    await db.delete(holiday)
    await db.commit()
    logger.info("Holiday deleted: %s", holiday.name)
    return holiday
