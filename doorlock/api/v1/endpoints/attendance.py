"""
Attendance records, statistics and holiday calendar.

- GET operations require any authenticated user.
- Manual attendance edits and holiday changes require admin role.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from doorlock.api.v1.deps import (get_calendar_policy, get_current_active_user,
                                  get_db, require_admin)
from doorlock.models.user import User
from doorlock.schemas.attendance import (AttendanceCreate, AttendanceRead,
                                         AttendanceStats, HolidayCreate,
                                         HolidayRead)
from doorlock.schemas.common import DeleteResponse, Envelope, Page, paginate_meta
from doorlock.services.attendance import (AttendanceEngine, create_holiday,
                                          delete_holiday, list_holidays)
from doorlock.services.calendar import CalendarPolicy

router = APIRouter(prefix="/attendance", tags=["attendance"])
logger = logging.getLogger(__name__)

StatusFilter = Literal[
    "present", "absent", "late", "early_departure", "half_day", "holiday", "weekend"
]


def _check_range(since: date | None, until: date | None) -> None:
    if since and until and since > until:
        raise HTTPException(status_code=400, detail="'from' must not be after 'to'")


# ── Attendance records ──────────────────────────────────────────────
@router.post("", response_model=Envelope[AttendanceRead], status_code=201)
async def create_or_update_attendance(
    body: AttendanceCreate,
    db: AsyncSession = Depends(get_db),
    policy: CalendarPolicy = Depends(get_calendar_policy),
    _admin: User = Depends(require_admin),
) -> Envelope[AttendanceRead]:
    """Manually create or replace the attendance record of one user-day."""
    record = await AttendanceEngine(db, policy).create_or_update_attendance(body)
    return Envelope[AttendanceRead](
        message="Attendance recorded successfully",
        data=AttendanceRead.model_validate(record),
    )


@router.get("", response_model=Page[AttendanceRead])
async def list_attendance(
    user_id: str | None = Query(default=None, alias="userId"),
    from_: date | None = Query(default=None, alias="from"),
    to: date | None = None,
    status: StatusFilter | None = None,
    department: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    policy: CalendarPolicy = Depends(get_calendar_policy),
    _user: User = Depends(get_current_active_user),
) -> Page[AttendanceRead]:
    _check_range(from_, to)
    records, total = await AttendanceEngine(db, policy).list_attendance(
        user_id=user_id,
        since=from_,
        until=to,
        status=status,
        department=department,
        page=page,
        limit=limit,
    )
    logger.info("Fetched %d attendance records (total %d)", len(records), total)
    return Page[AttendanceRead](
        message="Attendance records retrieved successfully",
        data=[AttendanceRead.model_validate(r) for r in records],
        pagination=paginate_meta(page, limit, total),
    )


@router.get("/stats", response_model=AttendanceStats)
async def attendance_stats(
    user_id: str | None = Query(default=None, alias="userId"),
    from_: date | None = Query(default=None, alias="from"),
    to: date | None = None,
    db: AsyncSession = Depends(get_db),
    policy: CalendarPolicy = Depends(get_calendar_policy),
    _user: User = Depends(get_current_active_user),
) -> AttendanceStats:
    """Per-status counts, attendance percentage and average hours for a range."""
    _check_range(from_, to)
    return await AttendanceEngine(db, policy).get_attendance_stats(user_id, from_, to)


# ── Holidays ────────────────────────────────────────────────────────
@router.post("/holidays", response_model=Envelope[HolidayRead], status_code=201)
async def add_holiday(
    body: HolidayCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[HolidayRead]:
    holiday = await create_holiday(db, body)
    return Envelope[HolidayRead](
        message="Holiday created successfully",
        data=HolidayRead.model_validate(holiday),
    )


@router.get("/holidays", response_model=Envelope[list[HolidayRead]])
async def get_holidays(
    from_: date | None = Query(default=None, alias="from"),
    to: date | None = None,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> Envelope[list[HolidayRead]]:
    _check_range(from_, to)
    holidays = await list_holidays(db, from_, to)
    return Envelope[list[HolidayRead]](
        message="Holidays retrieved successfully",
        data=[HolidayRead.model_validate(h) for h in holidays],
    )


@router.delete("/holidays/{holiday_id}", response_model=DeleteResponse)
async def remove_holiday(
    holiday_id: int,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> DeleteResponse:
    holiday = await delete_holiday(db, holiday_id)
    return DeleteResponse(success=True, message=f"Holiday '{holiday.name}' deleted")
