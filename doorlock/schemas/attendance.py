"""Pydantic schemas for Attendance, Holidays and statistics."""

from __future__ import annotations

from datetime import date, datetime, timezone

from pydantic import Field, field_validator, model_validator

from doorlock.schemas.common import CamelModel


# ── Attendance ──────────────────────────────────────────────────────
class AttendanceCreate(CamelModel):
    user_id: str
    date: date
    check_in: datetime | None = None
    check_out: datetime | None = None
    notes: str | None = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def _bounds(self) -> "AttendanceCreate":
        if self.check_out is not None and self.check_in is None:
            raise ValueError("check_out requires check_in")
        if self.check_in and self.check_out:
            check_in = _as_utc(self.check_in)
            check_out = _as_utc(self.check_out)
            if check_out < check_in:
                raise ValueError("check_out must not precede check_in")
        return self


def _as_utc(dt: datetime) -> datetime:
    return dt.replace(tzinfo=timezone.utc) if dt.tzinfo is None else dt


class AttendanceUser(CamelModel):
    user_id: str
    first_name: str
    last_name: str
    email: str
    department: str | None = None
    role: str


class AttendanceRead(CamelModel):
    attendance_id: str
    user_id: str
    date: date
    check_in: datetime | None
    check_out: datetime | None
    status: str
    minutes_late: int | None = None
    minutes_early: int | None = None
    total_hours: float | None = None
    is_working_day: bool
    is_holiday: bool
    holiday_name: str | None = None
    notes: str | None = None
    user: AttendanceUser | None = None


# ── Statistics ─────────────────────────────────────────────────────
class AttendanceStats(CamelModel):
    total_days: int = 0
    working_days: int = 0
    present: int = 0
    absent: int = 0
    late: int = 0
    early_departure: int = 0
    half_day: int = 0
    holidays: int = 0
    weekends: int = 0
    attendance_percentage: float = 0.0
    average_hours_per_day: float = 0.0


# ── Holidays ───────────────────────────────────────────────────────
class HolidayCreate(CamelModel):
    name: str
    date: date
    is_recurring: bool = False
    description: str | None = Field(default=None, max_length=500)

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Holiday name must not be empty")
        if len(v) > 200:
            raise ValueError("Holiday name must not exceed 200 characters")
        return v


class HolidayRead(CamelModel):
    id: int
    name: str
    date: date
    is_recurring: bool
    description: str | None = None
