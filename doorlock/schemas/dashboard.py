"""Pydantic schemas for the admin dashboard."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import Field

from doorlock.schemas.attendance import AttendanceRead
from doorlock.schemas.common import CamelModel


class DashboardSummary(CamelModel):
    total_users: int = 0
    active_users: int = 0
    suspended_users: int = 0
    access_attempts_today: int = 0
    successful_attempts: int = 0
    failed_attempts: int = 0


class UserStatusCounts(CamelModel):
    active: int = 0
    suspended: int = 0
    terminated: int = 0


class TodayAttendanceCounts(CamelModel):
    clocked_in: int = 0
    present: int = 0
    late: int = 0
    absent: int = 0
    half_day: int = 0
    early_departure: int = 0


class DashboardStats(CamelModel):
    total_users: int = 0
    total_admins: int = 0
    active_admins: int = 0
    user_status: UserStatusCounts = Field(default_factory=UserStatusCounts)
    roles: dict[str, int] = Field(default_factory=dict)
    today: TodayAttendanceCounts = Field(default_factory=TodayAttendanceCounts)


class RecentUser(CamelModel):
    user_id: str
    name: str
    email: str
    role: str
    department: str | None = None
    status: str
    created_at: datetime | None = None


class RecentAccess(CamelModel):
    log_id: str
    timestamp: datetime
    device_id: str
    method: str
    status: str
    user_id: str | None = None
    name: str | None = None  # None when the id matches no enrolled user


class AdminDashboard(CamelModel):
    date: date
    stats: DashboardStats
    recent_users: list[RecentUser]
    today_attendance: list[AttendanceRead]
    department_breakdown: dict[str, int]
    recent_access_logs: list[RecentAccess]
