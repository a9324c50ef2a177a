"""
Dashboard aggregation — user counts, today's door traffic and today's
attendance, each built from one query and tallied in Python.
"""

from __future__ import annotations

import logging
from collections import Counter
from datetime import date, datetime, time, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from doorlock.models.access_log import AccessLog
from doorlock.models.attendance import Attendance
from doorlock.models.user import User
from doorlock.schemas.attendance import AttendanceRead
from doorlock.schemas.dashboard import (AdminDashboard, DashboardStats,
                                        DashboardSummary, RecentAccess,
                                        RecentUser, TodayAttendanceCounts,
                                        UserStatusCounts)
from doorlock.services.calendar import CalendarPolicy

logger = logging.getLogger(__name__)

RECENT_USERS = 5
RECENT_ACCESS_LOGS = 10


def today_window(policy: CalendarPolicy) -> tuple[date, datetime, datetime]:
    """Local calendar day plus its UTC [start, end) bounds."""
    today = policy.local_day(datetime.now(timezone.utc))
    start = datetime.combine(today, time.min, tzinfo=policy.tz).astimezone(timezone.utc)
    return today, start, start + timedelta(days=1)


async def get_summary(db: AsyncSession, policy: CalendarPolicy) -> DashboardSummary:
    _, start, end = today_window(policy)

    by_status = dict(
        (await db.execute(select(User.status, func.count(User.id)).group_by(User.status))).all()
    )
    attempts = dict(
        (
            await db.execute(
                select(AccessLog.status, func.count(AccessLog.id))
                .where(AccessLog.timestamp >= start, AccessLog.timestamp < end)
                .group_by(AccessLog.status)
            )
        ).all()
    )

    return DashboardSummary(
        total_users=sum(by_status.values()),
        active_users=by_status.get("active", 0),
        suspended_users=by_status.get("suspended", 0),
        access_attempts_today=sum(attempts.values()),
        successful_attempts=attempts.get("success", 0),
        failed_attempts=attempts.get("failed", 0),
    )


async def get_admin_dashboard(db: AsyncSession, policy: CalendarPolicy) -> AdminDashboard:
    today, _, _ = today_window(policy)
    logger.info("Building admin dashboard for %s", today.isoformat())

    users = (
        await db.execute(select(User.user_id, User.status, User.role, User.department))
    ).all()

    attendance = list(
        (
            await db.execute(
                select(Attendance)
                .options(selectinload(Attendance.user))
                .where(Attendance.date == today)
                .order_by(Attendance.check_in.asc().nulls_last(), Attendance.user_id)
            )
        ).scalars().all()
    )

    recent_users = (
        await db.execute(
            select(User).order_by(User.created_at.desc(), User.id.desc()).limit(RECENT_USERS)
        )
    ).scalars().all()

    recent_logs = (
        await db.execute(
            select(AccessLog, User.first_name, User.last_name)
            .outerjoin(User, User.user_id == AccessLog.user_id)
            .order_by(AccessLog.timestamp.desc(), AccessLog.id.desc())
            .limit(RECENT_ACCESS_LOGS)
        )
    ).all()

    statuses = Counter(u.status for u in users)
    day_statuses = Counter(a.status for a in attendance)
    attended = {a.user_id for a in attendance}

    stats = DashboardStats(
        total_users=len(users),
        total_admins=sum(1 for u in users if u.role == "admin"),
        active_admins=sum(1 for u in users if u.role == "admin" and u.status == "active"),
        user_status=UserStatusCounts(
            active=statuses["active"],
            suspended=statuses["suspended"],
            terminated=statuses["terminated"],
        ),
        roles=dict(Counter(u.role for u in users)),
        today=TodayAttendanceCounts(
            clocked_in=sum(
                1
                for a in attendance
                if a.check_in is not None and a.status in ("present", "late")
            ),
            present=day_statuses["present"],
            late=day_statuses["late"],
            # Active, non-visitor users with no record yet today
            absent=sum(
                1
                for u in users
                if u.user_id not in attended and u.status == "active" and u.role != "visitor"
            ),
            half_day=day_statuses["half_day"],
            early_departure=day_statuses["early_departure"],
        ),
    )

    return AdminDashboard(
        date=today,
        stats=stats,
        recent_users=[
            RecentUser(
                user_id=u.user_id,
                name=f"{u.first_name} {u.last_name}",
                email=u.email,
                role=u.role,
                department=u.department,
                status=u.status,
                created_at=u.created_at,
            )
            for u in recent_users
        ],
        today_attendance=[AttendanceRead.model_validate(a) for a in attendance],
        department_breakdown=dict(Counter(u.department or "Unassigned" for u in users)),
        recent_access_logs=[
            RecentAccess(
                log_id=log.log_id,
                timestamp=log.timestamp,
                device_id=log.device_id,
                method=log.method,
                status=log.status,
                user_id=log.user_id,
                name=f"{first} {last}" if first is not None else None,
            )
            for log, first, last in recent_logs
        ],
    )
