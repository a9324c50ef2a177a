"""
Dashboard endpoints — admin-only overview of users, door traffic and
today's attendance.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from doorlock.api.v1.deps import get_calendar_policy, get_db, require_admin
from doorlock.models.user import User
from doorlock.schemas.common import Envelope
from doorlock.schemas.dashboard import AdminDashboard, DashboardSummary
from doorlock.services import dashboard as dashboard_service
from doorlock.services.calendar import CalendarPolicy

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/summary", response_model=DashboardSummary)
async def summary(
    db: AsyncSession = Depends(get_db),
    policy: CalendarPolicy = Depends(get_calendar_policy),
    _admin: User = Depends(require_admin),
) -> DashboardSummary:
    """User counts and today's access attempts split by outcome."""
    return await dashboard_service.get_summary(db, policy)


@router.get("/admin", response_model=Envelope[AdminDashboard])
async def admin_dashboard(
    db: AsyncSession = Depends(get_db),
    policy: CalendarPolicy = Depends(get_calendar_policy),
    _admin: User = Depends(require_admin),
) -> Envelope[AdminDashboard]:
    data = await dashboard_service.get_admin_dashboard(db, policy)
    return Envelope[AdminDashboard](message="Dashboard data retrieved successfully", data=data)
