"""
System endpoints — liveness of the backing stores and a quick overview.
"""

from __future__ import annotations

import logging

import redis.asyncio as aioredis
from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from doorlock.api.v1.deps import (get_calendar_policy, get_current_active_user,
                                  get_db)
from doorlock.core.config import settings
from doorlock.models.access_log import AccessLog
from doorlock.models.user import User
from doorlock.schemas.common import HealthResponse, StatusResponse
from doorlock.services.calendar import CalendarPolicy
from doorlock.services.dashboard import today_window

router = APIRouter(tags=["system"])
logger = logging.getLogger(__name__)


@router.get("/health", response_model=HealthResponse)
async def health(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """Public health check — DB and Redis connectivity."""
    result = HealthResponse(db=False, redis=False)

    try:
        await db.execute(select(1))
        result.db = True
    except Exception as e:
        logger.error("Health check DB failure: %s", e)

    try:
        r = aioredis.from_url(settings.REDIS_URL)
        await r.ping()
        await r.aclose()
        result.redis = True
    except Exception as e:
        logger.error("Health check Redis failure: %s", e)

    return result


@router.get("/status", response_model=StatusResponse)
async def system_status(
    db: AsyncSession = Depends(get_db),
    policy: CalendarPolicy = Depends(get_calendar_policy),
    _user: User = Depends(get_current_active_user),
) -> StatusResponse:
    """Return user counts and today's door traffic."""
    _, start, end = today_window(policy)

    total_users = await db.scalar(select(func.count(User.id)))
    active_users = await db.scalar(
        select(func.count(User.id)).where(User.status == "active")
    )
    today_access = await db.scalar(
        select(func.count(AccessLog.id)).where(
            AccessLog.timestamp >= start,
            AccessLog.timestamp < end,
        )
    )

    return StatusResponse(
        total_users=total_users or 0,
        active_users=active_users or 0,
        today_access_count=today_access or 0,
        status="operational",
    )
