"""
Door device endpoints — credential verification and the access-log ledger.

- Verification and log creation are PUBLIC: door controllers carry no
  user session.
- Reading the ledger requires any authenticated user.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from typing import Literal

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from doorlock.api.v1.deps import (get_calendar_policy, get_current_active_user,
                                  get_db, get_session_factory)
from doorlock.models.user import User
from doorlock.schemas.access import (AccessLogCreate, AccessLogCreated,
                                     AccessLogRead, VerificationResponse,
                                     VerifyFingerprintRequest,
                                     VerifyRfidRequest,
                                     VerifyTemporaryCodeRequest)
from doorlock.schemas.common import Page, paginate_meta
from doorlock.services.access import (AccessVerifier, list_access_logs,
                                      record_access_log)
from doorlock.services.calendar import CalendarPolicy
from doorlock.services.events import AccessGranted, AccessGrantedHandler

router = APIRouter(prefix="/access", tags=["access"])
logger = logging.getLogger(__name__)


def day_bounds(
    policy: CalendarPolicy, since: date | None, until: date | None
) -> tuple[datetime | None, datetime | None]:
    """Expand local calendar days into [start-of-day, end-of-day] timestamps."""
    start = datetime.combine(since, time.min, tzinfo=policy.tz) if since else None
    end = (
        datetime.combine(until + timedelta(days=1), time.min, tzinfo=policy.tz)
        - timedelta(microseconds=1)
        if until
        else None
    )
    return start, end


# ── Verification (public, called by door controllers) ─────────────
@router.post("/verify-rfid", response_model=VerificationResponse)
async def verify_rfid(
    body: VerifyRfidRequest,
    db: AsyncSession = Depends(get_db),
) -> VerificationResponse:
    """Check whether an RFID tag may open the door."""
    result = await AccessVerifier(db).verify_rfid(body.rfid_tag, body.device_id)
    return result.as_response()


@router.post("/verify-fingerprint", response_model=VerificationResponse)
async def verify_fingerprint(
    body: VerifyFingerprintRequest,
    db: AsyncSession = Depends(get_db),
) -> VerificationResponse:
    """Check whether an enrolled fingerprint slot may open the door."""
    result = await AccessVerifier(db).verify_fingerprint(body.fingerprint_id, body.device_id)
    return result.as_response()


@router.post("/verify-temporary-code", response_model=VerificationResponse)
async def verify_temporary_code(
    body: VerifyTemporaryCodeRequest,
    db: AsyncSession = Depends(get_db),
) -> VerificationResponse:
    """Check a single-use keypad code; a successful check consumes it."""
    result = await AccessVerifier(db).verify_temporary_code(body.code, body.device_id)
    return result.as_response()


# ── Access log ledger ───────────────────────────────────────────────
@router.post("/logs", response_model=AccessLogCreated, status_code=201)
async def create_access_log(
    body: AccessLogCreate,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    policy: CalendarPolicy = Depends(get_calendar_policy),
) -> AccessLogCreated:
    """Append an access attempt; successful ones feed attendance in the background."""
    log = await record_access_log(db, body)

    if log.status == "success":
        background_tasks.add_task(
            AccessGrantedHandler(session_factory, policy),
            AccessGranted(user_id=log.user_id, timestamp=log.timestamp, device_id=log.device_id),
        )

    return AccessLogCreated(log_id=log.log_id, status=log.status, timestamp=log.timestamp)


@router.get("/logs", response_model=Page[AccessLogRead])
async def get_access_logs(
    device_id: str | None = Query(default=None, alias="deviceId"),
    user_id: str | None = Query(default=None, alias="userId"),
    status: Literal["success", "failed"] | None = None,
    method: Literal["rfid", "fingerprint"] | None = None,
    from_: date | None = Query(default=None, alias="from"),
    to: date | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    policy: CalendarPolicy = Depends(get_calendar_policy),
    _user: User = Depends(get_current_active_user),
) -> Page[AccessLogRead]:
    since, until = day_bounds(policy, from_, to)
    logs, total = await list_access_logs(
        db,
        device_id=device_id,
        user_id=user_id,
        status=status,
        method=method,
        since=since,
        until=until,
        page=page,
        limit=limit,
    )
    return Page[AccessLogRead](
        message="Access logs retrieved successfully",
        data=[AccessLogRead.model_validate(log) for log in logs],
        pagination=paginate_meta(page, limit, total),
    )
