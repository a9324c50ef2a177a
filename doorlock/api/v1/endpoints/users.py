"""
User endpoints — enrollment, account state and door credentials.

- Reads require any authenticated user.
- Every mutation requires admin role.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from doorlock.api.v1.deps import (get_calendar_policy, get_current_active_user,
                                  get_db, require_admin)
from doorlock.api.v1.endpoints.access import day_bounds
from doorlock.models.user import User
from doorlock.schemas.common import Envelope, Page, paginate_meta
from doorlock.schemas.user import (AccessHistoryItem, FingerprintCreate,
                                   RfidTagCreate, TemporaryCodeCreate,
                                   TemporaryCodeRead, UserCreate, UserRead,
                                   UserRole, UserRoleUpdate, UserStatus,
                                   UserStatusUpdate, UserUpdate)
from doorlock.services import users as user_service
from doorlock.services.calendar import CalendarPolicy

router = APIRouter(prefix="/users", tags=["users"])
logger = logging.getLogger(__name__)


@router.get("", response_model=Page[UserRead])
async def list_users(
    status: UserStatus | None = None,
    role: UserRole | None = None,
    department: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> Page[UserRead]:
    users, total = await user_service.list_users(
        db, status=status, role=role, department=department, page=page, limit=limit
    )
    return Page[UserRead](
        message="Users retrieved successfully",
        data=[UserRead.model_validate(u) for u in users],
        pagination=paginate_meta(page, limit, total),
    )


@router.post("", response_model=Envelope[UserRead], status_code=201)
async def enroll_user(
    body: UserCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[UserRead]:
    """Enroll a badge holder or operator (admin only)."""
    user = await user_service.enroll_user(db, body)
    return Envelope[UserRead](
        message="User created successfully", data=UserRead.model_validate(user)
    )


@router.get("/{user_id}", response_model=Envelope[UserRead])
async def get_user(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _user: User = Depends(get_current_active_user),
) -> Envelope[UserRead]:
    user = await user_service.get_user_or_404(db, user_id)
    return Envelope[UserRead](
        message="User retrieved successfully", data=UserRead.model_validate(user)
    )


@router.patch("/{user_id}", response_model=Envelope[UserRead])
async def update_user(
    user_id: str,
    body: UserUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[UserRead]:
    """Update profile fields, access level or allowed door methods (admin only)."""
    user = await user_service.get_user_or_404(db, user_id)
    user = await user_service.update_user(db, user, body)
    return Envelope[UserRead](
        message="User updated successfully", data=UserRead.model_validate(user)
    )


@router.patch("/{user_id}/status", response_model=Envelope[UserRead])
async def update_status(
    user_id: str,
    body: UserStatusUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[UserRead]:
    user = await user_service.get_user_or_404(db, user_id)
    user = await user_service.set_status(db, user, body.status)
    return Envelope[UserRead](
        message="User status updated successfully", data=UserRead.model_validate(user)
    )


@router.patch("/{user_id}/role", response_model=Envelope[UserRead])
async def update_role(
    user_id: str,
    body: UserRoleUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[UserRead]:
    user = await user_service.get_user_or_404(db, user_id)
    user = await user_service.set_role(db, user, body.role)
    return Envelope[UserRead](
        message="User role updated successfully", data=UserRead.model_validate(user)
    )


# ── Credentials ─────────────────────────────────────────────────────
@router.post("/{user_id}/rfid-tags", response_model=Envelope[UserRead], status_code=201)
async def add_rfid_tag(
    user_id: str,
    body: RfidTagCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[UserRead]:
    user = await user_service.get_user_or_404(db, user_id)
    user = await user_service.add_rfid_tag(db, user, body.tag)
    return Envelope[UserRead](
        message="RFID tag added successfully", data=UserRead.model_validate(user)
    )


@router.post("/{user_id}/fingerprints", response_model=Envelope[UserRead], status_code=201)
async def add_fingerprint(
    user_id: str,
    body: FingerprintCreate,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[UserRead]:
    user = await user_service.get_user_or_404(db, user_id)
    user = await user_service.add_fingerprint(db, user, body.fingerprint_id)
    return Envelope[UserRead](
        message="Fingerprint registered successfully", data=UserRead.model_validate(user)
    )


@router.post(
    "/{user_id}/temporary-code",
    response_model=Envelope[TemporaryCodeRead],
    status_code=201,
)
async def issue_temporary_code(
    user_id: str,
    body: TemporaryCodeCreate | None = None,
    db: AsyncSession = Depends(get_db),
    _admin: User = Depends(require_admin),
) -> Envelope[TemporaryCodeRead]:
    """Issue a single-use 6-digit keypad code, replacing any unused one."""
    user = await user_service.get_user_or_404(db, user_id)
    minutes = body.expires_in_minutes if body else None
    record = await user_service.generate_temporary_code(db, user, minutes)
    return Envelope[TemporaryCodeRead](
        message="Temporary access code generated successfully",
        data=TemporaryCodeRead.model_validate(record),
    )


@router.get("/{user_id}/access-history", response_model=Envelope[list[AccessHistoryItem]])
async def get_access_history(
    user_id: str,
    from_: date | None = Query(default=None, alias="from"),
    to: date | None = None,
    result_type: Literal["success", "failed", "all"] = Query(default="all", alias="type"),
    db: AsyncSession = Depends(get_db),
    policy: CalendarPolicy = Depends(get_calendar_policy),
    _user: User = Depends(get_current_active_user),
) -> Envelope[list[AccessHistoryItem]]:
    user = await user_service.get_user_or_404(db, user_id)
    since, until = day_bounds(policy, from_, to)
    logs = await user_service.access_history(
        db, user.user_id, since=since, until=until, result_type=result_type
    )
    return Envelope[list[AccessHistoryItem]](
        message="Access history retrieved successfully",
        data=[
            AccessHistoryItem(
                timestamp=log.timestamp,
                device_id=log.device_id,
                access_type=log.method,
                result=log.status,
                message=log.message,
            )
            for log in logs
        ],
    )
