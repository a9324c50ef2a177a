"""
User enrollment, credential management and single-use keypad codes.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from doorlock.core.config import settings
from doorlock.core.security import get_password_hash
from doorlock.models.access_log import AccessLog
from doorlock.models.credential import (FingerprintCredential, RfidTag,
                                        TemporaryAccessCode)
from doorlock.models.user import User
from doorlock.schemas.user import UserCreate, UserUpdate
from doorlock.services.access import normalize_rfid_tag
from doorlock.services.calendar import ensure_utc

logger = logging.getLogger(__name__)

_MAX_SERIAL_ATTEMPTS = 10


async def generate_user_id(db: AsyncSession, role: str, now: datetime | None = None) -> str:
    """Build ``PREFIX-YY-MM-NN``; NN counts users of *role* created this month."""
    now = now or datetime.now(timezone.utc)
    prefix = f"{settings.USER_ID_PREFIX}-{now:%y}-{now:%m}-"
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    count = await db.scalar(
        select(func.count(User.id)).where(User.role == role, User.created_at >= month_start)
    )
    serial = int(count or 0) + 1
    for _ in range(_MAX_SERIAL_ATTEMPTS):
        candidate = f"{prefix}{serial:02d}"
        taken = await db.scalar(select(User.id).where(User.user_id == candidate))
        if taken is None:
            return candidate
        serial += 1

    # Dense month: fall back to a random four-digit serial
    return f"{prefix}{secrets.randbelow(9000) + 1000}"


async def get_user_or_404(db: AsyncSession, user_id: str) -> User:
    result = await db.execute(select(User).where(User.user_id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=404, detail=f"User with ID {user_id} not found")
    return user


async def reload_user(db: AsyncSession, user: User) -> User:
    """Re-read a user with its credential collections freshly loaded."""
    result = await db.execute(
        select(User).where(User.id == user.id).execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def enroll_user(db: AsyncSession, body: UserCreate) -> User:
    existing = await db.execute(select(User).where(User.email == body.email))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=400, detail="User with this email already exists")

    user = User(
        user_id=await generate_user_id(db, body.role),
        email=body.email,
        hashed_password=get_password_hash(body.password) if body.password else None,
        first_name=body.first_name,
        last_name=body.last_name,
        role=body.role,
        status=body.status,
        department=body.department,
        access_level=body.access_level,
        allowed_access_methods=list(body.allowed_access_methods),
    )
    db.add(user)
    await db.commit()
    logger.info("Enrolled user %s (%s)", user.user_id, user.role)
    return await reload_user(db, user)


async def add_rfid_tag(db: AsyncSession, user: User, tag: str) -> User:
    normalized = normalize_rfid_tag(tag)
    taken = await db.scalar(select(RfidTag.id).where(RfidTag.tag_normalized == normalized))
    if taken is not None:
        raise HTTPException(status_code=400, detail=f"RFID tag '{tag}' already registered")

    db.add(RfidTag(tag=tag, tag_normalized=normalized, user_id=user.user_id))
    await db.commit()
    logger.info("RFID tag added for user %s", user.user_id)
    return await reload_user(db, user)


async def add_fingerprint(db: AsyncSession, user: User, fingerprint_id: int) -> User:
    taken = await db.scalar(
        select(FingerprintCredential.id).where(
            FingerprintCredential.fingerprint_id == fingerprint_id
        )
    )
    if taken is not None:
        raise HTTPException(
            status_code=400,
            detail=f"Fingerprint ID {fingerprint_id} already registered",
        )

    db.add(FingerprintCredential(fingerprint_id=fingerprint_id, user_id=user.user_id))
    await db.commit()
    logger.info("Fingerprint %d registered for user %s", fingerprint_id, user.user_id)
    return await reload_user(db, user)


async def generate_temporary_code(
    db: AsyncSession, user: User, expires_in_minutes: int | None = None
) -> TemporaryAccessCode:
    """Replace any unused code of *user* with a fresh 6-digit one."""
    minutes = expires_in_minutes or settings.TEMPORARY_CODE_DEFAULT_MINUTES

    await db.execute(
        delete(TemporaryAccessCode).where(
            TemporaryAccessCode.user_id == user.user_id,
            TemporaryAccessCode.used.is_(False),
        )
    )

    while True:
        code = f"{secrets.randbelow(1_000_000):06d}"
        clash = await db.scalar(
            select(TemporaryAccessCode.id).where(TemporaryAccessCode.code == code)
        )
        if clash is None:
            break

    record = TemporaryAccessCode(
        code=code,
        user_id=user.user_id,
        expires_at=datetime.now(timezone.utc) + timedelta(minutes=minutes),
        used=False,
    )
    db.add(record)
    await db.commit()
    await db.refresh(record)
    logger.info("Temporary access code issued for user %s (%d min)", user.user_id, minutes)
    return record


async def access_history(
    db: AsyncSession,
    user_id: str,
    *,
    since: datetime | None = None,
    until: datetime | None = None,
    result_type: str | None = None,
) -> list[AccessLog]:
    query = select(AccessLog).where(AccessLog.user_id == user_id)
    if result_type in ("success", "failed"):
        query = query.where(AccessLog.status == result_type)
    if since:
        query = query.where(AccessLog.timestamp >= ensure_utc(since))
    if until:
        query = query.where(AccessLog.timestamp <= ensure_utc(until))
    result = await db.execute(query.order_by(AccessLog.timestamp.desc()))
    return list(result.scalars().all())


async def list_users(
    db: AsyncSession,
    *,
    status: str | None = None,
    role: str | None = None,
    department: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[User], int]:
    filters = []
    if status:
        filters.append(User.status == status)
    if role:
        filters.append(User.role == role)
    if department:
        filters.append(User.department == department)

    total = await db.scalar(select(func.count(User.id)).where(*filters))
    result = await db.execute(
        select(User)
        .where(*filters)
        .order_by(User.created_at.desc(), User.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), int(total or 0)


async def set_status(db: AsyncSession, user: User, status: str) -> User:
    previous = user.status
    user.status = status
    await db.commit()
    logger.info("User %s status changed: %s -> %s", user.user_id, previous, status)
    return await reload_user(db, user)


async def set_role(db: AsyncSession, user: User, role: str) -> User:
    previous = user.role
    user.role = role
    await db.commit()
    logger.info("User %s role changed: %s -> %s", user.user_id, previous, role)
    return await reload_user(db, user)


async def update_user(db: AsyncSession, user: User, body: UserUpdate) -> User:
    changes = body.model_dump(exclude_unset=True)
    email = changes.get("email")
    if email and email != user.email:
        taken = await db.scalar(select(User.id).where(User.email == email, User.id != user.id))
        if taken is not None:
            raise HTTPException(status_code=400, detail="User with this email already exists")

    for field, value in changes.items():
        setattr(user, field, value)
    await db.commit()
    logger.info("User %s updated: %s", user.user_id, ", ".join(sorted(changes)) or "no changes")
    return await reload_user(db, user)
