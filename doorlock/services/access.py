"""
Access verification pipeline and access-log ledger.

Each verification is a fresh, one-shot lookup:

    normalise credential -> look up owner -> code checks (used / expired)
    -> account status -> method enabled -> authorised

A denied verification is *not* an exception: it is returned as a
``VerificationResult`` with ``authorized=False`` and a human reason, as
door controllers branch on it programmatically.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from doorlock.models.access_log import AccessLog
from doorlock.models.credential import (FingerprintCredential, RfidTag,
                                        TemporaryAccessCode)
from doorlock.models.user import User
from doorlock.schemas.access import (AccessLogCreate, VerificationData,
                                     VerificationResponse, VerifiedUser)
from doorlock.services.calendar import ensure_utc

logger = logging.getLogger(__name__)

_METHOD_LABELS = {"rfid": "RFID", "fingerprint": "Fingerprint", "keypad": "Keypad"}


def normalize_rfid_tag(tag: str) -> str:
    """Upper-case and strip a leading ``0X`` so ``0xa1b2`` == ``A1B2``."""
    normalized = tag.strip().upper()
    if normalized.startswith("0X"):
        normalized = normalized[2:]
    return normalized


def _redact(value: str) -> str:
    return value[:2] + "***" if len(value) > 4 else "***"


@dataclass(frozen=True)
class VerificationResult:
    authorized: bool
    message: str
    user: VerifiedUser | None = None
    reason: str | None = None

    @classmethod
    def denied(cls, reason: str) -> "VerificationResult":
        return cls(authorized=False, message=reason, reason=reason)

    def as_response(self) -> VerificationResponse:
        return VerificationResponse(
            success=self.authorized,
            message=self.message,
            data=VerificationData(
                authorized=self.authorized,
                user=self.user,
                reason=self.reason,
            ),
        )


def _with_owner(owner):
    """Load the owning user together with both credential collections."""
    return (
        selectinload(owner).selectinload(User.rfid_tags),
        selectinload(owner).selectinload(User.fingerprint_ids),
    )


def project_user(user: User) -> VerifiedUser:
    return VerifiedUser(
        user_id=user.user_id,
        first_name=user.first_name,
        last_name=user.last_name,
        email=user.email,
        status=user.status,
        role=user.role,
        department=user.department,
        allowed_access_methods=list(user.allowed_access_methods or []),
        rfid_tags=[t.tag for t in user.rfid_tags or []],
        fingerprint_ids=[f.fingerprint_id for f in user.fingerprint_ids or []],
    )


class AccessVerifier:
    """Gate for physical entry; one instance per request session."""

    def __init__(self, db: AsyncSession):
        self._db = db

    def _check_account(self, user: User, method: str | None) -> VerificationResult | None:
        if user.status != "active":
            logger.warning(
                "Credential matched but user account is %s: %s", user.status, user.user_id
            )
            return VerificationResult.denied(f"User account is {user.status}")

        if method is not None and method not in (user.allowed_access_methods or []):
            label = _METHOD_LABELS[method]
            logger.warning(
                "%s credential matched but method not enabled for %s", label, user.user_id
            )
            return VerificationResult.denied(f"{label} access method not enabled for this user")
        return None

    async def verify_rfid(self, rfid_tag: str, device_id: str | None = None) -> VerificationResult:
        normalized = normalize_rfid_tag(rfid_tag)
        logger.info(
            "Verifying RFID tag %s%s",
            _redact(normalized),
            f" from device {device_id}" if device_id else "",
        )

        result = await self._db.execute(
            select(RfidTag)
            .options(*_with_owner(RfidTag.user))
            .where(RfidTag.tag_normalized == normalized)
        )
        record = result.scalar_one_or_none()
        if record is None:
            logger.warning("RFID tag not registered: %s", _redact(normalized))
            return VerificationResult.denied("RFID tag not registered")

        denial = self._check_account(record.user, "rfid")
        if denial is not None:
            return denial

        logger.info("RFID tag verified for user %s", record.user.user_id)
        return VerificationResult(
            authorized=True,
            message="RFID tag verified successfully",
            user=project_user(record.user),
        )

    async def verify_fingerprint(
        self, fingerprint_id: int, device_id: str | None = None
    ) -> VerificationResult:
        logger.info(
            "Verifying fingerprint %d%s",
            fingerprint_id,
            f" from device {device_id}" if device_id else "",
        )

        result = await self._db.execute(
            select(FingerprintCredential)
            .options(*_with_owner(FingerprintCredential.user))
            .where(FingerprintCredential.fingerprint_id == fingerprint_id)
        )
        record = result.scalar_one_or_none()
        if record is None:
            logger.warning("Fingerprint ID not registered: %d", fingerprint_id)
            return VerificationResult.denied("Fingerprint ID not registered")

        denial = self._check_account(record.user, "fingerprint")
        if denial is not None:
            return denial

        logger.info("Fingerprint verified for user %s", record.user.user_id)
        return VerificationResult(
            authorized=True,
            message="Fingerprint ID verified successfully",
            user=project_user(record.user),
        )

    async def verify_temporary_code(
        self, code: str, device_id: str | None = None
    ) -> VerificationResult:
        logger.info(
            "Verifying temporary access code%s", f" from device {device_id}" if device_id else ""
        )

        result = await self._db.execute(
            select(TemporaryAccessCode)
            .options(*_with_owner(TemporaryAccessCode.user))
            .where(TemporaryAccessCode.code == code)
        )
        record = result.scalar_one_or_none()
        if record is None:
            logger.warning("Temporary access code not found")
            return VerificationResult.denied("Invalid access code")

        if record.used:
            logger.warning("Temporary access code already used (user %s)", record.user_id)
            return VerificationResult.denied("Access code has already been used")

        if datetime.now(timezone.utc) > ensure_utc(record.expires_at):
            await self._db.execute(
                delete(TemporaryAccessCode).where(TemporaryAccessCode.id == record.id)
            )
            await self._db.commit()
            logger.warning("Temporary access code expired and removed (user %s)", record.user_id)
            return VerificationResult.denied("Access code has expired")

        user = record.user
        denial = self._check_account(user, None)
        if denial is not None:
            return denial

        # Consume atomically: only one concurrent verifier can delete the row
        consumed = await self._db.execute(
            delete(TemporaryAccessCode).where(
                TemporaryAccessCode.id == record.id,
                TemporaryAccessCode.used.is_(False),
            )
        )
        await self._db.commit()
        if consumed.rowcount != 1:
            logger.warning("Temporary access code consumed concurrently (user %s)", user.user_id)
            return VerificationResult.denied("Invalid access code")

        logger.info("Temporary access code verified and consumed for user %s", user.user_id)
        return VerificationResult(
            authorized=True,
            message="Temporary access code verified successfully",
            user=project_user(user),
        )


# ── Access-log ledger ───────────────────────────────────────────────
def _new_log_id() -> str:
    return f"LOG-{int(datetime.now(timezone.utc).timestamp() * 1000)}-{secrets.token_hex(3)}"


async def record_access_log(db: AsyncSession, body: AccessLogCreate) -> AccessLog:
    """Append one access attempt to the ledger and commit it."""
    logger.info(
        "Creating access log: device=%s user=%s method=%s rfid=%s fingerprint=%s status=%s",
        body.device_id,
        body.user_id,
        body.method,
        "***" if body.rfid_uid else None,
        body.fingerprint_id,
        body.status,
    )
    log = AccessLog(
        log_id=_new_log_id(),
        user_id=body.user_id,
        device_id=body.device_id,
        method=body.method,
        rfid_uid=body.rfid_uid,
        fingerprint_id=body.fingerprint_id,
        status=body.status,
        message="Access granted" if body.status == "success" else "Unauthorized",
        timestamp=ensure_utc(body.timestamp) if body.timestamp else datetime.now(timezone.utc),
    )
    db.add(log)
    await db.commit()
    logger.info("Access log created: %s (%s)", log.log_id, log.status)
    return log


async def list_access_logs(
    db: AsyncSession,
    *,
    device_id: str | None = None,
    user_id: str | None = None,
    status: str | None = None,
    method: str | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[AccessLog], int]:
    filters = []
    if device_id:
        filters.append(AccessLog.device_id == device_id)
    if user_id:
        filters.append(AccessLog.user_id == user_id)
    if status:
        filters.append(AccessLog.status == status)
    if method:
        filters.append(AccessLog.method == method)
    if since:
        filters.append(AccessLog.timestamp >= ensure_utc(since))
    if until:
        filters.append(AccessLog.timestamp <= ensure_utc(until))

    total = await db.scalar(select(func.count(AccessLog.id)).where(*filters))
    result = await db.execute(
        select(AccessLog)
        .where(*filters)
        .order_by(AccessLog.timestamp.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), int(total or 0)
