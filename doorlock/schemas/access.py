"""Pydantic schemas for device verification and the access-log ledger."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Literal

from pydantic import Field, field_validator

from doorlock.schemas.common import CamelModel

_TAG_RE = re.compile(r"^[A-Za-z0-9:_-]{1,64}$")
_CODE_RE = re.compile(r"^\d{6}$")


# ── Verification requests ──────────────────────────────────────────
class VerifyRfidRequest(CamelModel):
    rfid_tag: str
    device_id: str | None = None

    @field_validator("rfid_tag")
    @classmethod
    def _tag(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("RFID tag must not be empty")
        if not _TAG_RE.match(v):
            raise ValueError("RFID tag must be 1-64 alphanumeric chars (colons / hyphens allowed)")
        return v


class VerifyFingerprintRequest(CamelModel):
    fingerprint_id: int = Field(ge=1)
    device_id: str | None = None


class VerifyTemporaryCodeRequest(CamelModel):
    code: str
    device_id: str | None = None

    @field_validator("code")
    @classmethod
    def _code(cls, v: str) -> str:
        v = v.strip()
        if not _CODE_RE.match(v):
            raise ValueError("Access code must be exactly 6 digits")
        return v


# ── Verification result ────────────────────────────────────────────
class VerifiedUser(CamelModel):
    user_id: str
    first_name: str
    last_name: str
    email: str
    status: str
    role: str
    department: str | None = None
    allowed_access_methods: list[str] = Field(default_factory=list)
    rfid_tags: list[str] = Field(default_factory=list)
    fingerprint_ids: list[int] = Field(default_factory=list)


class VerificationData(CamelModel):
    authorized: bool
    user: VerifiedUser | None = None
    reason: str | None = None


class VerificationResponse(CamelModel):
    success: bool
    message: str
    data: VerificationData


# ── Access log ─────────────────────────────────────────────────────
class AccessLogCreate(CamelModel):
    device_id: str = Field(min_length=1, max_length=64)
    user_id: str = Field(min_length=1, max_length=32)
    method: Literal["rfid", "fingerprint"]
    rfid_uid: str | None = None
    fingerprint_id: int | None = Field(default=None, ge=1)
    status: Literal["success", "failed"]
    timestamp: datetime | None = None


class AccessLogCreated(CamelModel):
    log_id: str
    status: str
    timestamp: datetime


class AccessLogRead(CamelModel):
    log_id: str
    user_id: str
    device_id: str
    method: str
    status: str
    message: str
    fingerprint_id: int | None = None
    timestamp: datetime
