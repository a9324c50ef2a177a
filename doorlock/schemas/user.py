"""Pydantic schemas for user enrollment, credentials and identity."""

from __future__ import annotations

import re
from datetime import datetime
from typing import Literal

from pydantic import Field, field_validator

from doorlock.schemas.common import CamelModel

_TAG_RE = re.compile(r"^[A-Za-z0-9:_-]{2,64}$")

UserStatus = Literal["active", "suspended", "terminated"]
UserRole = Literal["admin", "manager", "employee", "visitor"]
AccessMethod = Literal["rfid", "fingerprint", "keypad"]


def _normalise_email(v: str) -> str:
    v = v.strip().lower()
    if "@" not in v:
        raise ValueError("Invalid email address")
    return v


def _clean_name(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Name must not be empty")
    if len(v) > 100:
        raise ValueError("Name must not exceed 100 characters")
    return v


def _dedupe_methods(v: list[str]) -> list[str]:
    return list(dict.fromkeys(v))


class UserCreate(CamelModel):
    email: str
    first_name: str
    last_name: str
    password: str | None = Field(default=None, min_length=8)
    role: UserRole = "employee"
    status: UserStatus = "active"
    department: str | None = None
    access_level: int = Field(default=1, ge=1, le=10)
    allowed_access_methods: list[AccessMethod] = Field(default_factory=list)

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalise_email(v)

    @field_validator("allowed_access_methods")
    @classmethod
    def _methods(cls, v: list[str]) -> list[str]:
        return _dedupe_methods(v)

    @field_validator("first_name", "last_name")
    @classmethod
    def _name(cls, v: str) -> str:
        return _clean_name(v)


class RegisterRequest(CamelModel):
    email: str
    password: str = Field(min_length=8)
    first_name: str
    last_name: str
    department: str | None = None

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalise_email(v)

    @field_validator("first_name", "last_name")
    @classmethod
    def _name(cls, v: str) -> str:
        return _clean_name(v)


class UserRead(CamelModel):
    user_id: str
    email: str
    first_name: str
    last_name: str
    status: str
    role: str
    department: str | None
    access_level: int
    allowed_access_methods: list[str]
    rfid_tags: list[str] = Field(default_factory=list)
    fingerprint_ids: list[int] = Field(default_factory=list)
    created_at: datetime | None = None

    @field_validator("rfid_tags", mode="before")
    @classmethod
    def _tags(cls, v: object) -> object:
        if isinstance(v, list):
            return [getattr(t, "tag", t) for t in v]
        return v

    @field_validator("fingerprint_ids", mode="before")
    @classmethod
    def _fingerprints(cls, v: object) -> object:
        if isinstance(v, list):
            return [getattr(f, "fingerprint_id", f) for f in v]
        return v


class UserUpdate(CamelModel):
    """Partial update; omitted fields are left untouched."""

    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    department: str | None = None
    access_level: int | None = Field(default=None, ge=1, le=10)
    allowed_access_methods: list[AccessMethod] | None = None

    @field_validator("email", "first_name", "last_name", "access_level", "allowed_access_methods")
    @classmethod
    def _not_null(cls, v: object) -> object:
        if v is None:
            raise ValueError("Field may be omitted but not null")
        return v

    @field_validator("email")
    @classmethod
    def _email(cls, v: str) -> str:
        return _normalise_email(v)

    @field_validator("allowed_access_methods")
    @classmethod
    def _methods(cls, v: list[str]) -> list[str]:
        return _dedupe_methods(v)

    @field_validator("first_name", "last_name")
    @classmethod
    def _name(cls, v: str) -> str:
        return _clean_name(v)


class UserStatusUpdate(CamelModel):
    status: UserStatus


class UserRoleUpdate(CamelModel):
    role: UserRole


class RfidTagCreate(CamelModel):
    tag: str

    @field_validator("tag")
    @classmethod
    def _tag(cls, v: str) -> str:
        v = v.strip()
        if not _TAG_RE.match(v):
            raise ValueError("RFID tag must be 2-64 alphanumeric chars (colons / hyphens allowed)")
        return v


class FingerprintCreate(CamelModel):
    fingerprint_id: int = Field(ge=1)


class TemporaryCodeCreate(CamelModel):
    expires_in_minutes: int | None = Field(default=None, ge=1, le=1440)


class TemporaryCodeRead(CamelModel):
    code: str
    user_id: str
    expires_at: datetime


class AccessHistoryItem(CamelModel):
    timestamp: datetime
    device_id: str
    access_type: str
    result: str
    message: str
