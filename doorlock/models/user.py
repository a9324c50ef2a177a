"""
User model — badge holders, operators and administrators.

A single table backs both door access (status + allowed methods) and
dashboard sign-in (email + password).  Badge holders enrolled by an
admin may have no password at all.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Integer, String
from sqlalchemy.orm import relationship

from doorlock.db.base import Base

ACCESS_METHODS = ("rfid", "fingerprint", "keypad")


class User(Base):
    __tablename__ = "users"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    user_id: str = Column(String(32), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    email: str = Column(String(320), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    hashed_password: str | None = Column(String(128), nullable=True)  # type: ignore[assignment]
    first_name: str = Column(String(100), nullable=False)  # type: ignore[assignment]
    last_name: str = Column(String(100), nullable=False)  # type: ignore[assignment]
    status: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default="active",
        server_default="active",
    )  # active | suspended | terminated
    role: str = Column(  # type: ignore[assignment]
        String(20),
        nullable=False,
        default="employee",
        server_default="employee",
    )  # admin | manager | employee | visitor
    department: str | None = Column(String(100), nullable=True)  # type: ignore[assignment]
    access_level: int = Column(Integer, nullable=False, default=1)  # type: ignore[assignment]
    allowed_access_methods: list[str] = Column(JSON, nullable=False, default=list)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    rfid_tags = relationship(
        "RfidTag",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    fingerprint_ids = relationship(
        "FingerprintCredential",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    @property
    def is_active(self) -> bool:
        return self.status == "active"
