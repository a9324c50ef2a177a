"""
Credential models — RFID tags, fingerprint slots and single-use keypad codes.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from doorlock.db.base import Base


class RfidTag(Base):
    __tablename__ = "rfid_tags"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    tag: str = Column(String(64), nullable=False)  # type: ignore[assignment]  # as enrolled
    # Upper-cased, leading 0X stripped; the only column used for lookups
    tag_normalized: str = Column(String(64), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    user_id: str = Column(String(32), ForeignKey("users.user_id"), nullable=False, index=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    user = relationship("User", back_populates="rfid_tags")


class FingerprintCredential(Base):
    __tablename__ = "fingerprint_ids"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    fingerprint_id: int = Column(Integer, unique=True, nullable=False, index=True)  # type: ignore[assignment]
    user_id: str = Column(String(32), ForeignKey("users.user_id"), nullable=False, index=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    user = relationship("User", back_populates="fingerprint_ids")


class TemporaryAccessCode(Base):
    __tablename__ = "temporary_access_codes"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    code: str = Column(String(6), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    user_id: str = Column(String(32), ForeignKey("users.user_id"), nullable=False, index=True)  # type: ignore[assignment]
    expires_at: datetime = Column(DateTime(timezone=True), nullable=False)  # type: ignore[assignment]
    used: bool = Column(Boolean, nullable=False, default=False, server_default="false")  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    user = relationship("User")
