"""
AccessLog model — append-only ledger of every door access attempt.

No foreign key on ``user_id``: failed attempts by unknown or deleted
users are still recorded.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Index, Integer, String

from doorlock.db.base import Base


class AccessLog(Base):
    __tablename__ = "access_logs"
    __table_args__ = (Index("ix_access_logs_user_timestamp", "user_id", "timestamp"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    log_id: str = Column(String(40), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    user_id: str = Column(String(32), nullable=False)  # type: ignore[assignment]
    device_id: str = Column(String(64), nullable=False, index=True)  # type: ignore[assignment]
    method: str = Column(String(20), nullable=False)  # type: ignore[assignment]  # rfid | fingerprint
    rfid_uid: str | None = Column(String(64), nullable=True)  # type: ignore[assignment]
    fingerprint_id: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    status: str = Column(String(20), nullable=False, index=True)  # type: ignore[assignment]  # success | failed
    message: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    timestamp: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        index=True,
    )
