"""
Attendance & Holiday models.

One Attendance row exists per (user_id, date); it is folded forward by
every successful access event of that day.
"""

from __future__ import annotations

from datetime import date, datetime, timezone

from sqlalchemy import (Boolean, Column, Date, DateTime, Float, ForeignKey,
                        Integer, String, UniqueConstraint)
from sqlalchemy.orm import relationship

from doorlock.db.base import Base


class Attendance(Base):
    __tablename__ = "attendance"
    __table_args__ = (UniqueConstraint("user_id", "date", name="uq_attendance_user_date"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    attendance_id: str = Column(String(64), unique=True, nullable=False)  # type: ignore[assignment]
    user_id: str = Column(String(32), ForeignKey("users.user_id"), nullable=False, index=True)  # type: ignore[assignment]
    date: date = Column(Date, nullable=False, index=True)  # type: ignore[assignment]
    check_in: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    check_out: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]
    status: str = Column(String(20), nullable=False)  # type: ignore[assignment]
    minutes_late: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    minutes_early: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    total_hours: float | None = Column(Float, nullable=True)  # type: ignore[assignment]
    is_working_day: bool = Column(Boolean, nullable=False, default=True)  # type: ignore[assignment]
    is_holiday: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    holiday_name: str | None = Column(String(200), nullable=True)  # type: ignore[assignment]
    notes: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = relationship("User")


class Holiday(Base):
    __tablename__ = "holidays"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    date: date = Column(Date, unique=True, nullable=False, index=True)  # type: ignore[assignment]
    is_recurring: bool = Column(Boolean, nullable=False, default=False)  # type: ignore[assignment]
    description: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
