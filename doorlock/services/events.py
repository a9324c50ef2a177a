"""
AccessGranted domain event and its attendance consumer.

The access-log endpoint publishes ``AccessGranted`` after the log row is
committed; the handler runs as a background task with its own session.
A failing fold is logged and dropped so it can never affect the ledger
write that triggered it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from doorlock.services.attendance import AttendanceEngine
from doorlock.services.calendar import CalendarPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AccessGranted:
    user_id: str
    timestamp: datetime
    device_id: str | None = None


class AccessGrantedHandler:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        policy: CalendarPolicy,
    ):
        self._session_factory = session_factory
        self._policy = policy

    async def __call__(self, event: AccessGranted) -> None:
        try:
            async with self._session_factory() as db:
                engine = AttendanceEngine(db, self._policy)
                await engine.record_attendance_from_access(event.user_id, event.timestamp)
        except Exception:
            logger.exception(
                "Failed to record attendance for user %s (device %s)",
                event.user_id,
                event.device_id,
            )
