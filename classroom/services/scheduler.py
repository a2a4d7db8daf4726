import asyncio
import logging
from datetime import datetime
from typing import Dict

from sqlalchemy.ext.asyncio import async_sessionmaker

from classroom.database import AsyncSessionLocal, utcnow
from classroom.repositories.attendance import SQLAlchemyAttendanceRepository
from classroom.services.attendance import AttendanceService
from classroom.services.events import AttendanceEventBroker, broker as default_broker

logger = logging.getLogger(__name__)


class SessionExpiryScheduler:
    """Closes attendance sessions when their window runs out."""

    def __init__(self, session_factory: async_sessionmaker, broker: AttendanceEventBroker):
        self.session_factory = session_factory
        self.broker = broker
        self._tasks: Dict[int, asyncio.Task] = {}

    def schedule(self, session_id: int, end_time: datetime) -> asyncio.Task:
        # Small grace so the timer never fires a hair before end_time
        delay = max(0.0, (end_time - utcnow()).total_seconds()) + 0.05
        task = asyncio.create_task(self._expire_after(session_id, delay))
        self._tasks[session_id] = task
        task.add_done_callback(lambda _: self._tasks.pop(session_id, None))
        return task

    async def _expire_after(self, session_id: int, delay: float) -> None:
        await asyncio.sleep(delay)
        # Nobody awaits this task; a missed close is caught by the next read
        try:
            async with self.session_factory() as db:
                service = AttendanceService(SQLAlchemyAttendanceRepository(db), self.broker)
                closed = await service.expire_session(session_id)
        except Exception:
            logger.error(f"Failed to expire attendance session {session_id}", exc_info=True)
            return
        if closed:
            logger.info(f"Attendance session {session_id} expired on timer")

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()


scheduler = SessionExpiryScheduler(AsyncSessionLocal, default_broker)


def get_expiry_scheduler() -> SessionExpiryScheduler:
    return scheduler
