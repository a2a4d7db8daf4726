import abc
from datetime import datetime
from typing import List, Optional

from sqlalchemy import and_, desc, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from classroom.models.attendance import AttendanceRecord, AttendanceSession, SessionState


class DuplicateRecordError(Exception):
    """Raised when a (session, student) record already exists."""


class AttendanceRepository(abc.ABC):
    """Storage operations the attendance service relies on."""

    @abc.abstractmethod
    async def add_session(self, session: AttendanceSession) -> AttendanceSession:
        ...

    @abc.abstractmethod
    async def get_session(self, session_id: int) -> Optional[AttendanceSession]:
        ...

    @abc.abstractmethod
    async def get_open_sessions(self, classroom_id: int) -> List[AttendanceSession]:
        ...

    @abc.abstractmethod
    async def list_sessions(self, classroom_id: int) -> List[AttendanceSession]:
        """Sessions of a classroom, newest first."""

    @abc.abstractmethod
    async def close_session(self, session_id: int, closed_at: datetime) -> bool:
        """Move an OPEN session to CLOSED. Returns False if it was not OPEN."""

    @abc.abstractmethod
    async def add_record(self, record: AttendanceRecord) -> AttendanceRecord:
        """Insert a record, raising DuplicateRecordError if one already exists."""

    @abc.abstractmethod
    async def get_record(self, session_id: int, student_id: int) -> Optional[AttendanceRecord]:
        ...

    @abc.abstractmethod
    async def list_records(self, session_id: int) -> List[AttendanceRecord]:
        ...

    @abc.abstractmethod
    async def list_records_for_student(self, classroom_id: int, student_id: int) -> List[AttendanceRecord]:
        ...


class SQLAlchemyAttendanceRepository(AttendanceRepository):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def add_session(self, session: AttendanceSession) -> AttendanceSession:
        self.db.add(session)
        await self.db.commit()
        await self.db.refresh(session)
        return session

    async def get_session(self, session_id: int) -> Optional[AttendanceSession]:
        result = await self.db.execute(select(AttendanceSession).where(AttendanceSession.id == session_id))
        return result.scalars().first()

    async def get_open_sessions(self, classroom_id: int) -> List[AttendanceSession]:
        result = await self.db.execute(
            select(AttendanceSession).where(
                and_(
                    AttendanceSession.classroom_id == classroom_id,
                    AttendanceSession.state == SessionState.OPEN.value,
                )
            )
        )
        return list(result.scalars().all())

    async def list_sessions(self, classroom_id: int) -> List[AttendanceSession]:
        result = await self.db.execute(
            select(AttendanceSession)
            .where(AttendanceSession.classroom_id == classroom_id)
            .order_by(desc(AttendanceSession.start_time), desc(AttendanceSession.id))
        )
        return list(result.scalars().all())

    async def close_session(self, session_id: int, closed_at: datetime) -> bool:
        # Conditional update so two closers cannot both win the transition
        result = await self.db.execute(
            update(AttendanceSession)
            .where(
                and_(
                    AttendanceSession.id == session_id,
                    AttendanceSession.state == SessionState.OPEN.value,
                )
            )
            .values(state=SessionState.CLOSED.value, closed_at=closed_at)
            .execution_options(synchronize_session="fetch")
        )
        await self.db.commit()
        return result.rowcount > 0

    async def add_record(self, record: AttendanceRecord) -> AttendanceRecord:
        self.db.add(record)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise DuplicateRecordError(
                f"Record for session {record.session_id} and student {record.student_id} already exists"
            ) from exc
        await self.db.refresh(record)
        return record

    async def get_record(self, session_id: int, student_id: int) -> Optional[AttendanceRecord]:
        result = await self.db.execute(
            select(AttendanceRecord).where(
                and_(
                    AttendanceRecord.session_id == session_id,
                    AttendanceRecord.student_id == student_id,
                )
            )
        )
        return result.scalars().first()

    async def list_records(self, session_id: int) -> List[AttendanceRecord]:
        result = await self.db.execute(
            select(AttendanceRecord)
            .where(AttendanceRecord.session_id == session_id)
            .order_by(AttendanceRecord.marked_at, AttendanceRecord.id)
        )
        return list(result.scalars().all())

    async def list_records_for_student(self, classroom_id: int, student_id: int) -> List[AttendanceRecord]:
        result = await self.db.execute(
            select(AttendanceRecord)
            .join(AttendanceSession, AttendanceSession.id == AttendanceRecord.session_id)
            .where(
                and_(
                    AttendanceSession.classroom_id == classroom_id,
                    AttendanceRecord.student_id == student_id,
                )
            )
        )
        return list(result.scalars().all())
