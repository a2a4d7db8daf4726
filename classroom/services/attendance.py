import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from classroom.config import settings
from classroom.database import utcnow
from classroom.models.attendance import AttendanceRecord, AttendanceSession, AttendanceStatus, SessionState
from classroom.models.users import User
from classroom.repositories.attendance import AttendanceRepository, DuplicateRecordError
from classroom.services import events
from classroom.services.events import AttendanceEventBroker
from classroom.services.gps import calculate_distance, classify_distance

logger = logging.getLogger(__name__)


class AttendanceError(Exception):
    """Base class for attendance failures surfaced to API callers."""


class SessionNotFoundError(AttendanceError):
    pass


class SessionClosedError(AttendanceError):
    pass


class MissingAnchorError(AttendanceError):
    """The session has no anchor location, so no distance can be computed."""


@dataclass
class Coordinate:
    latitude: float
    longitude: float


@dataclass
class RosterEntry:
    student_id: int
    student_name: str
    email: str
    status: Optional[AttendanceStatus]
    location_difference: Optional[float] = None
    marked_at: Optional[datetime] = None


@dataclass
class SessionRoster:
    session: AttendanceSession
    entries: List[RosterEntry] = field(default_factory=list)

    def count(self, status: AttendanceStatus) -> int:
        return sum(1 for entry in self.entries if entry.status == status)


@dataclass
class StudentSummary:
    total_sessions: int
    present: int
    bunk: int
    absent: int
    attendance_rate: int
    threshold: int

    @property
    def below_threshold(self) -> bool:
        return self.attendance_rate < self.threshold


def seconds_remaining(session: AttendanceSession, now: datetime) -> int:
    if not session.is_active:
        return 0
    return max(0, math.ceil((session.end_time - now).total_seconds()))


class AttendanceService:
    """
    Geofenced check-in sessions for a classroom.

    A session is a two-state machine, OPEN -> CLOSED. `_close` is the only
    place the transition happens; it is reached from the expiry timer, an
    explicit close, a newer session replacing this one, or a read that
    notices the window has already run out.
    """

    def __init__(
        self,
        repository: AttendanceRepository,
        broker: Optional[AttendanceEventBroker] = None,
        clock: Callable[[], datetime] = utcnow,
        window_seconds: Optional[int] = None,
        radius_meters: Optional[float] = None,
    ):
        self.repository = repository
        self.broker = broker
        self.clock = clock
        self.window = timedelta(
            seconds=window_seconds if window_seconds is not None else settings.ATTENDANCE_WINDOW_SECONDS
        )
        self.radius_meters = radius_meters if radius_meters is not None else settings.GEOFENCE_RADIUS_METERS

    async def _publish(self, classroom_id: int, event: str) -> None:
        if self.broker is not None:
            await self.broker.publish(classroom_id, event)

    async def _close(self, session: AttendanceSession, publish: bool = True) -> bool:
        classroom_id = session.classroom_id
        session_id = session.id
        closed = await self.repository.close_session(session_id, self.clock())
        if closed:
            logger.info(f"Attendance session {session_id} closed for classroom {classroom_id}")
            if publish:
                await self._publish(classroom_id, events.SESSION_CLOSED)
        return closed

    def _expired(self, session: AttendanceSession) -> bool:
        return self.clock() >= session.end_time

    async def start_session(self, classroom_id: int, anchor: Coordinate) -> AttendanceSession:
        """
        Open a new check-in window anchored at the teacher's position.

        Every OPEN session of the same classroom is closed first; other
        classrooms are not touched.
        """
        for previous in await self.repository.get_open_sessions(classroom_id):
            await self._close(previous, publish=False)

        now = self.clock()
        session = AttendanceSession(
            classroom_id=classroom_id,
            start_time=now,
            end_time=now + self.window,
            state=SessionState.OPEN.value,
            anchor_latitude=anchor.latitude,
            anchor_longitude=anchor.longitude,
        )
        session = await self.repository.add_session(session)
        logger.info(
            f"Attendance session {session.id} started for classroom {classroom_id} "
            f"[ends: {session.end_time.isoformat()}]"
        )
        await self._publish(classroom_id, events.SESSION_STARTED)
        return session

    async def close_session(self, session_id: int) -> AttendanceSession:
        session = await self.repository.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Attendance session {session_id} not found")
        await self._close(session)
        return session

    async def expire_session(self, session_id: int) -> bool:
        """Timer callback: close the session if its window has run out."""
        session = await self.repository.get_session(session_id)
        if session is None or not session.is_active:
            return False
        if not self._expired(session):
            return False
        return await self._close(session)

    async def get_active_session(self, classroom_id: int) -> Optional[AttendanceSession]:
        active = None
        for session in await self.repository.get_open_sessions(classroom_id):
            if self._expired(session):
                await self._close(session)
            elif active is None or session.start_time > active.start_time:
                active = session
        return active

    async def get_session(self, session_id: int) -> AttendanceSession:
        session = await self.repository.get_session(session_id)
        if session is None:
            raise SessionNotFoundError(f"Attendance session {session_id} not found")
        if session.is_active and self._expired(session):
            await self._close(session)
        return session

    async def list_sessions(self, classroom_id: int, on_date: Optional[date] = None) -> List[AttendanceSession]:
        # Sweep first so history never shows an expired session as open
        await self.get_active_session(classroom_id)
        sessions = await self.repository.list_sessions(classroom_id)
        if on_date is not None:
            sessions = [s for s in sessions if s.start_time.date() == on_date]
        return sessions

    def evaluate(self, session: AttendanceSession, sample: Coordinate) -> Tuple[float, AttendanceStatus]:
        if not session.has_anchor:
            raise MissingAnchorError(f"Attendance session {session.id} has no anchor location")
        distance = calculate_distance(
            session.anchor_latitude,
            session.anchor_longitude,
            sample.latitude,
            sample.longitude,
        )
        return distance, classify_distance(distance, self.radius_meters)

    async def mark_attendance(
        self, session_id: int, student: User, sample: Coordinate
    ) -> Tuple[AttendanceRecord, bool]:
        """
        Admit a student's check-in.

        Returns the stored record and whether it was created by this call.
        A repeated submission gets the first record back untouched.
        """
        student_id = student.id
        session = await self.get_session(session_id)
        if not session.is_active:
            raise SessionClosedError(f"Attendance session {session_id} is closed")

        existing = await self.repository.get_record(session_id, student_id)
        if existing is not None:
            logger.info(f"Duplicate check-in ignored for student {student_id} in session {session_id}")
            return existing, False

        classroom_id = session.classroom_id
        distance, status = self.evaluate(session, sample)
        record = AttendanceRecord(
            session_id=session_id,
            student_id=student_id,
            student_name=student.name,
            marked_at=self.clock(),
            status=status.value,
            location_difference=distance,
            latitude=sample.latitude,
            longitude=sample.longitude,
        )
        try:
            record = await self.repository.add_record(record)
        except DuplicateRecordError:
            # Lost a race with a concurrent submission; the first write wins
            logger.info(f"Concurrent check-in for student {student_id} in session {session_id} lost the race")
            return await self.repository.get_record(session_id, student_id), False

        logger.info(
            f"Student {student_id} marked {status.value} in session {session_id} "
            f"[distance: {distance:.1f}m]"
        )
        await self._publish(classroom_id, events.RECORD_MARKED)
        return record, True

    async def list_records(self, session_id: int) -> List[AttendanceRecord]:
        return await self.repository.list_records(session_id)

    async def get_record_for_student(self, session_id: int, student_id: int) -> Optional[AttendanceRecord]:
        return await self.repository.get_record(session_id, student_id)

    async def session_roster(self, session_id: int, students: Sequence[User]) -> SessionRoster:
        """
        Status of every enrolled student for one session.

        Students without a record are ABSENT once the session has closed;
        while it is still open their status is left empty.
        """
        session = await self.get_session(session_id)
        records: Dict[int, AttendanceRecord] = {
            record.student_id: record for record in await self.repository.list_records(session_id)
        }
        roster = SessionRoster(session=session)
        for student in students:
            record = records.get(student.id)
            if record is not None:
                entry = RosterEntry(
                    student_id=student.id,
                    student_name=student.name,
                    email=student.email,
                    status=AttendanceStatus(record.status),
                    location_difference=record.location_difference,
                    marked_at=record.marked_at,
                )
            else:
                entry = RosterEntry(
                    student_id=student.id,
                    student_name=student.name,
                    email=student.email,
                    status=None if session.is_active else AttendanceStatus.ABSENT,
                )
            roster.entries.append(entry)
        return roster

    async def student_summary(self, classroom_id: int, student_id: int, threshold: Optional[int] = None) -> StudentSummary:
        """
        Attendance counts of one student in a class.

        An OPEN session only counts once the student has checked in to it;
        until its window closes a missing check-in is not yet an absence.
        """
        sessions = await self.list_sessions(classroom_id)
        records = await self.repository.list_records_for_student(classroom_id, student_id)
        marked = {r.session_id for r in records}
        counted = [s for s in sessions if not s.is_active or s.id in marked]
        present = sum(1 for r in records if r.status == AttendanceStatus.PRESENT.value)
        bunk = sum(1 for r in records if r.status == AttendanceStatus.BUNK.value)
        total = len(counted)
        # Half rounds up, not to even
        rate = math.floor(present * 100 / total + 0.5) if total > 0 else 100
        return StudentSummary(
            total_sessions=total,
            present=present,
            bunk=bunk,
            absent=total - present - bunk,
            attendance_rate=rate,
            threshold=threshold if threshold is not None else settings.DEFAULT_ATTENDANCE_THRESHOLD,
        )
