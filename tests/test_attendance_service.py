from datetime import date, timedelta

import pytest

from classroom.models.attendance import AttendanceSession, AttendanceStatus, SessionState
from classroom.models.classrooms import Classroom
from classroom.repositories.attendance import SQLAlchemyAttendanceRepository
from classroom.services import events
from classroom.services.attendance import (
    AttendanceService,
    Coordinate,
    MissingAnchorError,
    SessionClosedError,
    SessionNotFoundError,
    seconds_remaining,
)

ANCHOR = Coordinate(latitude=0.0, longitude=0.0)
NEAR = Coordinate(latitude=0.0, longitude=0.0004)  # ~44.5 m
FAR = Coordinate(latitude=0.0, longitude=0.00045)  # ~50.04 m


@pytest.fixture
def service(db, broker, clock):
    return AttendanceService(
        SQLAlchemyAttendanceRepository(db),
        broker,
        clock=clock,
        window_seconds=60,
        radius_meters=50,
    )


async def test_start_session_opens_a_sixty_second_window(service, course, broker, clock):
    session = await service.start_session(course.id, ANCHOR)

    assert session.state == SessionState.OPEN.value
    assert session.start_time == clock.now
    assert session.end_time == clock.now + timedelta(seconds=60)
    assert (session.anchor_latitude, session.anchor_longitude) == (0.0, 0.0)
    assert broker.version(course.id) == 1
    assert broker.last_event(course.id) == events.SESSION_STARTED


async def test_new_session_closes_previous_one_in_same_classroom_only(service, db, course, teacher):
    other = Classroom(name="Chemistry", teacher_id=teacher.id)
    db.add(other)
    await db.commit()

    first = await service.start_session(course.id, ANCHOR)
    elsewhere = await service.start_session(other.id, ANCHOR)
    second = await service.start_session(course.id, ANCHOR)

    assert first.state == SessionState.CLOSED.value
    assert first.closed_at is not None
    assert second.is_active
    assert elsewhere.is_active
    assert (await service.get_active_session(course.id)).id == second.id
    assert (await service.get_active_session(other.id)).id == elsewhere.id


async def test_active_session_disappears_once_window_ends(service, course, broker, clock):
    session = await service.start_session(course.id, ANCHOR)

    clock.advance(seconds=59)
    assert (await service.get_active_session(course.id)).id == session.id
    assert seconds_remaining(session, clock.now) == 1

    clock.advance(seconds=1)
    assert await service.get_active_session(course.id) is None
    assert session.state == SessionState.CLOSED.value
    assert seconds_remaining(session, clock.now) == 0
    assert broker.last_event(course.id) == events.SESSION_CLOSED


async def test_expire_session_ignores_sessions_still_in_window(service, course, clock):
    session = await service.start_session(course.id, ANCHOR)

    assert await service.expire_session(session.id) is False
    assert session.is_active

    clock.advance(seconds=61)
    assert await service.expire_session(session.id) is True
    assert await service.expire_session(session.id) is False


async def test_close_unknown_session_raises(service):
    with pytest.raises(SessionNotFoundError):
        await service.close_session(999)


async def test_mark_present_within_fence(service, course, students, broker):
    session = await service.start_session(course.id, ANCHOR)

    record, created = await service.mark_attendance(session.id, students[0], NEAR)

    assert created is True
    assert record.status == AttendanceStatus.PRESENT.value
    assert record.location_difference == pytest.approx(44.48, abs=0.01)
    assert record.student_name == "Bo Student"
    assert broker.last_event(course.id) == events.RECORD_MARKED


async def test_mark_bunk_outside_fence(service, course, students):
    session = await service.start_session(course.id, ANCHOR)

    record, _ = await service.mark_attendance(session.id, students[0], FAR)

    assert record.status == AttendanceStatus.BUNK.value
    assert record.location_difference == pytest.approx(50.04, abs=0.01)


async def test_duplicate_check_in_keeps_first_record(service, course, students, broker, clock):
    session = await service.start_session(course.id, ANCHOR)
    first, _ = await service.mark_attendance(session.id, students[0], NEAR)
    version = broker.version(course.id)

    clock.advance(seconds=5)
    again, created = await service.mark_attendance(session.id, students[0], FAR)

    assert created is False
    assert again.id == first.id
    assert again.status == AttendanceStatus.PRESENT.value
    assert len(await service.list_records(session.id)) == 1
    assert broker.version(course.id) == version


async def test_check_in_after_close_is_rejected(service, course, students):
    session = await service.start_session(course.id, ANCHOR)
    await service.close_session(session.id)

    with pytest.raises(SessionClosedError):
        await service.mark_attendance(session.id, students[0], NEAR)
    assert await service.list_records(session.id) == []


async def test_check_in_after_window_is_rejected(service, course, students, clock):
    session = await service.start_session(course.id, ANCHOR)
    clock.advance(seconds=60)

    with pytest.raises(SessionClosedError):
        await service.mark_attendance(session.id, students[0], NEAR)


async def test_session_without_anchor_cannot_evaluate(service, db, course, students, clock):
    session = AttendanceSession(
        classroom_id=course.id,
        start_time=clock.now,
        end_time=clock.now + timedelta(seconds=60),
        state=SessionState.OPEN.value,
    )
    db.add(session)
    await db.commit()

    with pytest.raises(MissingAnchorError):
        await service.mark_attendance(session.id, students[0], NEAR)


async def test_roster_leaves_unmarked_empty_while_open_then_absent(service, course, students):
    session = await service.start_session(course.id, ANCHOR)
    await service.mark_attendance(session.id, students[0], FAR)

    roster = await service.session_roster(session.id, students)
    statuses = {entry.student_id: entry.status for entry in roster.entries}
    assert statuses == {students[0].id: AttendanceStatus.BUNK, students[1].id: None}

    await service.close_session(session.id)
    roster = await service.session_roster(session.id, students)
    statuses = {entry.student_id: entry.status for entry in roster.entries}
    assert statuses == {students[0].id: AttendanceStatus.BUNK, students[1].id: AttendanceStatus.ABSENT}
    assert roster.count(AttendanceStatus.ABSENT) == 1
    assert roster.count(AttendanceStatus.PRESENT) == 0


async def test_student_summary_rounds_half_up(service, course, students, clock):
    bo = students[0]
    for sample in (NEAR, NEAR, FAR):
        session = await service.start_session(course.id, ANCHOR)
        await service.mark_attendance(session.id, bo, sample)
        clock.advance(minutes=5)

    summary = await service.student_summary(course.id, bo.id, threshold=75)
    assert summary.total_sessions == 3
    assert summary.present == 2
    assert summary.bunk == 1
    assert summary.absent == 0
    assert summary.attendance_rate == 67
    assert summary.below_threshold is True

    cy = await service.student_summary(course.id, students[1].id, threshold=0)
    assert cy.total_sessions == 3
    assert cy.absent == 3
    assert cy.attendance_rate == 0


async def test_summary_without_sessions_is_full_attendance(service, course, students):
    summary = await service.student_summary(course.id, students[0].id)
    assert summary.total_sessions == 0
    assert summary.attendance_rate == 100
    assert summary.below_threshold is False


async def test_list_sessions_newest_first_and_by_date(service, course, clock):
    first = await service.start_session(course.id, ANCHOR)
    clock.advance(days=1)
    second = await service.start_session(course.id, ANCHOR)

    assert [s.id for s in await service.list_sessions(course.id)] == [second.id, first.id]

    only_first = await service.list_sessions(course.id, on_date=date(2026, 10, 16))
    assert [s.id for s in only_first] == [first.id]
    assert await service.list_sessions(course.id, on_date=date(2026, 10, 18)) == []


async def test_open_session_is_not_an_absence_yet(service, course, students):
    session = await service.start_session(course.id, ANCHOR)

    summary = await service.student_summary(course.id, students[0].id, threshold=75)
    assert (summary.total_sessions, summary.absent) == (0, 0)
    assert summary.attendance_rate == 100
    assert summary.below_threshold is False

    await service.mark_attendance(session.id, students[0], NEAR)
    summary = await service.student_summary(course.id, students[0].id)
    assert (summary.total_sessions, summary.present, summary.absent) == (1, 1, 0)

    await service.close_session(session.id)
    summary = await service.student_summary(course.id, students[1].id)
    assert (summary.total_sessions, summary.absent) == (1, 1)
    assert summary.attendance_rate == 0


class StalePrecheckRepository(SQLAlchemyAttendanceRepository):
    """Misses the first lookup, as if a concurrent check-in landed right after it."""

    def __init__(self, db):
        super().__init__(db)
        self.lookups = 0

    async def get_record(self, session_id, student_id):
        self.lookups += 1
        if self.lookups == 1:
            return None
        return await super().get_record(session_id, student_id)


async def test_concurrent_check_in_keeps_first_write(db, session_factory, broker, clock, course, students):
    service = AttendanceService(SQLAlchemyAttendanceRepository(db), broker, clock=clock)
    session = await service.start_session(course.id, ANCHOR)
    session_id = session.id
    student = students[0]

    async with session_factory() as other_db:
        winner = AttendanceService(SQLAlchemyAttendanceRepository(other_db), broker, clock=clock)
        first, created = await winner.mark_attendance(session_id, student, NEAR)
        assert created is True
        first_id = first.id
    version = broker.version(course.id)

    loser = AttendanceService(StalePrecheckRepository(db), broker, clock=clock)
    record, created = await loser.mark_attendance(session_id, student, FAR)

    assert created is False
    assert record.id == first_id
    assert record.status == AttendanceStatus.PRESENT.value
    assert record.location_difference == pytest.approx(44.48, abs=0.01)
    assert len(await service.list_records(session_id)) == 1
    assert broker.version(course.id) == version
