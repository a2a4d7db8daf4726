from datetime import date
from typing import List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, status, Query, Path, Response
from sqlalchemy.ext.asyncio import AsyncSession

from classroom.config import settings
from classroom.database import get_db
from classroom.middleware.authentication import (
    get_current_user, require_teacher, require_student, get_classroom_for_member, get_classroom_for_teacher
)
from classroom.models.attendance import AttendanceSession, AttendanceStatus
from classroom.models.classrooms import Classroom
from classroom.models.users import User
from classroom.repositories.attendance import SQLAlchemyAttendanceRepository
from classroom.schemas.attendance import (
    AttendanceSessionCreate, AttendanceSessionInDB, AttendanceSessionSummary, AttendanceRecordInDB,
    LocationSample, RosterEntryOut, SessionRosterOut, AttendanceLiveSnapshot, StudentAttendanceSummary
)
from classroom.services.attendance import (
    AttendanceService, Coordinate, SessionNotFoundError, SessionClosedError, MissingAnchorError,
    seconds_remaining
)
from classroom.services.events import AttendanceEventBroker, get_event_broker
from classroom.services.scheduler import SessionExpiryScheduler, get_expiry_scheduler

router = APIRouter()

def get_attendance_service(
    db: AsyncSession = Depends(get_db),
    broker: AttendanceEventBroker = Depends(get_event_broker)
) -> AttendanceService:
    return AttendanceService(SQLAlchemyAttendanceRepository(db), broker)

async def _load_session(
    session_id: int, user: User, db: AsyncSession, service: AttendanceService
) -> Tuple[AttendanceSession, Classroom]:
    try:
        session = await service.get_session(session_id)
    except SessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Attendance session not found"
        )
    classroom = await get_classroom_for_member(session.classroom_id, user, db)
    return session, classroom

async def _snapshot(
    classroom: Classroom, user: User, service: AttendanceService, broker: AttendanceEventBroker
) -> AttendanceLiveSnapshot:
    # Read the version before the state so a concurrent change is never missed
    version = broker.version(classroom.id)
    last_event = broker.last_event(classroom.id)
    session = await service.get_active_session(classroom.id)

    snapshot = AttendanceLiveSnapshot(
        classroom_id=classroom.id, version=version, last_event=last_event
    )
    if session is None:
        return snapshot

    snapshot.session = AttendanceSessionInDB.model_validate(session)
    snapshot.seconds_remaining = seconds_remaining(session, service.clock())
    if user.id == classroom.teacher_id:
        records = await service.list_records(session.id)
        snapshot.records = [AttendanceRecordInDB.model_validate(r) for r in records]
    else:
        record = await service.get_record_for_student(session.id, user.id)
        if record is not None:
            snapshot.my_record = AttendanceRecordInDB.model_validate(record)
    return snapshot

# Session endpoints
@router.post(
    "/classrooms/{classroom_id}/attendance/sessions",
    response_model=AttendanceSessionInDB,
    status_code=status.HTTP_201_CREATED
)
async def start_attendance_session(
    session_data: AttendanceSessionCreate,
    classroom_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_teacher),
    service: AttendanceService = Depends(get_attendance_service),
    scheduler: SessionExpiryScheduler = Depends(get_expiry_scheduler)
):
    """
    Open a check-in window anchored at the teacher's current location.
    Any session already open for this class is closed first.
    """
    await get_classroom_for_teacher(classroom_id, current_user, db)

    session = await service.start_session(
        classroom_id,
        Coordinate(session_data.anchor.latitude, session_data.anchor.longitude)
    )
    scheduler.schedule(session.id, session.end_time)

    return session

@router.get("/classrooms/{classroom_id}/attendance/sessions", response_model=List[AttendanceSessionSummary])
async def list_attendance_sessions(
    classroom_id: int = Path(..., gt=0),
    on_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: AttendanceService = Depends(get_attendance_service)
):
    """
    Session history for a class, newest first, optionally for a single day.
    """
    classroom = await get_classroom_for_member(classroom_id, current_user, db)

    summaries = []
    for session in await service.list_sessions(classroom_id, on_date=on_date):
        records = await service.list_records(session.id)
        summary = AttendanceSessionSummary(
            **AttendanceSessionInDB.model_validate(session).model_dump(),
            present_count=sum(1 for r in records if r.status == AttendanceStatus.PRESENT.value),
            bunk_count=sum(1 for r in records if r.status == AttendanceStatus.BUNK.value),
            total_students=len(classroom.student_ids),
        )
        summaries.append(summary)

    return summaries

@router.get("/classrooms/{classroom_id}/attendance/active", response_model=AttendanceLiveSnapshot)
async def get_active_attendance(
    classroom_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: AttendanceService = Depends(get_attendance_service),
    broker: AttendanceEventBroker = Depends(get_event_broker)
):
    """
    The open session of a class (if any) and the time left on it.
    """
    classroom = await get_classroom_for_member(classroom_id, current_user, db)
    return await _snapshot(classroom, current_user, service, broker)

@router.get("/classrooms/{classroom_id}/attendance/live", response_model=AttendanceLiveSnapshot)
async def wait_for_attendance_change(
    classroom_id: int = Path(..., gt=0),
    since: Optional[int] = Query(None, ge=0),
    timeout: float = Query(settings.LONG_POLL_TIMEOUT_SECONDS, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: AttendanceService = Depends(get_attendance_service),
    broker: AttendanceEventBroker = Depends(get_event_broker)
):
    """
    Long-poll for attendance changes.

    Pass the `version` from the previous snapshot as `since`; the call returns
    as soon as anything newer happens in the class, or after `timeout` seconds.
    """
    classroom = await get_classroom_for_member(classroom_id, current_user, db)

    if since is not None:
        # Don't sit in an open transaction while waiting
        await db.commit()
        await broker.wait_for_change(
            classroom_id, since, min(timeout, settings.LONG_POLL_TIMEOUT_SECONDS)
        )

    return await _snapshot(classroom, current_user, service, broker)

@router.post("/attendance/sessions/{session_id}/close", response_model=AttendanceSessionInDB)
async def close_attendance_session(
    session_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_teacher),
    service: AttendanceService = Depends(get_attendance_service)
):
    """
    Close a session before its window runs out. Closing twice is harmless.
    """
    session, classroom = await _load_session(session_id, current_user, db, service)
    await get_classroom_for_teacher(classroom.id, current_user, db)

    return await service.close_session(session.id)

# Record endpoints
@router.post(
    "/attendance/sessions/{session_id}/records",
    response_model=AttendanceRecordInDB,
    status_code=status.HTTP_201_CREATED
)
async def mark_attendance(
    location: LocationSample,
    response: Response,
    session_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_student),
    service: AttendanceService = Depends(get_attendance_service)
):
    """
    Check in to an open session with the student's current location.

    Within the geofence the record is PRESENT, otherwise BUNK. Only the first
    check-in counts: a repeat returns the stored record with status 200.
    """
    session, classroom = await _load_session(session_id, current_user, db, service)
    if current_user.id not in classroom.student_ids:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only enrolled students can mark attendance"
        )

    try:
        record, created = await service.mark_attendance(
            session.id, current_user, Coordinate(location.latitude, location.longitude)
        )
    except SessionClosedError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Attendance window has closed"
        )
    except MissingAnchorError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Attendance session has no anchor location"
        )

    if not created:
        response.status_code = status.HTTP_200_OK

    return record

@router.get("/attendance/sessions/{session_id}/records", response_model=List[AttendanceRecordInDB])
async def list_attendance_records(
    session_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: AttendanceService = Depends(get_attendance_service)
):
    session, _ = await _load_session(session_id, current_user, db, service)
    return await service.list_records(session.id)

@router.get("/attendance/sessions/{session_id}/records/me", response_model=Optional[AttendanceRecordInDB])
async def get_my_attendance_record(
    session_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: AttendanceService = Depends(get_attendance_service)
):
    """
    The caller's own record for a session, or null if they have not checked in.
    """
    session, _ = await _load_session(session_id, current_user, db, service)
    return await service.get_record_for_student(session.id, current_user.id)

@router.get("/attendance/sessions/{session_id}/roster", response_model=SessionRosterOut)
async def get_session_roster(
    session_id: int = Path(..., gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_teacher),
    service: AttendanceService = Depends(get_attendance_service)
):
    """
    Every enrolled student with their status. Students without a check-in
    are ABSENT once the session has closed.
    """
    session, classroom = await _load_session(session_id, current_user, db, service)
    await get_classroom_for_teacher(classroom.id, current_user, db)

    roster = await service.session_roster(session.id, classroom.students)

    return SessionRosterOut(
        session=AttendanceSessionInDB.model_validate(roster.session),
        present=roster.count(AttendanceStatus.PRESENT),
        bunk=roster.count(AttendanceStatus.BUNK),
        absent=roster.count(AttendanceStatus.ABSENT),
        entries=[RosterEntryOut.model_validate(entry) for entry in roster.entries],
    )

# Statistics
@router.get("/classrooms/{classroom_id}/attendance/summary", response_model=StudentAttendanceSummary)
async def get_student_attendance_summary(
    classroom_id: int = Path(..., gt=0),
    student_id: Optional[int] = Query(None, gt=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    service: AttendanceService = Depends(get_attendance_service)
):
    """
    Attendance rate of one student in a class against the class threshold.
    Students may only ask about themselves; teachers must name a student.
    """
    classroom = await get_classroom_for_member(classroom_id, current_user, db)

    if current_user.is_student:
        if student_id is not None and student_id != current_user.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Students can only view their own attendance"
            )
        student_id = current_user.id
    elif student_id is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="student_id is required"
        )

    if student_id not in classroom.student_ids:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Student is not enrolled in this classroom"
        )

    summary = await service.student_summary(classroom.id, student_id, classroom.attendance_threshold)

    return StudentAttendanceSummary(
        classroom_id=classroom.id,
        student_id=student_id,
        total_sessions=summary.total_sessions,
        present=summary.present,
        bunk=summary.bunk,
        absent=summary.absent,
        attendance_rate=summary.attendance_rate,
        threshold=summary.threshold,
        below_threshold=summary.below_threshold,
    )
