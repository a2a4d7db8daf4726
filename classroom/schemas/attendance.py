from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field
from enum import Enum


class AttendanceStatusEnum(str, Enum):
    present = "PRESENT"
    absent = "ABSENT"
    bunk = "BUNK"


class SessionStateEnum(str, Enum):
    open = "OPEN"
    closed = "CLOSED"


class LocationSample(BaseModel):
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


# Attendance Session schemas
class AttendanceSessionCreate(BaseModel):
    anchor: LocationSample


class AttendanceSessionInDB(BaseModel):
    id: int
    classroom_id: int
    start_time: datetime
    end_time: datetime
    state: SessionStateEnum
    is_active: bool
    closed_at: Optional[datetime] = None
    anchor_latitude: Optional[float] = None
    anchor_longitude: Optional[float] = None

    class Config:
        from_attributes = True


class AttendanceSessionSummary(AttendanceSessionInDB):
    present_count: int
    bunk_count: int
    total_students: int


# Attendance Record schemas
class AttendanceRecordInDB(BaseModel):
    id: int
    session_id: int
    student_id: int
    student_name: str
    marked_at: datetime
    status: AttendanceStatusEnum
    location_difference: float

    class Config:
        from_attributes = True


class RosterEntryOut(BaseModel):
    student_id: int
    student_name: str
    email: str
    status: Optional[AttendanceStatusEnum] = None
    location_difference: Optional[float] = None
    marked_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SessionRosterOut(BaseModel):
    session: AttendanceSessionInDB
    present: int
    bunk: int
    absent: int
    entries: List[RosterEntryOut]


# Live snapshot returned by the long-poll endpoint
class AttendanceLiveSnapshot(BaseModel):
    classroom_id: int
    version: int
    last_event: Optional[str] = None
    session: Optional[AttendanceSessionInDB] = None
    seconds_remaining: int = 0
    records: List[AttendanceRecordInDB] = []
    my_record: Optional[AttendanceRecordInDB] = None


# Attendance Statistics
class StudentAttendanceSummary(BaseModel):
    classroom_id: int
    student_id: int
    total_sessions: int
    present: int
    bunk: int
    absent: int
    attendance_rate: int
    threshold: int
    below_threshold: bool
