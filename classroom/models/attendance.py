import enum
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Float, CheckConstraint, UniqueConstraint
from classroom.database import Base, utcnow


class SessionState(str, enum.Enum):
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class AttendanceStatus(str, enum.Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    BUNK = "BUNK"


# Attendance Session model
class AttendanceSession(Base):
    __tablename__ = "attendance_sessions"

    id = Column(Integer, primary_key=True, index=True)
    classroom_id = Column(Integer, ForeignKey("classrooms.id", ondelete="CASCADE"), nullable=False, index=True)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    state = Column(String(10), nullable=False, default=SessionState.OPEN.value)
    closed_at = Column(DateTime)
    anchor_latitude = Column(Float)
    anchor_longitude = Column(Float)

    __table_args__ = (
        CheckConstraint("state IN ('OPEN', 'CLOSED')", name="check_session_state"),
    )

    @property
    def is_active(self) -> bool:
        return self.state == SessionState.OPEN.value

    @property
    def has_anchor(self) -> bool:
        return self.anchor_latitude is not None and self.anchor_longitude is not None


# Attendance Record model
class AttendanceRecord(Base):
    __tablename__ = "attendance_records"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(Integer, ForeignKey("attendance_sessions.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    student_name = Column(String(255), nullable=False)
    marked_at = Column(DateTime, default=utcnow, nullable=False)
    status = Column(String(10), nullable=False)
    location_difference = Column(Float, nullable=False)
    latitude = Column(Float)
    longitude = Column(Float)

    # ABSENT is inferred from a missing row, never stored
    __table_args__ = (
        UniqueConstraint("session_id", "student_id", name="uq_attendance_session_student"),
        CheckConstraint("status IN ('PRESENT', 'BUNK')", name="check_attendance_status"),
    )
