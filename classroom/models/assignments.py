import enum
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Float, JSON, CheckConstraint, UniqueConstraint
from classroom.database import Base, utcnow


class QuestionType(str, enum.Enum):
    MCQ = "MCQ"
    SHORT_ANSWER = "SHORT_ANSWER"


class SubmissionStatus(str, enum.Enum):
    PENDING = "PENDING"
    GRADED = "GRADED"


# Assignment model
class Assignment(Base):
    __tablename__ = "assignments"

    id = Column(Integer, primary_key=True, index=True)
    classroom_id = Column(Integer, ForeignKey("classrooms.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text, default="")
    due_date = Column(DateTime)
    questions = Column(JSON, nullable=False, default=list)
    total_points = Column(Float, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow, nullable=False)


# Submission model
class Submission(Base):
    __tablename__ = "submissions"

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(Integer, ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    student_name = Column(String(255), nullable=False)
    answers = Column(JSON, nullable=False, default=dict)
    submitted_at = Column(DateTime, default=utcnow, nullable=False)
    grade = Column(Float)
    feedback = Column(Text)
    status = Column(String(10), nullable=False, default=SubmissionStatus.PENDING.value)

    __table_args__ = (
        UniqueConstraint("assignment_id", "student_id", name="uq_submission_assignment_student"),
        CheckConstraint("status IN ('PENDING', 'GRADED')", name="check_submission_status"),
        CheckConstraint("grade IS NULL OR grade >= 0", name="check_grade_positive"),
    )
