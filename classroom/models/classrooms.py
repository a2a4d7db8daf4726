from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from classroom.database import Base, utcnow

# Classroom-Student association
class ClassroomStudent(Base):
    __tablename__ = "classroom_students"

    classroom_id = Column(Integer, ForeignKey("classrooms.id", ondelete="CASCADE"), primary_key=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    joined_at = Column(DateTime, default=utcnow, nullable=False)

# Classroom model
class Classroom(Base):
    __tablename__ = "classrooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    teacher_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    semester = Column(String(20))
    schedule = Column(String(255))
    attendance_threshold = Column(Integer)
    next_class_time = Column(DateTime)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint(
            "attendance_threshold IS NULL OR (attendance_threshold >= 0 AND attendance_threshold <= 100)",
            name="check_attendance_threshold",
        ),
    )

    # Relationships
    teacher = relationship("User", lazy="selectin")
    students = relationship(
        "User",
        secondary="classroom_students",
        lazy="selectin",
        order_by="User.name",
    )

    @property
    def teacher_name(self) -> str:
        return self.teacher.name if self.teacher else ""

    @property
    def student_ids(self):
        return [student.id for student in self.students]

    def has_member(self, user_id: int) -> bool:
        return user_id == self.teacher_id or user_id in self.student_ids
