import enum
from sqlalchemy import Column, Integer, String, Text, DateTime, CheckConstraint
from classroom.database import Base, utcnow


class UserRole(str, enum.Enum):
    TEACHER = "TEACHER"
    STUDENT = "STUDENT"


# Users
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False)
    hashed_password = Column(Text, nullable=False)
    mobile = Column(String(50))
    course = Column(String(100))
    branch = Column(String(100))
    semester = Column(String(20))
    id_card_details = Column(Text)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("role IN ('TEACHER', 'STUDENT')", name="check_user_role"),
    )

    @property
    def is_teacher(self) -> bool:
        return self.role == UserRole.TEACHER.value

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT.value
