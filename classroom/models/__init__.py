# Import all models to ensure they're registered with SQLAlchemy
from classroom.database import Base
from classroom.models.users import User, UserRole
from classroom.models.classrooms import Classroom, ClassroomStudent
from classroom.models.attendance import AttendanceSession, AttendanceRecord, SessionState, AttendanceStatus
from classroom.models.assignments import Assignment, Submission, QuestionType, SubmissionStatus
