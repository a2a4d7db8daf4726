from datetime import datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import classroom.models  # noqa: F401
from classroom.database import Base, get_db
from classroom.main import app
from classroom.models.classrooms import Classroom, ClassroomStudent
from classroom.models.users import User, UserRole
from classroom.services.events import AttendanceEventBroker, get_event_broker
from classroom.services.scheduler import get_expiry_scheduler


class FakeClock:
    def __init__(self, start=datetime(2026, 10, 16, 9, 0, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingScheduler:
    def __init__(self):
        self.scheduled = []

    def schedule(self, session_id, end_time):
        self.scheduled.append((session_id, end_time))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def broker():
    return AttendanceEventBroker()


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
async def teacher(db):
    user = User(email="ada@school.edu", name="Ada Teacher", role=UserRole.TEACHER.value, hashed_password="-")
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def students(db):
    users = [
        User(email="bo@school.edu", name="Bo Student", role=UserRole.STUDENT.value, hashed_password="-"),
        User(email="cy@school.edu", name="Cy Student", role=UserRole.STUDENT.value, hashed_password="-"),
    ]
    db.add_all(users)
    await db.commit()
    return users


@pytest.fixture
async def course(db, teacher, students):
    room = Classroom(name="Physics 101", teacher_id=teacher.id, semester="3")
    db.add(room)
    await db.commit()
    db.add_all([ClassroomStudent(classroom_id=room.id, student_id=s.id) for s in students])
    await db.commit()
    return room


@pytest.fixture
def scheduler_stub():
    return RecordingScheduler()


@pytest.fixture
async def client(session_factory, broker, scheduler_stub):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_broker] = lambda: broker
    app.dependency_overrides[get_expiry_scheduler] = lambda: scheduler_stub
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


async def register(client, name, email, role, password="correct-horse"):
    response = await client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "role": role, "password": password},
    )
    assert response.status_code == 201, response.text
    response = await client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
async def teacher_headers(client):
    return await register(client, "Grace Teacher", "grace@school.edu", "TEACHER")


@pytest.fixture
async def student_headers(client):
    return await register(client, "Linus Student", "linus@school.edu", "STUDENT")


@pytest.fixture
async def other_student_headers(client):
    return await register(client, "Margo Student", "margo@school.edu", "STUDENT")


@pytest.fixture
async def classroom_id(client, teacher_headers, student_headers):
    response = await client.post(
        "/api/classrooms",
        json={"name": "Algorithms", "semester": "5", "schedule": "Mon 10:00"},
        headers=teacher_headers,
    )
    assert response.status_code == 201, response.text
    room_id = response.json()["id"]
    response = await client.post(f"/api/classrooms/{room_id}/join", headers=student_headers)
    assert response.status_code == 200, response.text
    return room_id
