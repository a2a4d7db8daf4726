from datetime import datetime, timedelta, timezone


async def test_register_login_and_me(client):
    response = await client.post(
        "/api/auth/register",
        json={"name": "Ida", "email": "Ida@School.edu", "role": "STUDENT", "password": "long-enough"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "ida@school.edu"
    assert "hashed_password" not in body

    response = await client.post("/api/auth/login", json={"email": "ida@school.edu", "password": "long-enough"})
    assert response.status_code == 200
    token = response.json()
    assert token["token_type"] == "bearer"
    assert token["role"] == "STUDENT"

    response = await client.get("/api/auth/me", headers={"Authorization": f"Bearer {token['access_token']}"})
    assert response.status_code == 200
    assert response.json()["id"] == token["user_id"]


async def test_register_twice_is_rejected(client, student_headers):
    response = await client.post(
        "/api/auth/register",
        json={"name": "Linus again", "email": "linus@school.edu", "role": "STUDENT", "password": "whatever-pass"},
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "User already exists"


async def test_short_password_is_rejected(client):
    response = await client.post(
        "/api/auth/register",
        json={"name": "Short", "email": "short@school.edu", "role": "TEACHER", "password": "abc"},
    )
    assert response.status_code == 422


async def test_wrong_password_is_unauthorized(client, student_headers):
    response = await client.post("/api/auth/login", json={"email": "linus@school.edu", "password": "wrong-horse"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Incorrect email or password"


async def test_requests_without_token_are_unauthorized(client):
    assert (await client.get("/api/auth/me")).status_code == 401
    response = await client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


async def test_students_cannot_create_classrooms(client, student_headers):
    response = await client.post("/api/classrooms", json={"name": "Nope"}, headers=student_headers)
    assert response.status_code == 403


async def test_create_join_and_list(client, teacher_headers, student_headers, classroom_id):
    response = await client.get(f"/api/classrooms/{classroom_id}", headers=teacher_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["name"] == "Algorithms"
    assert body["teacher_name"] == "Grace Teacher"
    assert [s["name"] for s in body["students"]] == ["Linus Student"]

    teacher_rooms = (await client.get("/api/classrooms", headers=teacher_headers)).json()
    student_rooms = (await client.get("/api/classrooms", headers=student_headers)).json()
    assert [room["id"] for room in teacher_rooms] == [classroom_id]
    assert [room["id"] for room in student_rooms] == [classroom_id]


async def test_joining_twice_keeps_one_enrollment(client, student_headers, classroom_id):
    response = await client.post(f"/api/classrooms/{classroom_id}/join", headers=student_headers)
    assert response.status_code == 200
    assert len(response.json()["student_ids"]) == 1


async def test_join_unknown_classroom(client, student_headers):
    response = await client.post("/api/classrooms/9999/join", headers=student_headers)
    assert response.status_code == 404
    assert response.json()["detail"] == "Classroom not found"


async def test_outsiders_cannot_see_classroom(client, other_student_headers, classroom_id):
    response = await client.get(f"/api/classrooms/{classroom_id}", headers=other_student_headers)
    assert response.status_code == 403
    assert response.json()["detail"] == "Not a member of this classroom"


async def test_only_owner_updates_classroom(client, teacher_headers, classroom_id):
    response = await client.patch(
        f"/api/classrooms/{classroom_id}",
        json={"attendance_threshold": 80, "schedule": "Tue 14:00"},
        headers=teacher_headers,
    )
    assert response.status_code == 200
    assert response.json()["attendance_threshold"] == 80
    assert response.json()["schedule"] == "Tue 14:00"

    other = await client.post(
        "/api/auth/register",
        json={"name": "Hopper", "email": "hopper@school.edu", "role": "TEACHER", "password": "another-pass"},
    )
    assert other.status_code == 201
    login = await client.post("/api/auth/login", json={"email": "hopper@school.edu", "password": "another-pass"})
    headers = {"Authorization": f"Bearer {login.json()['access_token']}"}

    response = await client.patch(f"/api/classrooms/{classroom_id}", json={"name": "Mine"}, headers=headers)
    assert response.status_code == 403


async def test_threshold_out_of_range(client, teacher_headers, classroom_id):
    response = await client.patch(
        f"/api/classrooms/{classroom_id}", json={"attendance_threshold": 120}, headers=teacher_headers
    )
    assert response.status_code == 422


async def test_reminder_due_within_the_hour(client, teacher_headers, student_headers, classroom_id):
    response = await client.get(f"/api/classrooms/{classroom_id}/reminder", headers=student_headers)
    assert response.json()["due"] is False

    soon = datetime.now(timezone.utc) + timedelta(minutes=30)
    response = await client.patch(
        f"/api/classrooms/{classroom_id}", json={"next_class_time": soon.isoformat()}, headers=teacher_headers
    )
    assert response.status_code == 200

    reminder = (await client.get(f"/api/classrooms/{classroom_id}/reminder", headers=student_headers)).json()
    assert reminder["due"] is True
    assert 29 <= reminder["minutes_until_start"] <= 30


async def test_reminder_not_due_for_later_class(client, teacher_headers, classroom_id):
    later = datetime.now(timezone.utc) + timedelta(hours=3)
    await client.patch(
        f"/api/classrooms/{classroom_id}", json={"next_class_time": later.isoformat()}, headers=teacher_headers
    )

    reminder = (await client.get(f"/api/classrooms/{classroom_id}/reminder", headers=teacher_headers)).json()
    assert reminder["due"] is False
    assert reminder["minutes_until_start"] is None
