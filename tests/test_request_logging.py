import logging


async def test_request_id_is_echoed(client):
    response = await client.get("/", headers={"X-Request-ID": "abc-123"})
    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "abc-123"


async def test_request_id_is_generated(client):
    response = await client.get("/")
    assert len(response.headers["X-Request-ID"]) == 36


async def test_requests_are_logged_with_status(client, caplog):
    with caplog.at_level(logging.INFO, logger="classroom.request"):
        await client.get("/api/auth/me")

    messages = [r.getMessage() for r in caplog.records if r.name == "classroom.request"]
    assert any("GET /api/auth/me [status: 401]" in m for m in messages)
