import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from roster_api.app.core.events import event_bus
from roster_api.app.main import create_app


@pytest_asyncio.fixture
async def client(notifier):
    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as async_client:
        yield async_client
    await event_bus.drain()


async def _register(client, email, first_name, phone=None, headers=None):
    response = await client.post(
        "/api/v1/users/",
        json={
            "email": email,
            "first_name": first_name,
            "last_name": "Tester",
            "phone": phone,
            "password": "secret123",
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


async def _login(client, email):
    response = await client.post("/api/v1/users/login", json={"email": email, "password": "secret123"})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest_asyncio.fixture
async def roster(client):
    """An administrator, two members and a service with one assignment."""
    admin = await _register(client, "admin@example.org", "Ada")
    alice = await _register(client, "alice@example.org", "Alice")
    bob = await _register(client, "bob@example.org", "Bob", phone="+15550000002")
    headers = {
        "admin": await _login(client, "admin@example.org"),
        "alice": await _login(client, "alice@example.org"),
        "bob": await _login(client, "bob@example.org"),
    }
    response = await client.post(
        "/api/v1/services/",
        json={
            "title": "Sunday service",
            "date": "2026-11-01",
            "time": "10:00",
            "location": "Main hall",
            "status": "PUBLISHED",
            "assignments": [{"user_id": alice["id"], "role": "Sound"}],
        },
        headers=headers["admin"],
    )
    assert response.status_code == 201, response.text
    service = response.json()
    return {"admin": admin, "alice": alice, "bob": bob, "headers": headers, "service": service}


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_registration_and_login(client):
    first = await _register(client, "admin@example.org", "Ada")
    second = await _register(client, "alice@example.org", "Alice")
    assert first["role_id"] == 1
    assert second["role_id"] == 3
    assert "password" not in second

    duplicate = await client.post(
        "/api/v1/users/",
        json={"email": "ALICE@example.org", "first_name": "A", "last_name": "B", "password": "secret123"},
    )
    assert duplicate.status_code == 409

    bad_login = await client.post("/api/v1/users/login", json={"email": "alice@example.org", "password": "nope"})
    assert bad_login.status_code == 401
    assert bad_login.headers["www-authenticate"] == "Bearer"

    headers = await _login(client, "alice@example.org")
    me = await client.get("/api/v1/users/me", headers=headers)
    assert me.json()["email"] == "alice@example.org"


@pytest.mark.asyncio
async def test_missing_or_bad_token_is_401(client):
    missing = await client.get("/api/v1/assignments/mine")
    assert missing.status_code == 401
    assert missing.json()["detail"] == "Not authenticated"
    assert missing.headers["www-authenticate"] == "Bearer"

    response = await client.get("/api/v1/assignments/mine", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Invalid or expired token"
    assert response.headers["www-authenticate"] == "Bearer"


@pytest.mark.asyncio
async def test_notification_history_limit_is_capped(client, roster):
    headers = roster["headers"]["alice"]
    url = "/api/v1/notifications/"
    assert (await client.get(url, params={"limit": 50}, headers=headers)).status_code == 200
    assert (await client.get(url, params={"limit": 51}, headers=headers)).status_code == 400
    assert (await client.get(url, params={"limit": 0}, headers=headers)).status_code == 400


@pytest.mark.asyncio
async def test_admin_routes_reject_members(client, roster):
    alice_headers = roster["headers"]["alice"]
    response = await client.post(
        "/api/v1/services/",
        json={"title": "X", "date": "2026-11-02", "time": "10:00", "location": "Hall"},
        headers=alice_headers,
    )
    assert response.status_code == 403
    assert (await client.get("/api/v1/swap-requests/admin", headers=alice_headers)).status_code == 403
    assert (await client.get("/api/v1/audit/logs", headers=alice_headers)).status_code == 403


@pytest.mark.asyncio
async def test_assignment_answer_status_codes(client, roster):
    headers = roster["headers"]
    assignment_id = roster["service"]["assignments"][0]["id"]
    url = f"/api/v1/assignments/{assignment_id}"

    no_reason = await client.patch(url, json={"action": "decline"}, headers=headers["alice"])
    assert no_reason.status_code == 400
    assert no_reason.json()["detail"] == "Reason is required when declining"

    assert (await client.patch(url, json={"action": "shrug"}, headers=headers["alice"])).status_code == 400
    assert (await client.patch(url, json={"action": "accept"}, headers=headers["bob"])).status_code == 403
    missing = await client.patch("/api/v1/assignments/999", json={"action": "accept"}, headers=headers["alice"])
    assert missing.status_code == 404

    declined = await client.patch(url, json={"action": "decline", "reason": "sick"}, headers=headers["alice"])
    assert declined.status_code == 200
    assert declined.json()["status"] == "DECLINED"
    assert declined.json()["service_title"] == "Sunday service"

    again = await client.patch(url, json={"action": "accept"}, headers=headers["alice"])
    assert again.status_code == 409

    notifications = await client.get("/api/v1/notifications/", headers=headers["alice"])
    types = [n["type"] for n in notifications.json()]
    assert types.count("assignment_response") == 1

    logs = await client.get("/api/v1/audit/logs", params={"object_type": "assignment"}, headers=headers["admin"])
    assert logs.status_code == 200
    assert "decline" in [log["action"] for log in logs.json()]


@pytest.mark.asyncio
async def test_swap_over_http(client, roster, notifier):
    headers = roster["headers"]
    created = await client.post(
        "/api/v1/swap-requests/",
        json={"to_user_id": roster["bob"]["id"], "service_id": roster["service"]["id"], "message": "Please"},
        headers=headers["alice"],
    )
    assert created.status_code == 201, created.text
    swap_id = created.json()["id"]

    assert (await client.get("/api/v1/swap-requests/admin", headers=headers["admin"])).json() == []

    forbidden = await client.patch(f"/api/v1/swap-requests/{swap_id}", json={"decision": "accept"}, headers=headers["alice"])
    assert forbidden.status_code == 403

    accepted = await client.patch(f"/api/v1/swap-requests/{swap_id}", json={"decision": "accept"}, headers=headers["bob"])
    assert accepted.status_code == 200
    assert accepted.json()["status"] == "accepted"

    replay = await client.patch(f"/api/v1/swap-requests/{swap_id}", json={"decision": "decline"}, headers=headers["bob"])
    assert replay.status_code == 409

    admin_view = await client.get("/api/v1/swap-requests/admin", headers=headers["admin"])
    assert [s["id"] for s in admin_view.json()] == [swap_id]

    bobs = (await client.get("/api/v1/assignments/mine", headers=headers["bob"])).json()
    assert [(a["role"], a["status"]) for a in bobs] == [("Sound", "PENDING")]
    await event_bus.drain()
    assert [s["to"] for s in notifier.sms] == ["+15550000002"]


@pytest.mark.asyncio
async def test_availability_over_http(client, roster):
    headers = roster["headers"]
    body = {"date": "2026-11-01", "status": "Available"}

    created = await client.post("/api/v1/availability/", json=body, headers=headers["alice"])
    assert created.status_code == 201
    assert created.json()["status"] == "available"
    entry_id = created.json()["id"]

    assert (await client.post("/api/v1/availability/", json=body, headers=headers["alice"])).status_code == 409
    bad = await client.post("/api/v1/availability/", json={"date": "2026-11-03", "status": "later"}, headers=headers["alice"])
    assert bad.status_code == 400
    malformed = await client.post("/api/v1/availability/", json={"status": "busy"}, headers=headers["alice"])
    assert malformed.status_code == 400

    other = await client.patch(f"/api/v1/availability/{entry_id}", json={"status": "busy"}, headers=headers["bob"])
    assert other.status_code == 403
    assert (await client.delete(f"/api/v1/availability/{entry_id}", headers=headers["bob"])).status_code == 403

    upsert = await client.put("/api/v1/availability/", json={"date": "2026-11-01", "status": "busy"}, headers=headers["alice"])
    assert upsert.status_code == 200
    assert upsert.json()["id"] == entry_id

    everyone = await client.get("/api/v1/availability/all", headers=headers["admin"])
    assert [e["status"] for e in everyone.json()] == ["busy"]

    assert (await client.delete(f"/api/v1/availability/{entry_id}", headers=headers["alice"])).status_code == 204
    assert (await client.get(f"/api/v1/availability/{entry_id}", headers=headers["alice"])).status_code == 404


@pytest.mark.asyncio
async def test_cancelling_a_service_notifies_assignees(client, roster, notifier):
    headers = roster["headers"]
    service_id = roster["service"]["id"]

    cancelled = await client.patch(
        f"/api/v1/services/{service_id}/status", json={"status": "cancelled"}, headers=headers["admin"]
    )
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "CANCELLED"

    reopened = await client.patch(
        f"/api/v1/services/{service_id}/status", json={"status": "PUBLISHED"}, headers=headers["admin"]
    )
    assert reopened.status_code == 409

    types = [n["type"] for n in (await client.get("/api/v1/notifications/", headers=headers["alice"])).json()]
    assert "service_cancelled" in types
    await event_bus.drain()
    assert any(m["subject"].startswith("Service cancelled") for m in notifier.emails)

    assert (await client.delete(f"/api/v1/services/{service_id}", headers=headers["admin"])).status_code == 204
    assert (await client.get(f"/api/v1/services/{service_id}", headers=headers["admin"])).status_code == 404
    assert (await client.get("/api/v1/assignments/mine", headers=headers["alice"])).json() == []
