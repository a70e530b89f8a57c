"""Tests for the relay HTTP endpoints."""
import aiohttp
import pytest

from conftest import wait_until

pytestmark = pytest.mark.asyncio


@pytest.fixture
def snapshot(server_relay):
    def _snapshot():
        registry = server_relay.registry
        return (
            registry.connection_ids(),
            registry.router.room_ids(),
            {sid: registry.user_of(sid) for sid in registry.connection_ids()},
        )
    return _snapshot


@pytest.mark.parametrize("path", ["/health", "/socket/health"])
async def test_health(server_app, path):
    _, server_url = server_app
    async with aiohttp.ClientSession() as session:
        async with session.get(f"{server_url}{path}") as resp:
            assert resp.status == 200
            assert resp.headers["Access-Control-Allow-Origin"] == "*"
            body = await resp.json()

    assert body["status"] == "ok"
    assert body["connectedClients"] == 0
    assert body["uptime"] >= 0


async def test_emit_notification_to_absent_user(server_app, make_client):
    _, server_url = server_app
    await make_client()
    await make_client(user_id="someone")

    async with aiohttp.ClientSession() as session:
        async with session.post(f"{server_url}/emit-notification",
                                json={"userId": "nobody", "data": {"title": "x"}}) as resp:
            assert resp.status == 200
            body = await resp.json()

    assert body == {
        "success": True,
        "message": "Notification emitted to user nobody",
        "connectedClients": 2,
        "delivered": 0,
    }


@pytest.mark.parametrize("raw", [b"{not json", b"", b"\xff\xfe"])
async def test_emit_notification_malformed_json(server_app, make_client, snapshot, raw):
    _, server_url = server_app
    client = await make_client(user_id="user-1")
    await client.join_room("proj1")
    before = snapshot()

    async with aiohttp.ClientSession() as session:
        async with session.post(f"{server_url}/emit-notification", data=raw,
                                headers={"Content-Type": "application/json"}) as resp:
            assert resp.status == 400
            body = await resp.json()

    assert body == {"error": "Invalid JSON body"}
    assert snapshot() == before


@pytest.mark.parametrize("payload,error", [
    ([1, 2, 3], "JSON body must be an object"),
    ({"data": {"title": "x"}}, "userId is required"),
    ({"userId": "", "data": {}}, "userId is required"),
    ({"userId": 12, "data": {}}, "userId is required"),
])
async def test_emit_notification_rejects_bad_bodies(server_app, payload, error):
    _, server_url = server_app
    async with aiohttp.ClientSession() as session:
        async with session.post(f"{server_url}/emit-notification", json=payload) as resp:
            assert resp.status == 400
            assert await resp.json() == {"error": error}


async def test_emit_notification_internal_failure_returns_500(server_app, server_relay, monkeypatch):
    _, server_url = server_app

    async def explode(user_id, data):
        raise RuntimeError("downstream failure")

    monkeypatch.setattr(server_relay, "notify_user", explode)

    async with aiohttp.ClientSession() as session:
        async with session.post(f"{server_url}/emit-notification",
                                json={"userId": "user-1", "data": {}}) as resp:
            assert resp.status == 500
            assert await resp.json() == {"error": "Internal server error"}
        # The process keeps serving requests
        async with session.get(f"{server_url}/health") as resp:
            assert resp.status == 200


async def test_broadcast_notification(server_app, make_client):
    _, server_url = server_app
    clients = [await make_client() for _ in range(2)]
    inboxes = [[] for _ in clients]
    for client, inbox in zip(clients, inboxes):
        client.on_notification(inbox.append)

    async with aiohttp.ClientSession() as session:
        async with session.post(f"{server_url}/broadcast-notification",
                                json={"message": "New plan available", "type": "success"}) as resp:
            assert resp.status == 200
            body = await resp.json()

    assert body["delivered"] == 2
    assert await wait_until(lambda: all(inboxes))
    for [payload] in inboxes:
        assert payload["message"] == "New plan available"
        assert payload["type"] == "success"


async def test_broadcast_notification_requires_message(server_app):
    _, server_url = server_app
    async with aiohttp.ClientSession() as session:
        async with session.post(f"{server_url}/broadcast-notification", json={"type": "info"}) as resp:
            assert resp.status == 400
            assert await resp.json() == {"error": "message is required"}


@pytest.mark.parametrize("path", ["/emit-notification", "/health", "/anything/else"])
async def test_cors_preflight(server_app, path):
    _, server_url = server_app
    async with aiohttp.ClientSession() as session:
        async with session.options(f"{server_url}{path}") as resp:
            assert resp.status == 200
            assert resp.headers["Access-Control-Allow-Origin"] == "*"
            assert resp.headers["Access-Control-Allow-Methods"] == "GET, POST, OPTIONS"
            assert resp.headers["Access-Control-Allow-Headers"] == "Content-Type"


async def test_unknown_path_returns_404(server_app):
    _, server_url = server_app
    async with aiohttp.ClientSession() as session:
        async with session.get(f"{server_url}/does-not-exist") as resp:
            assert resp.status == 404
            assert "Penci relay" in await resp.text()
            assert resp.headers["Access-Control-Allow-Origin"] == "*"
