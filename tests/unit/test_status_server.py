"""Unit tests for the status HTTP endpoints."""

import pytest
from aiohttp.test_utils import TestClient, TestServer

from scribe.status_server import StatusServer


@pytest.fixture
def status_server():
    return StatusServer(
        bot_status=lambda: {"username": "Scribe#0001", "id": "1", "ready": True},
        active_groups=lambda: [{"group_id": "g1", "room_id": "r1", "state": "ready", "started_at": None}],
    )


@pytest.mark.unit
class TestStatusServer:

    @pytest.mark.asyncio
    async def test_health(self, status_server):
        async with TestClient(TestServer(status_server.build_app())) as client:
            response = await client.get("/")
            body = await response.json()

        assert response.status == 200
        assert body["status"] == "online"
        assert "timestamp" in body

    @pytest.mark.asyncio
    async def test_status(self, status_server):
        async with TestClient(TestServer(status_server.build_app())) as client:
            response = await client.get("/status")
            body = await response.json()

        assert body["bot"]["ready"] is True
        assert body["groups"][0]["group_id"] == "g1"
        assert body["uptime"] >= 0

    @pytest.mark.asyncio
    async def test_status_includes_storage(self):
        server = StatusServer(
            bot_status=lambda: {"ready": False},
            active_groups=lambda: [],
            storage_stats=lambda: {"session_count": 0},
        )
        async with TestClient(TestServer(server.build_app())) as client:
            body = await (await client.get("/status")).json()

        assert body["storage"] == {"session_count": 0}
