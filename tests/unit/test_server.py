"""Tests for the FastAPI app factory and the ToolServer lifecycle."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from toolbridge.server import TOOL_INVOKED_EVENT, ToolServer, create_app
from tests.conftest import RecordingSink


def _events(sink):
    return [json.loads(frame[len("data: "):-2]) for frame in sink.frames]


@pytest.fixture
def server(registry, settings):
    return ToolServer(registry, settings=settings)


class TestCreateApp:
    def test_state_exposes_collaborators(self, dispatcher, settings):
        from toolbridge.mcp.connections import ConnectionManager

        connections = ConnectionManager()
        app = create_app(dispatcher, connections, settings)
        assert app.state.dispatcher is dispatcher
        assert app.state.connections is connections
        assert app.state.settings is settings
        assert app.title == "toolbridge"

    @pytest.mark.asyncio
    async def test_cors_preflight(self, server):
        transport = httpx.ASGITransport(app=server.app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.options(
                "/rpc",
                headers={
                    "Origin": "https://agent.acme.io",
                    "Access-Control-Request-Method": "POST",
                },
            )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"


class TestToolInvokedEvents:
    @pytest.mark.asyncio
    async def test_tool_call_is_broadcast(self, server):
        sink = RecordingSink()
        await server.connections.connect(sink)

        transport = httpx.ASGITransport(app=server.app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post(
                "/rpc",
                json={"method": "tools/call", "params": {"name": "echo", "arguments": {"msg": "hi"}}},
            )

        assert response.json() == {"result": {"msg": "hi"}}
        events = _events(sink)
        assert [event["event"] for event in events] == ["connected", TOOL_INVOKED_EVENT]
        data = events[1]["data"]
        assert data["name"] == "echo"
        assert data["ok"] is True
        assert isinstance(data["latency_ms"], int)

    @pytest.mark.asyncio
    async def test_failed_call_is_broadcast(self, server):
        sink = RecordingSink()
        await server.connections.connect(sink)

        await server.dispatcher.dispatch("tools/call", {"name": "fail", "arguments": {"msg": "x"}})

        assert _events(sink)[-1]["data"]["ok"] is False

    @pytest.mark.asyncio
    async def test_rejected_call_is_not_broadcast(self, server):
        sink = RecordingSink()
        await server.connections.connect(sink)

        await server.dispatcher.dispatch("tools/call", {"name": "echo", "arguments": {}})
        await server.dispatcher.dispatch("tools/call", {"name": "missing", "arguments": {}})

        assert [event["event"] for event in _events(sink)] == ["connected"]

    @pytest.mark.asyncio
    async def test_manual_broadcast(self, server):
        sink = RecordingSink()
        await server.connections.connect(sink)
        assert await server.broadcast("notice", {"text": "maintenance"}) == 1
        assert _events(sink)[-1] == {"event": "notice", "data": {"text": "maintenance"}}


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_start_and_stop(self, server, registry):
        await server.start(host="127.0.0.1", port=0)
        try:
            assert server.running
            assert registry.frozen
            with pytest.raises(RuntimeError, match="already started"):
                await server.start(host="127.0.0.1", port=0)
        finally:
            await server.stop()
        assert not server.running

    @pytest.mark.asyncio
    async def test_stop_closes_event_streams(self, server):
        sink = RecordingSink()
        await server.connections.connect(sink)
        await server.start(host="127.0.0.1", port=0)
        await server.stop()
        assert sink.closed
        assert server.connections.count == 0

    @pytest.mark.asyncio
    async def test_stop_without_start(self, server):
        await server.stop()
        assert not server.running


class TestUnhandledErrors:
    def _client(self, registry, settings):
        server = ToolServer(registry, settings=settings)

        @server.app.get("/boom")
        async def boom():
            raise RuntimeError("kaboom")

        return TestClient(server.app, raise_server_exceptions=False)

    def test_debug_details_follow_server_settings(self, registry, settings):
        settings.debug = True
        response = self._client(registry, settings).get("/boom")

        assert response.status_code == 500
        assert response.json()["error"] == {
            "code": "InternalError",
            "message": "Internal server error",
            "details": {"type": "RuntimeError", "reason": "kaboom"},
        }

    def test_details_hidden_without_debug(self, registry, settings):
        response = self._client(registry, settings).get("/boom")

        assert response.status_code == 500
        assert "details" not in response.json()["error"]
