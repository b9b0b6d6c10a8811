"""FastAPI router exposing the RPC endpoint and the event stream."""

from __future__ import annotations

import json
from typing import AsyncIterator

import structlog
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sse_starlette.sse import EventSourceResponse

from .connections import ConnectionManager, QueueSink
from .dispatcher import ProtocolDispatcher
from .errors import InvalidRequestError

logger = structlog.get_logger(__name__)

#: Headers sent with every event-stream response.
SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable proxy buffering for real-time streaming
}


def create_mcp_router(
    dispatcher: ProtocolDispatcher,
    connections: ConnectionManager,
) -> APIRouter:
    """Create the router for ``POST /rpc``, ``GET /events`` and ``GET /health``."""

    if dispatcher is None:
        raise ValueError("dispatcher is required")
    if connections is None:
        raise ValueError("connections is required")

    router = APIRouter(tags=["mcp"])

    @router.post("/rpc")
    async def rpc(request: Request) -> JSONResponse:
        try:
            payload = await request.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            error = InvalidRequestError(f"Request body is not valid JSON: {exc}")
            logger.warning("Unparseable RPC body", error=error.message)
            return JSONResponse(status_code=error.status_code, content={"error": error.to_payload()})

        response = await dispatcher.handle(payload)
        return JSONResponse(status_code=response.status_code, content=response.body())

    @router.get("/events")
    async def events(request: Request) -> EventSourceResponse:
        """
        Open a server-push event stream.

        The first frame is the ``connected`` handshake; every broadcast
        follows as ``data: {"event": ..., "data": ...}`` frames.
        """
        logger.info(
            "Opening event stream",
            client_ip=request.client.host if request.client else None,
        )
        return EventSourceResponse(
            stream_events(connections),
            headers=SSE_HEADERS,
            sep="\n",
        )

    @router.get("/health")
    async def health() -> dict:
        return {
            "status": "ok",
            "tools": len(dispatcher.registry),
            "connections": connections.count,
        }

    return router


async def stream_events(connections: ConnectionManager) -> AsyncIterator[bytes]:
    """
    Register a listener and yield its encoded frames until it is closed.

    The connection is released as soon as the generator finishes, whether
    the client went away or the server closed the sink.
    """
    sink = QueueSink(connections.queue_size)
    connection = await connections.connect(sink)
    try:
        async for frame in sink.frames():
            yield frame.encode("utf-8")
    finally:
        connections.disconnect(connection.id)
