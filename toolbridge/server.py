"""
Tool server - FastAPI application and embedded uvicorn lifecycle.

Usage:
    registry = ToolRegistry()
    register_directory_tools(registry, credentials)
    server = ToolServer(registry)
    await server.start()
    ...
    await server.stop()
"""

from __future__ import annotations

import asyncio
import contextlib
from typing import Any, Optional

import structlog
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .core.config import Settings, get_settings
from .core.exceptions import install_exception_handlers
from .mcp.connections import ConnectionManager
from .mcp.dispatcher import ProtocolDispatcher, QueryBackend, ToolInvocation
from .mcp.registry import ToolRegistry
from .mcp.routes import create_mcp_router

logger = structlog.get_logger(__name__)

#: Event broadcast to listeners after every tools/call that reached a handler.
TOOL_INVOKED_EVENT = "tool_invoked"


def create_app(
    dispatcher: ProtocolDispatcher,
    connections: ConnectionManager,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.app_name,
        description="Tool invocation protocol server",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
    )

    origins = settings.parsed_cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    install_exception_handlers(app)
    app.include_router(create_mcp_router(dispatcher, connections))

    app.state.settings = settings
    app.state.dispatcher = dispatcher
    app.state.connections = connections
    return app


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves signal handling to the owning process."""

    def install_signal_handlers(self) -> None:
        return None

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class ToolServer:
    """Composes registry, dispatcher, connection manager and HTTP transport."""

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        settings: Optional[Settings] = None,
        query_backend: Optional[QueryBackend] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.registry = registry
        self.connections = ConnectionManager(queue_size=self.settings.sse_queue_size)
        self.dispatcher = ProtocolDispatcher(
            registry,
            server_name=self.settings.app_name,
            server_version=self.settings.app_version,
            protocol_version=self.settings.protocol_version,
            query_backend=query_backend,
            on_invoke=self._on_invoke,
        )
        self.app = create_app(self.dispatcher, self.connections, self.settings)
        self._server: Optional[_EmbeddedServer] = None
        self._serve_task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._serve_task is not None and not self._serve_task.done()

    async def broadcast(self, event: str, data: Any = None) -> int:
        """Push an event to every connected listener."""
        return await self.connections.broadcast(event, data)

    async def _on_invoke(self, invocation: ToolInvocation) -> None:
        await self.connections.broadcast(
            TOOL_INVOKED_EVENT,
            {
                "name": invocation.name,
                "ok": invocation.ok,
                "latency_ms": invocation.latency_ms,
            },
        )

    async def start(self, host: Optional[str] = None, port: Optional[int] = None) -> None:
        """Freeze the registry and start serving HTTP in the background."""
        if self._serve_task is not None:
            raise RuntimeError("Server already started")

        self.registry.freeze()
        config = uvicorn.Config(
            self.app,
            host=host or self.settings.host,
            port=port if port is not None else self.settings.port,
            log_config=None,
            log_level=self.settings.log_level.lower(),
        )
        self._server = _EmbeddedServer(config)
        self._serve_task = asyncio.create_task(self._server.serve())

        while not self._server.started:
            if self._serve_task.done():
                try:
                    await self._serve_task
                except SystemExit as exc:
                    raise RuntimeError(
                        f"Server failed to start on {config.host}:{config.port}"
                    ) from exc
                raise RuntimeError(f"Server exited during start-up on {config.host}:{config.port}")
            await asyncio.sleep(0.05)

        logger.info(
            "Server listening",
            host=config.host,
            port=config.port,
            tools=len(self.registry),
        )

    async def stop(self) -> None:
        """Close every event stream, then stop the HTTP server."""
        closed = self.connections.close_all()
        if self._server is not None:
            self._server.should_exit = True
        if self._serve_task is not None:
            await self._serve_task
            self._serve_task = None
        self._server = None
        logger.info("Server stopped", closed_connections=closed)

    async def wait_closed(self) -> None:
        """Wait until the HTTP server task finishes."""
        if self._serve_task is not None:
            await asyncio.shield(self._serve_task)
