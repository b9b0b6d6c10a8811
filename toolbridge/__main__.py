#!/usr/bin/env python3
"""
Entry point: python -m toolbridge

Loads configuration, registers the directory tools and serves them until
SIGINT/SIGTERM. Missing directory credentials stop the process before it
starts serving.

Usage:
    python -m toolbridge [--host HOST] [--port PORT] [--log-level LEVEL]
"""

import argparse
import asyncio
import signal
import sys
from typing import List, Optional

import structlog

from .core.config import ConfigurationError, Settings, get_settings, require_directory_config
from .core.logging import setup_logging
from .directory import DirectoryClientFactory, DirectoryCredentials, register_directory_tools
from .mcp.registry import ToolRegistry
from .server import ToolServer

logger = structlog.get_logger("toolbridge.main")


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="toolbridge",
        description="Serve identity-directory tools over RPC and server-sent events.",
    )
    parser.add_argument("--host", default=None, help="Bind address (default: TOOLBRIDGE_HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, default=None, help="Port (default: TOOLBRIDGE_PORT or 3000)")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    return parser.parse_args(argv)


def build_server(settings: Settings) -> ToolServer:
    """Assemble the registry and server from validated settings."""
    credentials = DirectoryCredentials(
        domain=settings.directory_domain,
        client_id=settings.directory_client_id,
        client_secret=settings.directory_client_secret,
    )
    factory = DirectoryClientFactory(credentials, timeout=settings.directory_timeout)

    registry = ToolRegistry()
    names = register_directory_tools(registry, factory)
    logger.info("Loaded tools", count=len(names), domain=credentials.domain)
    return ToolServer(registry, settings=settings)


async def serve(
    server: ToolServer,
    host: Optional[str],
    port: Optional[int],
    stop_requested: Optional[asyncio.Event] = None,
) -> None:
    """
    Run until a termination signal arrives or the HTTP server exits.

    SIGINT and SIGTERM set ``stop_requested``; setting it directly has the
    same effect.
    """
    if stop_requested is None:
        stop_requested = asyncio.Event()
    loop = asyncio.get_running_loop()
    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_requested.set)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):
            pass  # Windows, or not running in the main thread

    try:
        await server.start(host=host, port=port)

        waiter = asyncio.create_task(stop_requested.wait())
        closed = asyncio.create_task(server.wait_closed())
        await asyncio.wait({waiter, closed}, return_when=asyncio.FIRST_COMPLETED)
        waiter.cancel()
        closed.cancel()

        if stop_requested.is_set():
            logger.info("Received termination signal, shutting down")
        await server.stop()
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    if args.log_level:
        settings = settings.model_copy(update={"log_level": args.log_level.upper()})
    setup_logging(settings.log_level, json_logs=settings.json_logs)

    try:
        require_directory_config(settings)
    except ConfigurationError as exc:
        logger.error("Refusing to start", missing=exc.missing)
        sys.stderr.write(f"{exc}\n")
        return 1

    server = build_server(settings)
    try:
        asyncio.run(serve(server, args.host, args.port))
    except RuntimeError as exc:
        logger.error("Server failed", error=str(exc))
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
