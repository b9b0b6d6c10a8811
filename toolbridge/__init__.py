"""
toolbridge - tool invocation protocol server.

Exposes registered tools to a calling agent over a JSON RPC endpoint
(``initialize``, ``tools/list``, ``tools/call``, ``executeQuery``) and
pushes events to listeners over a server-sent event stream.
"""

__version__ = "1.0.0"

from .mcp import (
    ConnectionManager,
    ProtocolDispatcher,
    ToolDefinition,
    ToolParameters,
    ToolRegistry,
)
from .server import ToolServer, create_app

__all__ = [
    "ConnectionManager",
    "ProtocolDispatcher",
    "ToolDefinition",
    "ToolParameters",
    "ToolRegistry",
    "ToolServer",
    "create_app",
]
