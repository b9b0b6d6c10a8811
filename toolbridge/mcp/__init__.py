"""Tool invocation protocol primitives."""

from .connections import Connection, ConnectionManager, QueueSink
from .dispatcher import ProtocolDispatcher, QueryBackend, ToolInvocation
from .errors import (
    DuplicateToolError,
    HandlerError,
    InvalidParametersError,
    InvalidRequestError,
    ProtocolError,
    QueryNotSupportedError,
    ToolNotFoundError,
    UnknownMethodError,
)
from .protocol import EventFrame, RpcResponse, ToolDescriptor
from .registry import ToolDefinition, ToolRegistry
from .validation import Email, Integer, Number, ToolParameters, validate_arguments

__all__ = [
    "Connection",
    "ConnectionManager",
    "QueueSink",
    "ProtocolDispatcher",
    "QueryBackend",
    "ToolInvocation",
    "DuplicateToolError",
    "HandlerError",
    "InvalidParametersError",
    "InvalidRequestError",
    "ProtocolError",
    "QueryNotSupportedError",
    "ToolNotFoundError",
    "UnknownMethodError",
    "EventFrame",
    "RpcResponse",
    "ToolDescriptor",
    "ToolDefinition",
    "ToolRegistry",
    "Email",
    "Integer",
    "Number",
    "ToolParameters",
    "validate_arguments",
]
