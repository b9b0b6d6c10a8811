"""Error taxonomy for RPC dispatch.

Every error raised while dispatching a request is a ``ProtocolError``
subclass; the dispatcher converts it into the ``{"error": {...}}`` envelope
with the HTTP-style status carried by the class.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional


class ProtocolError(Exception):
    """Base class for recoverable dispatch errors."""

    code: str = "InternalError"
    status_code: int = 500

    def __init__(self, message: str, *, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details is not None:
            payload["details"] = self.details
        return payload


class InvalidRequestError(ProtocolError):
    """The envelope itself is malformed (missing method, params not an object)."""

    code = "InvalidRequest"
    status_code = 400


class InvalidParametersError(ProtocolError):
    """Tool arguments failed schema validation.

    ``violations`` holds every field-level problem found, in the order the
    validator reported them.
    """

    code = "InvalidParameters"
    status_code = 400

    def __init__(self, violations: List[Dict[str, Any]], *, tool: Optional[str] = None) -> None:
        fields = ", ".join(v["field"] for v in violations) or "payload"
        prefix = f"Invalid parameters for tool '{tool}'" if tool else "Invalid parameters"
        super().__init__(f"{prefix}: {fields}", details=violations)
        self.violations = violations
        self.tool = tool


class ToolNotFoundError(ProtocolError, LookupError):
    """Raised when the requested tool is not registered."""

    code = "ToolNotFound"
    status_code = 404

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool not found: {name}")
        self.name = name


class UnknownMethodError(ProtocolError):
    code = "UnknownMethod"
    status_code = 404

    def __init__(self, method: str) -> None:
        super().__init__(f"Unknown method: {method}")
        self.method = method


class HandlerError(ProtocolError):
    """A tool handler (or query backend) raised while running.

    The original exception is kept as ``__cause__`` and its text is part of
    the message so callers can diagnose the backend failure.
    """

    code = "HandlerError"
    status_code = 500

    def __init__(self, message: str, *, original: Optional[BaseException] = None) -> None:
        details = None
        if original is not None:
            details = {"type": type(original).__name__, "reason": str(original)}
        super().__init__(message, details=details)
        self.original = original


class QueryNotSupportedError(ProtocolError):
    code = "QueryNotSupported"
    status_code = 501

    def __init__(self) -> None:
        super().__init__("Direct query execution is not supported")


class DuplicateToolError(ValueError):
    """Raised by a strict registry when a tool name is registered twice."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Tool '{name}' is already registered")
        self.name = name
