"""Shared Pydantic contracts for the RPC and event-stream wire formats."""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class RpcRequest(BaseModel):
    """HTTP payload for POST /rpc."""

    method: str = Field(..., description="RPC method name")
    params: Dict[str, Any] = Field(default_factory=dict, description="Method specific payload")

    @field_validator("params", mode="before")
    @classmethod
    def _default_params(cls, value: Any) -> Any:
        return {} if value is None else value


class ToolCallParams(BaseModel):
    """Params of a ``tools/call`` request."""

    name: str = Field(..., min_length=1, description="Registered tool name")
    arguments: Dict[str, Any] = Field(default_factory=dict, description="Raw tool arguments")

    @field_validator("name")
    @classmethod
    def _reject_blank_name(cls, value: str) -> str:
        # Names are identifiers; they are matched exactly, never rewritten
        if not value.strip():
            raise ValueError("name must not be blank")
        return value

    @field_validator("arguments", mode="before")
    @classmethod
    def _default_arguments(cls, value: Any) -> Any:
        return {} if value is None else value


class ExecuteQueryParams(BaseModel):
    query: str = Field(..., description="Free-form query handed to the query backend")


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class ToolDescriptor(BaseModel):
    """Discovery metadata for one tool. Never carries the handler."""

    name: str
    description: str
    parameters: Dict[str, Any] = Field(..., description="JSON schema of the tool arguments")


class ToolsListResult(BaseModel):
    tools: List[ToolDescriptor]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class ToolCapabilities(_CamelModel):
    discovery: bool = True
    execution: bool = True


class ServerCapabilities(_CamelModel):
    tools: ToolCapabilities = Field(default_factory=ToolCapabilities)
    streaming: bool = True


class ServerInfo(_CamelModel):
    name: str
    version: str


class InitializeResult(_CamelModel):
    """Static capability metadata returned by ``initialize``."""

    protocol_version: int
    capabilities: ServerCapabilities = Field(default_factory=ServerCapabilities)
    server_info: ServerInfo


class Violation(BaseModel):
    """One field-level validation problem."""

    field: str = Field(..., description="Dotted location of the offending value")
    message: str = Field(..., description="Human readable message")
    type: str = Field(..., description="Machine-friendly violation kind")


class ErrorBody(BaseModel):
    """Structured error emitted in place of a result."""

    code: str = Field(..., description="Machine-friendly error code")
    message: str = Field(..., description="Human readable message")
    details: Optional[Any] = Field(None, description="Optional contextual metadata")


class RpcResponse(BaseModel):
    """Outcome of one dispatch: either a result or an error, never both."""

    status_code: int = 200
    result: Any = None
    error: Optional[ErrorBody] = None

    @classmethod
    def success(cls, result: Any) -> "RpcResponse":
        return cls(status_code=200, result=result)

    @classmethod
    def failure(cls, status_code: int, error: ErrorBody) -> "RpcResponse":
        return cls(status_code=status_code, error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def body(self) -> Dict[str, Any]:
        """Wire body: ``{"result": ...}`` or ``{"error": {...}}``."""
        if self.error is not None:
            return {"error": self.error.model_dump(exclude_none=True)}
        return {"result": jsonable_encoder(self.result)}


# ---------------------------------------------------------------------------
# Event stream
# ---------------------------------------------------------------------------


class EventFrame(BaseModel):
    """A broadcast event as written to event-stream listeners."""

    event: str
    data: Any = None

    def encode(self) -> str:
        """Serialize as one text-stream frame terminated by a blank line."""
        body = json.dumps(
            {"event": self.event, "data": jsonable_encoder(self.data)},
            separators=(",", ":"),
        )
        return f"data: {body}\n\n"
