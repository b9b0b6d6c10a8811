"""
Protocol dispatcher - routes decoded RPC requests to internal behaviour.

Routes:
  initialize     → static capability/version metadata
  ping           → {}
  tools/list     → registry discovery metadata
  tools/call     → registry lookup → schema validation → handler
  executeQuery   → optional query backend (not supported by default)

The dispatcher keeps no per-call state. Every error raised while handling
a request is converted here into an error response; nothing escapes as an
unhandled exception.
"""

from __future__ import annotations

import inspect
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Type, TypeVar, Union

import structlog
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import (
    HandlerError,
    InvalidRequestError,
    ProtocolError,
    QueryNotSupportedError,
    UnknownMethodError,
)
from .protocol import (
    ErrorBody,
    ExecuteQueryParams,
    InitializeResult,
    RpcRequest,
    RpcResponse,
    ServerInfo,
    ToolCallParams,
    ToolsListResult,
)
from .registry import ToolRegistry
from .validation import validate_or_raise

logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class QueryBackend(Protocol):
    """Extension point for free-form ``executeQuery`` requests."""

    async def execute_query(self, query: str) -> Any:
        ...


@dataclass(frozen=True)
class ToolInvocation:
    """Summary of a finished ``tools/call`` handed to the ``on_invoke`` hook."""

    name: str
    ok: bool
    latency_ms: int
    error: Optional[str] = None


OnInvokeCallback = Union[
    Callable[[ToolInvocation], Awaitable[None]],
    Callable[[ToolInvocation], None],
]


class ProtocolDispatcher:
    """Single dispatcher type parameterised by an injected tool registry."""

    def __init__(
        self,
        registry: ToolRegistry,
        *,
        server_name: str = "toolbridge",
        server_version: str = "1.0.0",
        protocol_version: int = 1,
        query_backend: Optional[QueryBackend] = None,
        on_invoke: Optional[OnInvokeCallback] = None,
    ) -> None:
        if registry is None:
            raise ValueError("registry is required")
        self._registry = registry
        self._query_backend = query_backend
        self._on_invoke = on_invoke
        self._initialize_result = InitializeResult(
            protocol_version=protocol_version,
            server_info=ServerInfo(name=server_name, version=server_version),
        )
        self._methods: Dict[str, Callable[[Dict[str, Any]], Awaitable[Any]]] = {
            "initialize": self._initialize,
            "ping": self._ping,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "executeQuery": self._execute_query,
        }

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    @property
    def methods(self) -> list:
        return list(self._methods)

    # ── entry points ─────────────────────────────────────────────

    async def handle(self, payload: Any) -> RpcResponse:
        """Decode a raw ``{method, params}`` envelope and dispatch it."""
        try:
            request = _parse(RpcRequest, payload, "Malformed request envelope")
        except ProtocolError as exc:
            logger.warning("Rejected RPC envelope", error=exc.message)
            return _error_response(exc)
        return await self.dispatch(request.method, request.params)

    async def dispatch(self, method: str, params: Optional[Dict[str, Any]] = None) -> RpcResponse:
        """Route one request and produce its response."""
        logger.debug("Handling RPC method", method=method)
        try:
            handler = self._methods.get(method)
            if handler is None:
                raise UnknownMethodError(method)
            if params is None:
                params = {}
            if not isinstance(params, dict):
                raise InvalidRequestError("params must be an object")
            result = await handler(params)
        except ProtocolError as exc:
            logger.info(
                "RPC request failed",
                method=method,
                code=exc.code,
                status_code=exc.status_code,
                error=exc.message,
            )
            return _error_response(exc)
        except Exception as exc:
            logger.error(
                "RPC dispatch crashed",
                method=method,
                error=str(exc),
                exc_info=True,
            )
            return RpcResponse.failure(
                500,
                ErrorBody(code="InternalError", message="Internal server error"),
            )
        return RpcResponse.success(result)

    # ── methods ──────────────────────────────────────────────────

    async def _initialize(self, params: Dict[str, Any]) -> Dict[str, Any]:
        client_info = params.get("clientInfo") or {}
        logger.info(
            "Client initialize",
            client=client_info.get("name", "?") if isinstance(client_info, dict) else "?",
        )
        return self._initialize_result.model_dump(by_alias=True)

    async def _ping(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    async def _tools_list(self, params: Dict[str, Any]) -> Dict[str, Any]:
        return ToolsListResult(tools=self._registry.list_tools()).model_dump()

    async def _tools_call(self, params: Dict[str, Any]) -> Any:
        call = _parse(ToolCallParams, params, "Invalid tools/call params")
        definition = self._registry.resolve(call.name)
        validated = validate_or_raise(definition.params_model, call.arguments, tool=definition.name)

        started = time.perf_counter()
        try:
            result = await definition.handler(validated)
        except ProtocolError:
            await self._notify(definition.name, started, error="protocol_error")
            raise
        except Exception as exc:
            latency_ms = await self._notify(definition.name, started, error=str(exc))
            logger.warning(
                "Tool handler failed",
                tool=definition.name,
                error=str(exc),
                error_type=type(exc).__name__,
                latency_ms=latency_ms,
            )
            raise HandlerError(
                f"Tool '{definition.name}' failed: {exc}",
                original=exc,
            ) from exc

        latency_ms = await self._notify(definition.name, started)
        logger.info("Tool invoked", tool=definition.name, latency_ms=latency_ms)
        return result

    async def _execute_query(self, params: Dict[str, Any]) -> Any:
        request = _parse(ExecuteQueryParams, params, "Invalid executeQuery params")
        if self._query_backend is None:
            raise QueryNotSupportedError()
        try:
            return await self._query_backend.execute_query(request.query)
        except NotImplementedError as exc:
            raise QueryNotSupportedError() from exc
        except Exception as exc:
            logger.warning("Query backend failed", error=str(exc))
            raise HandlerError(f"Query failed: {exc}", original=exc) from exc

    # ── helpers ──────────────────────────────────────────────────

    async def _notify(self, name: str, started: float, error: Optional[str] = None) -> int:
        latency_ms = int((time.perf_counter() - started) * 1000)
        if self._on_invoke is None:
            return latency_ms
        invocation = ToolInvocation(name=name, ok=error is None, latency_ms=latency_ms, error=error)
        try:
            maybe_await = self._on_invoke(invocation)
            if inspect.isawaitable(maybe_await):
                await maybe_await
        except Exception as exc:
            logger.warning("on_invoke hook failed", tool=name, error=str(exc))
        return latency_ms


def _parse(model: Type[ModelT], payload: Any, message: str) -> ModelT:
    try:
        return model.model_validate(payload)
    except PydanticValidationError as exc:
        details = [
            {
                "field": ".".join(str(part) for part in error.get("loc", ())) or "params",
                "message": error.get("msg", ""),
                "type": error.get("type", ""),
            }
            for error in exc.errors(include_url=False)
        ]
        raise InvalidRequestError(message, details=details) from exc


def _error_response(exc: ProtocolError) -> RpcResponse:
    return RpcResponse.failure(exc.status_code, ErrorBody(**exc.to_payload()))
