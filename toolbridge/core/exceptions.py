"""
Global exception handlers for the FastAPI application.

Errors that reach these handlers never went through the dispatcher, so they
are rendered in the same ``{"error": {...}}`` envelope here.
"""

import traceback

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..mcp.errors import ProtocolError
from .config import get_settings

logger = structlog.get_logger(__name__)


async def protocol_exception_handler(request: Request, exc: ProtocolError) -> JSONResponse:
    """Handle protocol errors raised outside the dispatcher."""
    logger.warning(
        "Protocol error",
        path=request.url.path,
        code=exc.code,
        error=exc.message,
    )
    return JSONResponse(status_code=exc.status_code, content={"error": exc.to_payload()})


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handle request validation errors."""
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg", ""),
            "type": error.get("type", ""),
        }
        for error in exc.errors()
    ]
    logger.warning("Validation error", path=request.url.path, errors=errors)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "code": "InvalidRequest",
                "message": "Input validation failed",
                "details": errors,
            }
        },
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Handle HTTP exceptions."""
    logger.warning(
        "HTTP exception",
        path=request.url.path,
        method=request.method,
        status_code=exc.status_code,
        detail=exc.detail,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": {"code": "HTTPError", "message": str(exc.detail)}},
        headers=getattr(exc, "headers", None),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    settings = getattr(request.app.state, "settings", None) or get_settings()

    logger.error(
        "Unhandled exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
        traceback=traceback.format_exc() if settings.debug else None,
    )

    error = {"code": "InternalError", "message": "Internal server error"}
    if settings.debug:
        error["details"] = {"type": type(exc).__name__, "reason": str(exc)}
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": error},
    )


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ProtocolError, protocol_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
