"""
Pytest configuration and fixtures.

Provides:
- A registry with small echo/add/fail tools
- A dispatcher over that registry
- Settings that never read the developer's environment
"""

from typing import List

import pytest
from pydantic import Field

from toolbridge.core.config import Settings, get_settings
from toolbridge.mcp.dispatcher import ProtocolDispatcher
from toolbridge.mcp.registry import ToolRegistry
from toolbridge.mcp.validation import Email, Integer, Number, ToolParameters


class EchoParams(ToolParameters):
    msg: str = Field(..., description="Message to echo")


class AddParams(ToolParameters):
    a: Number
    b: Number = 0


class SignupParams(ToolParameters):
    email: Email
    password: str = Field(..., min_length=8)
    age: Integer = Field(..., ge=13, le=120)
    newsletter: bool = False
    tags: List[str] = Field(default_factory=list)


class RecordingSink:
    """Output sink that remembers every frame it was sent."""

    def __init__(self, fail: bool = False) -> None:
        self.frames: List[str] = []
        self.closed = False
        self.fail = fail

    async def send(self, frame: str) -> None:
        if self.fail:
            raise ConnectionResetError("peer went away")
        self.frames.append(frame)

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        directory_domain=None,
        directory_client_id=None,
        directory_client_secret=None,
        json_logs=False,
    )


@pytest.fixture
def calls():
    """Names of tool handlers invoked during a test, in call order."""
    return []


@pytest.fixture
def registry(calls):
    registry = ToolRegistry()

    @registry.tool("echo", "Echo the message back", EchoParams)
    async def echo(params: EchoParams):
        calls.append("echo")
        return params.model_dump()

    @registry.tool("add", "Add two numbers", AddParams)
    async def add(params: AddParams):
        calls.append("add")
        return {"sum": params.a + params.b}

    @registry.tool("fail", "Always fails", EchoParams)
    async def fail(params: EchoParams):
        calls.append("fail")
        raise RuntimeError(f"backend rejected {params.msg}")

    return registry


@pytest.fixture
def dispatcher(registry):
    return ProtocolDispatcher(registry, server_name="test-server", server_version="9.9.9")
