"""Unit tests for ToolRegistry."""

import pytest

from toolbridge.mcp.errors import DuplicateToolError, ToolNotFoundError
from toolbridge.mcp.registry import ToolDefinition, ToolRegistry
from tests.conftest import AddParams, EchoParams

pytestmark = pytest.mark.mcp


async def _noop(params):
    return {}


def _definition(name, params=EchoParams, description="A test tool"):
    return ToolDefinition(name=name, description=description, params_model=params, handler=_noop)


class TestToolRegistry:
    """Test suite for ToolRegistry."""

    def test_register_and_lookup(self):
        registry = ToolRegistry()
        definition = registry.register(_definition("echo"))
        assert registry.lookup("echo") is definition
        assert "echo" in registry
        assert len(registry) == 1

    def test_lookup_missing_returns_none(self):
        assert ToolRegistry().lookup("nonexistent") is None

    def test_resolve_missing_raises(self):
        with pytest.raises(ToolNotFoundError, match="nonexistent"):
            ToolRegistry().resolve("nonexistent")

    def test_register_duplicate_tool_raises_error(self):
        registry = ToolRegistry()
        registry.register(_definition("echo"))
        with pytest.raises(DuplicateToolError, match="already registered"):
            registry.register(_definition("echo"))

    def test_non_strict_registry_replaces_in_place(self):
        registry = ToolRegistry(strict=False)
        registry.register(_definition("first"))
        registry.register(_definition("second"))
        registry.register(_definition("first", params=AddParams, description="Replaced"))

        assert registry.names() == ["first", "second"]
        assert registry.lookup("first").description == "Replaced"
        assert registry.lookup("first").params_model is AddParams

    def test_list_tools_preserves_registration_order(self):
        registry = ToolRegistry()
        for name in ("zeta", "alpha", "mid"):
            registry.register(_definition(name))
        assert [tool.name for tool in registry.list_tools()] == ["zeta", "alpha", "mid"]

    def test_list_tools_exposes_metadata_only(self):
        registry = ToolRegistry()
        registry.register(_definition("echo", description="Echo the message back"))
        descriptor = registry.list_tools()[0]
        dumped = descriptor.model_dump()
        assert set(dumped) == {"name", "description", "parameters"}
        assert dumped["description"] == "Echo the message back"
        assert dumped["parameters"]["required"] == ["msg"]

    def test_tool_decorator_registers_handler(self):
        registry = ToolRegistry()

        @registry.tool("echo", "Echo", EchoParams)
        async def echo(params):
            return params.model_dump()

        assert registry.lookup("echo").handler is echo

    def test_freeze_blocks_registration(self):
        registry = ToolRegistry()
        registry.register(_definition("echo"))
        registry.freeze()
        assert registry.frozen
        with pytest.raises(RuntimeError, match="frozen"):
            registry.register(_definition("other"))
        assert registry.names() == ["echo"]

    def test_empty_name_rejected(self):
        with pytest.raises(ValueError):
            _definition("  ")
