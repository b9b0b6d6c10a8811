"""Ordered in-memory registry of tool definitions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterator, List, Optional, Type

import structlog

from .errors import DuplicateToolError, ToolNotFoundError
from .protocol import ToolDescriptor
from .validation import ToolParameters, parameters_schema

logger = structlog.get_logger(__name__)

ToolHandler = Callable[[Any], Awaitable[Any]]


@dataclass(frozen=True)
class ToolDefinition:
    """A named tool: discovery metadata plus the handler it dispatches to."""

    name: str
    description: str
    params_model: Type[ToolParameters]
    handler: ToolHandler = field(repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.name or not self.name.strip():
            raise ValueError("tool name must not be empty")

    @property
    def parameters(self) -> Dict[str, Any]:
        return parameters_schema(self.params_model)

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            parameters=self.parameters,
        )


class ToolRegistry:
    """
    Mapping of tool name to ``ToolDefinition``.

    Insertion order is discovery order. In strict mode (the default) a
    second registration under the same name raises ``DuplicateToolError``;
    otherwise it replaces the earlier definition in its original position.
    Once frozen the registry is read-only.
    """

    def __init__(self, *, strict: bool = True) -> None:
        self._tools: Dict[str, ToolDefinition] = {}
        self._strict = strict
        self._frozen = False

    def register(self, definition: ToolDefinition) -> ToolDefinition:
        """Register a tool definition."""
        if self._frozen:
            raise RuntimeError(
                f"Cannot register '{definition.name}': registry is frozen"
            )
        replaced = definition.name in self._tools
        if replaced and self._strict:
            raise DuplicateToolError(definition.name)
        self._tools[definition.name] = definition
        logger.info(
            "Registered tool",
            tool=definition.name,
            replaced=replaced,
            fields=sorted(definition.params_model.model_fields),
        )
        return definition

    def tool(
        self,
        name: str,
        description: str,
        params: Type[ToolParameters],
    ) -> Callable[[ToolHandler], ToolHandler]:
        """Decorator registering an async function as the handler of ``name``."""

        def decorator(handler: ToolHandler) -> ToolHandler:
            self.register(
                ToolDefinition(
                    name=name,
                    description=description,
                    params_model=params,
                    handler=handler,
                )
            )
            return handler

        return decorator

    def lookup(self, name: str) -> Optional[ToolDefinition]:
        """Return the definition for ``name`` or None."""
        return self._tools.get(name)

    def resolve(self, name: str) -> ToolDefinition:
        """Return the definition for ``name`` or raise ToolNotFoundError."""
        definition = self._tools.get(name)
        if definition is None:
            raise ToolNotFoundError(name)
        return definition

    def list_tools(self) -> List[ToolDescriptor]:
        """Discovery metadata in registration order, without handlers."""
        return [definition.descriptor() for definition in self._tools.values()]

    def names(self) -> List[str]:
        return list(self._tools)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(list(self._tools.values()))
