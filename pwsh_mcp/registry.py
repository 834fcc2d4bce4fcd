"""
Tool registry for pwsh-mcp.

Maps tool names to their parameter shape and handler. Built once at startup
and frozen; membership never changes afterwards.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum
import logging
from typing import Any

from mcp.types import Tool

from pwsh_mcp.envelope import ToolResponse
from pwsh_mcp.errors import ToolArgumentError, ToolRegistrationError, UnknownToolError

logger = logging.getLogger("pwsh-mcp.registry")

ToolHandler = Callable[[dict[str, Any]], ToolResponse]


class ParamKind(Enum):
    REQUIRED_STRING = "required_string"
    OPTIONAL_STRING = "optional_string"


@dataclass(frozen=True)
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    kind: ParamKind
    description: str

    @property
    def required(self) -> bool:
        return self.kind is ParamKind.REQUIRED_STRING


@dataclass(frozen=True)
class ToolDefinition:
    """Complete definition of a tool."""

    name: str
    description: str
    parameters: tuple[ToolParameter, ...]
    handler: ToolHandler

    def input_schema(self) -> dict[str, Any]:
        """JSON Schema for the tool's arguments."""
        return {
            "type": "object",
            "properties": {
                p.name: {"type": "string", "description": p.description}
                for p in self.parameters
            },
            "required": [p.name for p in self.parameters if p.required],
        }

    def to_mcp_tool(self) -> Tool:
        return Tool(name=self.name, description=self.description, inputSchema=self.input_schema())


class ToolRegistry:
    """Name → ToolDefinition mapping with lookup and dispatch."""

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        self._frozen = False

    def register(self, definition: ToolDefinition) -> None:
        """
        Add a tool.

        Raises:
            ToolRegistrationError: If the name is taken or the registry is frozen.
        """
        if self._frozen:
            raise ToolRegistrationError(
                f"Registry is frozen; cannot register '{definition.name}'"
            )
        if definition.name in self._tools:
            raise ToolRegistrationError(f"Tool '{definition.name}' is already registered")
        self._tools[definition.name] = definition
        logger.debug(f"Registered tool: {definition.name}")

    def freeze(self) -> ToolRegistry:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)

    def names(self) -> list[str]:
        return list(self._tools)

    def get(self, name: str) -> ToolDefinition:
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(name) from None

    def mcp_tools(self) -> list[Tool]:
        return [d.to_mcp_tool() for d in self._tools.values()]

    def check_arguments(self, name: str, arguments: dict[str, Any] | None) -> dict[str, Any]:
        """
        Check arguments against the tool's declared parameters.

        Returns the arguments with optional parameters that were omitted or
        null removed.

        Raises:
            UnknownToolError: If the tool does not exist.
            ToolArgumentError: On missing, mistyped or unexpected arguments.
        """
        definition = self.get(name)
        arguments = dict(arguments or {})
        declared = {p.name for p in definition.parameters}

        unexpected = sorted(set(arguments) - declared)
        if unexpected:
            raise ToolArgumentError(
                f"Unexpected argument(s) for {name}: {', '.join(unexpected)}"
            )

        for param in definition.parameters:
            value = arguments.get(param.name)
            if value is None:
                if param.required:
                    raise ToolArgumentError(f"{param.name} is required")
                arguments.pop(param.name, None)
                continue
            if not isinstance(value, str):
                raise ToolArgumentError(
                    f"{param.name} must be a string, got {type(value).__name__}"
                )
        return arguments

    def dispatch(self, name: str, arguments: dict[str, Any]) -> ToolResponse:
        """
        Run a tool's handler.

        Handler exceptions are converted to an error response; only
        UnknownToolError propagates.
        """
        definition = self.get(name)
        try:
            return definition.handler(arguments)
        except Exception as e:
            logger.exception(f"Tool {name} failed")
            return ToolResponse.error(f"Error in {name}: {e}")
