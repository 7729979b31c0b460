"""
Base classes for tools and the executor contract used by the agent loop.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Coroutine, Protocol, runtime_checkable

from ..api.types import ToolDefinition


@dataclass
class ToolResult:
    """Result from a tool execution.

    When ``success`` is False the loop reports ``output`` if non-empty,
    otherwise ``error``, as an ``is_error`` tool_result.
    """

    success: bool
    output: str = ""
    data: Any = None
    error: str | None = None


@runtime_checkable
class ToolExecutor(Protocol):
    """What the agent loop needs from a tool backend."""

    def has_tool(self, name: str) -> bool: ...

    async def execute(self, name: str, tool_input: Any) -> ToolResult: ...


@dataclass
class ToolParameter:
    """Definition of a tool parameter."""

    name: str
    param_type: str  # string, integer, boolean, array, object
    description: str
    required: bool = True
    default: Any = None
    enum: list[str] | None = None


@dataclass
class Tool:
    """Tool built from a coroutine function and a parameter list."""

    name: str
    description: str
    parameters: list[ToolParameter]
    handler: Callable[..., Coroutine[Any, Any, ToolResult]]

    def input_schema(self) -> dict[str, Any]:
        """JSON Schema for the tool's input object."""
        properties: dict[str, Any] = {}
        required = []

        for param in self.parameters:
            prop: dict[str, Any] = {"type": param.param_type, "description": param.description}
            if param.enum:
                prop["enum"] = param.enum
            if param.default is not None:
                prop["default"] = param.default
            properties[param.name] = prop
            if param.required:
                required.append(param.name)

        schema: dict[str, Any] = {"type": "object", "properties": properties}
        if required:
            schema["required"] = required
        return schema

    def to_definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema(),
        )

    async def execute(self, **kwargs: Any) -> ToolResult:
        return await self.handler(**kwargs)


class BaseTool(ABC):
    """Base class for class-based tools."""

    @property
    @abstractmethod
    def name(self) -> str:
        pass

    @property
    @abstractmethod
    def description(self) -> str:
        pass

    @property
    @abstractmethod
    def input_schema(self) -> dict[str, Any]:
        """JSON Schema for the tool's input object."""
        pass

    @abstractmethod
    async def execute(self, **kwargs: Any) -> ToolResult:
        pass

    def to_definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema,
        )
