"""
Tool registry: the default ToolExecutor implementation.
"""

from typing import Any, Union

import structlog

from ..api.types import ToolDefinition
from .base import BaseTool, Tool, ToolResult

logger = structlog.get_logger()


class ToolRegistry:
    """Registry for managing tools."""

    def __init__(self, tools: list[Union[BaseTool, Tool]] | None = None):
        self._tools: dict[str, Union[BaseTool, Tool]] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: Union[BaseTool, Tool]) -> None:
        """Register a tool, replacing any tool with the same name."""
        self._tools[tool.name] = tool
        logger.debug("Tool registered", tool_name=tool.name)

    def unregister(self, name: str) -> None:
        if name in self._tools:
            del self._tools[name]
            logger.debug("Tool unregistered", tool_name=name)

    def get(self, name: str) -> Union[BaseTool, Tool, None]:
        return self._tools.get(name)

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def list_tools(self) -> list[str]:
        return list(self._tools.keys())

    def definitions(self) -> list[ToolDefinition]:
        """Tool definitions in registration order."""
        return [tool.to_definition() for tool in self._tools.values()]

    async def execute(self, name: str, tool_input: Any) -> ToolResult:
        """Execute a tool by name with its decoded JSON input."""
        tool = self.get(name)
        if tool is None:
            return ToolResult(success=False, error=f"Tool '{name}' not found")

        if tool_input is None:
            tool_input = {}
        if not isinstance(tool_input, dict):
            return ToolResult(success=False, error="tool input must be a JSON object")

        try:
            logger.info("Executing tool", tool_name=name)
            result = await tool.execute(**tool_input)
            logger.info("Tool executed", tool_name=name, success=result.success)
            return result
        except Exception as e:
            logger.error("Tool execution error", tool_name=name, error=str(e))
            return ToolResult(success=False, error=str(e))
