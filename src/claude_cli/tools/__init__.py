"""
Tools module: the executor contract and a registry implementing it.

Concrete tools (file, shell, search) live outside this package and are
registered by the embedding application.
"""

from .base import BaseTool, Tool, ToolExecutor, ToolParameter, ToolResult
from .registry import ToolRegistry

__all__ = [
    "BaseTool",
    "Tool",
    "ToolExecutor",
    "ToolParameter",
    "ToolResult",
    "ToolRegistry",
]
