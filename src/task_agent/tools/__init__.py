"""
Tools module: external actions the agent loop delegates to.
"""

from .base import BaseTool, Tool, ToolParameter, ToolResult
from .registry import ToolRegistry, create_tool_registry
from .fetch import FetchUrlTool
from .wait import create_wait_tool

__all__ = [
    "BaseTool",
    "Tool",
    "ToolParameter",
    "ToolResult",
    "ToolRegistry",
    "create_tool_registry",
    "FetchUrlTool",
    "create_wait_tool",
]
