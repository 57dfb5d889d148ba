"""
Tool registry: the action executor for everything the agent loop does not
handle itself.
"""

from typing import Any, Union

import structlog

from ..config import Settings, get_settings
from ..llm.base import ToolDefinition
from .base import BaseTool, Tool, ToolResult

logger = structlog.get_logger()


class ToolRegistry:
    """Registry for managing tools."""

    def __init__(self):
        self._tools: dict[str, Union[BaseTool, Tool]] = {}

    def register(self, tool: Union[BaseTool, Tool]) -> None:
        """Register a tool."""
        self._tools[tool.name] = tool
        logger.debug("Tool registered", tool_name=tool.name)

    def unregister(self, name: str) -> None:
        """Unregister a tool."""
        if name in self._tools:
            del self._tools[name]
            logger.debug("Tool unregistered", tool_name=name)

    def get(self, name: str) -> Union[BaseTool, Tool, None]:
        """Get a tool by name."""
        return self._tools.get(name)

    def list_tools(self) -> list[str]:
        """List all registered tool names."""
        return list(self._tools.keys())

    def get_definitions(self) -> list[ToolDefinition]:
        """Get all tool definitions for LLM."""
        return [tool.to_definition() for tool in self._tools.values()]

    async def execute(self, name: str, arguments: dict[str, Any]) -> ToolResult:
        """Execute a tool by name."""
        tool = self.get(name)
        if tool is None:
            return ToolResult(
                success=False,
                output="",
                error=f"Unknown tool: {name}",
            )

        try:
            logger.info("Executing tool", tool_name=name, arguments=arguments)
            result = await tool.execute(**arguments)
            logger.info("Tool executed", tool_name=name, success=result.success)
            return result
        except Exception as e:
            logger.error("Tool execution error", tool_name=name, error=str(e))
            return ToolResult(
                success=False,
                output="",
                error=str(e),
            )


def create_tool_registry(settings: Settings | None = None) -> ToolRegistry:
    """Create a registry with the default tools enabled in settings.

    Each agent loop gets its own registry so concurrently scheduled runs
    never share tool state.
    """
    settings = settings or get_settings()
    registry = ToolRegistry()

    if settings.enable_fetch_url:
        from .fetch import FetchUrlTool
        registry.register(FetchUrlTool(
            timeout=settings.fetch_timeout_seconds,
            max_chars=settings.fetch_max_chars,
        ))

    from .wait import create_wait_tool
    registry.register(create_wait_tool(max_seconds=settings.max_wait_seconds))

    return registry
