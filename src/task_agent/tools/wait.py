"""
Short in-iteration pause (for pages or APIs that need a moment).
"""

import asyncio

from .base import Tool, ToolParameter, ToolResult


def create_wait_tool(max_seconds: int = 60) -> Tool:
    """Create the ``wait`` tool, capped at ``max_seconds``."""

    async def wait_handler(seconds: float = 1) -> ToolResult:
        try:
            seconds = float(seconds)
        except (TypeError, ValueError):
            return ToolResult(success=False, error=f"Invalid seconds: {seconds!r}")

        seconds = max(0.0, min(seconds, float(max_seconds)))
        await asyncio.sleep(seconds)
        return ToolResult(success=True, output=f"Waited {seconds:g}s", data={"ok": True, "waited": seconds})

    return Tool(
        name="wait",
        description=(
            f"Pause for a few seconds (max {max_seconds}). For long pauses use sleep_until instead."
        ),
        parameters=[
            ToolParameter(
                name="seconds",
                param_type="number",
                description="How many seconds to wait",
                required=True,
            ),
        ],
        handler=wait_handler,
    )
