"""
Tests for tools module.
"""

import httpx
import pytest
from unittest.mock import AsyncMock

from task_agent.tools import FetchUrlTool, Tool, ToolParameter, ToolRegistry, ToolResult, create_tool_registry, create_wait_tool


def test_tool_result_success():
    """Test successful tool result."""
    result = ToolResult(success=True, output="Test output", data={"key": "value"})

    assert result.success is True
    assert result.error is None
    assert result.payload == {"key": "value"}


def test_tool_result_payload_falls_back_to_output():
    result = ToolResult(success=True, output="plain text")
    assert result.payload == "plain text"


def test_tool_to_definition():
    """Simple tools expose a JSON schema built from their parameters."""
    tool = Tool(
        name="greet",
        description="Say hello",
        parameters=[
            ToolParameter(name="name", param_type="string", description="Who to greet"),
            ToolParameter(name="loud", param_type="boolean", description="Shout", required=False),
        ],
        handler=AsyncMock(),
    )

    definition = tool.to_definition()

    assert definition.name == "greet"
    assert definition.parameters["properties"]["name"]["type"] == "string"
    assert definition.parameters["required"] == ["name"]


def test_fetch_tool_properties():
    tool = FetchUrlTool()

    assert tool.name == "fetch_url"
    assert "url" in tool.parameters["properties"]
    assert tool.parameters["required"] == ["url"]


@pytest.mark.asyncio
async def test_registry_executes_registered_tool():
    handler = AsyncMock(return_value=ToolResult(success=True, output="hi Ada"))
    registry = ToolRegistry()
    registry.register(Tool(
        name="greet",
        description="Say hello",
        parameters=[ToolParameter(name="name", param_type="string", description="Who")],
        handler=handler,
    ))

    result = await registry.execute("greet", {"name": "Ada"})

    assert result.output == "hi Ada"
    handler.assert_awaited_once_with(name="Ada")
    assert registry.list_tools() == ["greet"]


@pytest.mark.asyncio
async def test_registry_unknown_tool():
    result = await ToolRegistry().execute("nope", {})

    assert result.success is False
    assert result.error == "Unknown tool: nope"


@pytest.mark.asyncio
async def test_registry_turns_exceptions_into_errors():
    registry = ToolRegistry()
    registry.register(Tool(
        name="explode",
        description="Always fails",
        parameters=[],
        handler=AsyncMock(side_effect=RuntimeError("kaboom")),
    ))

    result = await registry.execute("explode", {})

    assert result.success is False
    assert result.error == "kaboom"


def test_registry_unregister():
    registry = ToolRegistry()
    registry.register(create_wait_tool())
    registry.unregister("wait")

    assert registry.get("wait") is None


def test_create_tool_registry_respects_settings(settings):
    assert create_tool_registry(settings).list_tools() == ["wait"]

    enabled = settings.model_copy(update={"enable_fetch_url": True})
    assert sorted(create_tool_registry(enabled).list_tools()) == ["fetch_url", "wait"]


def _fetch_tool(handler, max_chars: int = 8000) -> FetchUrlTool:
    return FetchUrlTool(max_chars=max_chars, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_fetch_json():
    tool = _fetch_tool(lambda request: httpx.Response(200, json={"price": 42}))

    result = await tool.execute(url="https://api.example.com/price")

    assert result.success is True
    assert result.data["ok"] is True
    assert result.data["status"] == 200
    assert result.data["body"] == '{"price": 42}'


@pytest.mark.asyncio
async def test_fetch_html_is_converted_to_text():
    html = (
        "<html><head><script>var x = 1;</script></head>"
        "<body><nav>Menu</nav><main><h1>Title</h1><p>Body text</p></main></body></html>"
    )
    tool = _fetch_tool(lambda request: httpx.Response(200, html=html))

    result = await tool.execute(url="https://example.com")

    assert result.data["body"] == "Title\nBody text"


@pytest.mark.asyncio
async def test_fetch_truncates_long_bodies():
    tool = _fetch_tool(lambda request: httpx.Response(200, text="x" * 100), max_chars=10)

    result = await tool.execute(url="https://example.com/big")

    assert result.data["body"] == "x" * 10 + "…[truncated]"


@pytest.mark.asyncio
async def test_fetch_error_status_is_not_ok():
    tool = _fetch_tool(lambda request: httpx.Response(404, text="missing"))

    result = await tool.execute(url="https://example.com/gone")

    assert result.success is True
    assert result.data["ok"] is False
    assert result.data["status"] == 404


@pytest.mark.asyncio
async def test_fetch_network_error():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    result = await _fetch_tool(handler).execute(url="https://down.example.com")

    assert result.success is False
    assert "connection refused" in result.error


@pytest.mark.asyncio
async def test_wait_tool_is_capped():
    tool = create_wait_tool(max_seconds=0)

    result = await tool.execute(seconds=30)

    assert result.success is True
    assert result.data == {"ok": True, "waited": 0.0}


@pytest.mark.asyncio
async def test_wait_tool_rejects_bad_input():
    result = await create_wait_tool().execute(seconds="soon")

    assert result.success is False
