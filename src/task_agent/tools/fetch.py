"""
Direct HTTP fetch tool.
"""

import json
from typing import Any

import httpx
import structlog
from bs4 import BeautifulSoup

from .base import BaseTool, ToolResult

logger = structlog.get_logger()

USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


def _html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")

    for element in soup(["script", "style", "nav", "footer", "header", "aside"]):
        element.decompose()

    main_content = soup.find("main") or soup.find("article") or soup.find("body") or soup
    text = main_content.get_text(separator="\n", strip=True)
    return "\n".join(line.strip() for line in text.split("\n") if line.strip())


class FetchUrlTool(BaseTool):
    """Plain HTTP GET, useful for APIs and pages that need no interaction."""

    def __init__(
        self,
        timeout: float = 30.0,
        max_chars: int = 8000,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.timeout = timeout
        self.max_chars = max_chars
        self._transport = transport

    @property
    def name(self) -> str:
        return "fetch_url"

    @property
    def description(self) -> str:
        return (
            "Fetch a URL with a direct HTTP GET. Returns the status code and body. "
            "JSON responses are returned as JSON, HTML pages as extracted text."
        )

    @property
    def parameters(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "url": {
                    "type": "string",
                    "description": "Full URL including https://",
                },
                "headers": {
                    "type": "object",
                    "description": "Optional extra request headers",
                },
            },
            "required": ["url"],
        }

    def _truncate(self, text: str) -> str:
        if len(text) <= self.max_chars:
            return text
        return text[: self.max_chars] + "…[truncated]"

    async def execute(self, url: str, headers: dict[str, str] | None = None) -> ToolResult:
        """Fetch the URL and return status plus (truncated) body."""
        request_headers = {"User-Agent": USER_AGENT, "Accept": "application/json, text/html, */*"}
        request_headers.update(headers or {})

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers=request_headers,
                transport=self._transport,
            ) as client:
                response = await client.get(url)
        except httpx.HTTPError as e:
            logger.error("Fetch error", url=url, error=str(e))
            return ToolResult(success=False, error=f"Failed to fetch {url}: {e}")

        content_type = response.headers.get("content-type", "")
        body: Any = response.text

        if "application/json" in content_type:
            try:
                body = response.json()
            except json.JSONDecodeError:
                body = response.text
        elif "text/html" in content_type:
            body = _html_to_text(response.text)

        body_str = body if isinstance(body, str) else json.dumps(body, ensure_ascii=False)

        return ToolResult(
            success=True,
            output=self._truncate(body_str),
            data={
                "ok": response.is_success,
                "status": response.status_code,
                "body": self._truncate(body_str),
            },
        )
