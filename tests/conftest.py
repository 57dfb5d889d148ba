"""
Shared fixtures: a scripted LLM and session stores on a temp directory.
"""

import copy
import itertools

import pytest
import pytest_asyncio

from task_agent.config import Settings
from task_agent.llm.base import BaseLLM, LLMMessage, LLMResponse, ToolCall, ToolDefinition
from task_agent.session import FileSessionStore, SQLSessionStore

_call_ids = itertools.count(1)


def call(name: str, **arguments) -> ToolCall:
    """A tool call as the LLM would propose it."""
    return ToolCall(id=f"toolu_{next(_call_ids)}", name=name, arguments=arguments)


def respond(*calls: ToolCall, text: str = "", stop_reason: str | None = None) -> LLMResponse:
    """An LLM response proposing ``calls``."""
    if stop_reason is None:
        stop_reason = "tool_use" if calls else "end_turn"
    return LLMResponse(content=text, tool_calls=list(calls), stop_reason=stop_reason)


class ScriptedLLM(BaseLLM):
    """Replays canned responses and records what it was shown.

    Calls without tools are compaction summaries and are answered with
    ``summary`` (raised instead if it is an exception). Once the script runs
    out every decision is a text-only, non-final response.
    """

    def __init__(self, responses=None, summary="Earlier work summarized."):
        super().__init__(api_key="test-key", model="scripted")
        self.responses = list(responses or [])
        self.summary = summary
        self.calls: list[list[LLMMessage]] = []
        self.system_prompts: list[str | None] = []
        self.tool_names: list[list[str]] = []
        self.summary_calls = 0

    @property
    def provider_name(self) -> str:
        return "scripted"

    async def generate(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition] | None = None,
        system_prompt: str | None = None,
    ) -> LLMResponse:
        if tools is None:
            self.summary_calls += 1
            if isinstance(self.summary, Exception):
                raise self.summary
            return LLMResponse(content=self.summary, stop_reason="end_turn")

        self.calls.append(copy.deepcopy(messages))
        self.system_prompts.append(system_prompt)
        self.tool_names.append([t.name for t in tools])

        if not self.responses:
            return LLMResponse(content="Still working on it.", stop_reason="max_tokens")

        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        session_backend="file",
        sessions_dir=str(tmp_path / "tasks"),
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'sessions.db'}",
        enable_fetch_url=False,
        max_wait_seconds=0,
    )


@pytest_asyncio.fixture
async def file_store(tmp_path):
    store = FileSessionStore(tmp_path / "tasks")
    yield store
    await store.close()


@pytest_asyncio.fixture
async def sql_store(tmp_path):
    store = SQLSessionStore(f"sqlite+aiosqlite:///{tmp_path / 'sessions.db'}")
    yield store
    await store.close()


@pytest_asyncio.fixture(params=["file", "sql"])
async def store(request, tmp_path):
    if request.param == "file":
        store = FileSessionStore(tmp_path / "tasks")
    else:
        store = SQLSessionStore(f"sqlite+aiosqlite:///{tmp_path / 'sessions.db'}")
    yield store
    await store.close()
