"""
Tests for transcript compaction.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from task_agent.agent.compaction import CompactionConfig, CompactionResult, compact_transcript
from task_agent.agent.transcript import SUMMARY_PREFIX
from task_agent.llm.base import LLMMessage, LLMResponse


def _messages(count: int) -> list[LLMMessage]:
    roles = ["user", "assistant"]
    return [LLMMessage(role=roles[i % 2], content=f"Message {i}") for i in range(count)]


def _mock_llm(summary: str = "Summary of the work so far") -> MagicMock:
    llm = MagicMock()
    llm.generate = AsyncMock(return_value=LLMResponse(content=summary))
    return llm


def test_needs_compaction():
    config = CompactionConfig(max_messages=60, keep_recent=20)

    assert config.needs_compaction(_messages(60)) is False
    assert config.needs_compaction(_messages(61)) is True


def test_needs_compaction_disabled():
    config = CompactionConfig(enabled=False)
    assert config.needs_compaction(_messages(500)) is False


@pytest.mark.asyncio
async def test_compaction_61_turns_to_21():
    """One summary turn followed by the 20 most recent turns, in order."""
    llm = _mock_llm()
    messages = _messages(61)

    compacted, result = await compact_transcript(llm, messages, CompactionConfig(max_messages=60, keep_recent=20))

    assert len(compacted) == 21
    assert compacted[0].role == "user"
    assert compacted[0].content.startswith(SUMMARY_PREFIX)
    assert "Summary of the work so far" in compacted[0].content
    assert [m.content for m in compacted[1:]] == [f"Message {i}" for i in range(41, 61)]

    assert result.success is True
    assert result.original_message_count == 61
    assert result.compacted_message_count == 21
    assert result.summary == "Summary of the work so far"
    assert result.compacted is True


@pytest.mark.asyncio
async def test_compaction_summarizes_only_older_turns():
    llm = _mock_llm()

    await compact_transcript(llm, _messages(61), CompactionConfig(max_messages=60, keep_recent=20))

    prompt = llm.generate.call_args.kwargs["messages"][0].content
    assert "Message 40" in prompt
    assert "Message 41" not in prompt


@pytest.mark.asyncio
async def test_compaction_falls_back_on_llm_error():
    """A failed summary drops the old turns instead of raising."""
    llm = MagicMock()
    llm.generate = AsyncMock(side_effect=RuntimeError("rate limited"))

    compacted, result = await compact_transcript(llm, _messages(61), CompactionConfig(max_messages=60, keep_recent=20))

    assert len(compacted) == 20
    assert compacted[0].content == "Message 41"
    assert result.success is False
    assert result.summary is None
    assert "rate limited" in result.error


@pytest.mark.asyncio
async def test_compaction_falls_back_on_empty_summary():
    llm = _mock_llm(summary="   ")

    compacted, result = await compact_transcript(llm, _messages(61))

    assert len(compacted) == 20
    assert result.success is False


@pytest.mark.asyncio
async def test_no_compaction_below_ceiling():
    llm = _mock_llm()
    messages = _messages(10)

    compacted, result = await compact_transcript(llm, messages)

    assert compacted == messages
    assert result.compacted is False
    llm.generate.assert_not_called()


def test_compaction_result_compacted_flag():
    result = CompactionResult(
        original_message_count=5,
        compacted_message_count=5,
        summary=None,
        success=True,
    )
    assert result.compacted is False
