"""
Context Compaction - bounded transcript size for long-running tasks.

When the transcript grows past a turn ceiling, the older prefix is
summarized by the LLM into a single user turn and the most recent turns
are kept verbatim. If summarization fails the old prefix is dropped.
"""

from dataclasses import dataclass

import structlog

from ..llm.base import BaseLLM, LLMMessage
from .transcript import apply_compaction

logger = structlog.get_logger()

DEFAULT_MAX_MESSAGES = 60  # Compact once the transcript exceeds this many turns
DEFAULT_KEEP_RECENT = 20  # Turns always kept verbatim
MAX_CHARS_PER_TURN = 2000

SUMMARY_SYSTEM_PROMPT = "You are a summarizer for an autonomous agent's working history. Be specific and factual."

SUMMARY_INSTRUCTIONS = """Summarize the following agent history into one compact but detailed paragraph.
Include:
- What was accomplished so far
- The current state (where the agent is, what it was doing)
- Important findings and values stored in memory
- Approaches that failed and what was tried
This summary replaces the history, so anything not in it is lost."""


@dataclass
class CompactionConfig:
    """Configuration for transcript compaction."""

    max_messages: int = DEFAULT_MAX_MESSAGES
    keep_recent: int = DEFAULT_KEEP_RECENT
    enabled: bool = True

    def needs_compaction(self, messages: list[LLMMessage]) -> bool:
        return self.enabled and len(messages) > self.max_messages


@dataclass
class CompactionResult:
    """Result of a compaction operation."""

    original_message_count: int
    compacted_message_count: int
    summary: str | None
    success: bool
    error: str | None = None

    @property
    def compacted(self) -> bool:
        return self.compacted_message_count != self.original_message_count


def _render_turn(message: LLMMessage) -> str:
    """Render one turn as plain text for the summarizer."""
    lines = []
    if message.content:
        lines.append(f"{message.role.upper()}: {message.content[:MAX_CHARS_PER_TURN]}")
    for tc in message.tool_calls or []:
        lines.append(f"ASSISTANT CALLED {tc.name}({tc.arguments})")
    for part in message.tool_results or []:
        lines.append(f"RESULT {part.tool_name}: {part.content[:MAX_CHARS_PER_TURN]}")
    return "\n".join(lines)


async def _generate_summary(llm: BaseLLM, messages: list[LLMMessage]) -> str:
    """Use the LLM to generate a summary of the older turns."""
    history = "\n\n".join(_render_turn(m) for m in messages)

    response = await llm.generate(
        messages=[LLMMessage(role="user", content=f"{SUMMARY_INSTRUCTIONS}\n\nHistory:\n{history}")],
        system_prompt=SUMMARY_SYSTEM_PROMPT,
    )

    summary = response.content.strip()
    if not summary:
        raise ValueError("Summarizer returned an empty summary")
    return summary


async def compact_transcript(
    llm: BaseLLM,
    messages: list[LLMMessage],
    config: CompactionConfig | None = None,
) -> tuple[list[LLMMessage], CompactionResult]:
    """Compact a transcript by summarizing all but the most recent turns.

    Never raises: a failed summary degrades to keeping only the recent turns.

    Args:
        llm: LLM to use for summarization
        messages: Full transcript
        config: Compaction configuration

    Returns:
        Tuple of (compacted messages, compaction result)
    """
    config = config or CompactionConfig()

    if not config.needs_compaction(messages):
        return messages, CompactionResult(
            original_message_count=len(messages),
            compacted_message_count=len(messages),
            summary=None,
            success=True,
        )

    keep = min(config.keep_recent, len(messages))
    older = messages[: len(messages) - keep]

    logger.info(
        "Starting transcript compaction",
        message_count=len(messages),
        summarizing=len(older),
        keeping=keep,
    )

    try:
        summary: str | None = await _generate_summary(llm, older)
        error = None
    except Exception as e:
        logger.error("Compaction summarization failed, dropping old turns", error=str(e))
        summary = None
        error = str(e)

    compacted = apply_compaction(messages, keep, summary)

    result = CompactionResult(
        original_message_count=len(messages),
        compacted_message_count=len(compacted),
        summary=summary,
        success=summary is not None,
        error=error,
    )

    logger.info(
        "Compaction complete",
        original=result.original_message_count,
        compacted=result.compacted_message_count,
        summarized=result.success,
    )

    return compacted, result
