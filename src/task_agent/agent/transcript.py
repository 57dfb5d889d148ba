"""
Transcript rebuilding: fold session events into conversation turns.

The live agent loop feeds every event it appends through the same
``TranscriptBuilder`` that ``rebuild_transcript`` uses on resume, so a
rebuilt transcript matches the one that was held in memory.
"""

import json
from typing import Any, Iterable

from ..llm.base import LLMMessage, ToolCall, ToolResultPart
from ..session.events import (
    ContextCompactedEvent,
    LLMResponseEvent,
    SessionEvent,
    SessionStartEvent,
    ToolCallEvent,
    ToolErrorEvent,
)

SUMMARY_PREFIX = "[Session history summary]"


def render_result(result: Any) -> str:
    """Render a successful action result as tool-turn content."""
    if isinstance(result, str):
        return result
    return json.dumps(result, ensure_ascii=False, sort_keys=True, default=str)


def summary_message(summary: str) -> LLMMessage:
    return LLMMessage(role="user", content=f"{SUMMARY_PREFIX}\n{summary}")


def apply_compaction(
    messages: list[LLMMessage],
    keep_recent: int,
    summary: str | None,
) -> list[LLMMessage]:
    """Replace all but the last ``keep_recent`` turns with an optional summary turn."""
    recent = messages[len(messages) - keep_recent:] if keep_recent > 0 else []
    if summary is None:
        return list(recent)
    return [summary_message(summary)] + list(recent)


class TranscriptBuilder:
    """Incrementally applies events to a list of turns."""

    def __init__(self, messages: list[LLMMessage] | None = None):
        self.messages: list[LLMMessage] = list(messages or [])

    def apply(self, event: SessionEvent) -> None:
        if isinstance(event, SessionStartEvent):
            self.messages.append(LLMMessage(role="user", content=event.goal))

        elif isinstance(event, LLMResponseEvent):
            tool_calls = [
                ToolCall(id=tc.tool_call_id, name=tc.tool_name, arguments=dict(tc.args))
                for tc in event.tool_calls
            ]
            if event.text or tool_calls:
                self.messages.append(LLMMessage(
                    role="assistant",
                    content=event.text,
                    tool_calls=tool_calls or None,
                ))

        elif isinstance(event, (ToolCallEvent, ToolErrorEvent)):
            if isinstance(event, ToolErrorEvent):
                part = ToolResultPart(
                    tool_call_id=event.tool_call_id,
                    tool_name=event.tool_name,
                    content=f"ERROR: {event.error}",
                    is_error=True,
                )
            else:
                part = ToolResultPart(
                    tool_call_id=event.tool_call_id,
                    tool_name=event.tool_name,
                    content=render_result(event.result),
                )

            last = self.messages[-1] if self.messages else None
            if last is not None and last.role == "tool":
                last.tool_results = (last.tool_results or []) + [part]
            else:
                self.messages.append(LLMMessage(role="tool", tool_results=[part]))

        elif isinstance(event, ContextCompactedEvent):
            keep = event.to_messages - (1 if event.summary is not None else 0)
            self.messages = apply_compaction(self.messages, keep, event.summary)

        # iteration_start, memory_update, scheduled, sleeping_until and
        # session_end carry state, not conversation


def rebuild_transcript(events: Iterable[SessionEvent]) -> list[LLMMessage]:
    """Rebuild the conversation for a session from its ordered events."""
    builder = TranscriptBuilder()
    for event in events:
        builder.apply(event)
    return builder.messages
