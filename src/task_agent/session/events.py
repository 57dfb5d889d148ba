"""
Session events: the append-only log a run is reconstructed from.

Every event is an immutable pydantic model tagged by ``type``. Timestamps
are informational; order is the order of appends.
"""

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from .models import TaskStatus, utcnow


class _BaseEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    ts: datetime = Field(default_factory=utcnow)


class ToolCallRecord(BaseModel):
    """A tool call as proposed by the oracle."""

    model_config = ConfigDict(frozen=True)

    tool_call_id: str
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)


class SessionStartEvent(_BaseEvent):
    type: Literal["session_start"] = "session_start"
    goal: str


class IterationStartEvent(_BaseEvent):
    type: Literal["iteration_start"] = "iteration_start"
    iteration: int


class LLMResponseEvent(_BaseEvent):
    type: Literal["llm_response"] = "llm_response"
    text: str = ""
    tool_calls: list[ToolCallRecord] = Field(default_factory=list)
    stop_reason: str | None = None


class ToolCallEvent(_BaseEvent):
    type: Literal["tool_call"] = "tool_call"
    tool_call_id: str = ""
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)
    result: Any = None


class ToolErrorEvent(_BaseEvent):
    type: Literal["tool_error"] = "tool_error"
    tool_call_id: str = ""
    tool_name: str
    args: dict[str, Any] = Field(default_factory=dict)
    error: str


class MemoryUpdateEvent(_BaseEvent):
    type: Literal["memory_update"] = "memory_update"
    key: str
    value: str


class ScheduledEvent(_BaseEvent):
    type: Literal["scheduled"] = "scheduled"
    job_id: str = ""
    cron: str
    task: str


class SleepingUntilEvent(_BaseEvent):
    type: Literal["sleeping_until"] = "sleeping_until"
    until: datetime
    reason: str = ""


class ContextCompactedEvent(_BaseEvent):
    """Records a compaction so a rebuild can apply the same cut.

    ``summary`` is None when summarization failed and the old prefix was
    simply dropped.
    """

    type: Literal["context_compacted"] = "context_compacted"
    from_messages: int
    to_messages: int
    summary: str | None = None


class SessionEndEvent(_BaseEvent):
    type: Literal["session_end"] = "session_end"
    summary: str
    status: TaskStatus


SessionEvent = Annotated[
    Union[
        SessionStartEvent,
        IterationStartEvent,
        LLMResponseEvent,
        ToolCallEvent,
        ToolErrorEvent,
        MemoryUpdateEvent,
        ScheduledEvent,
        SleepingUntilEvent,
        ContextCompactedEvent,
        SessionEndEvent,
    ],
    Field(discriminator="type"),
]

_event_adapter: TypeAdapter[SessionEvent] = TypeAdapter(SessionEvent)


def parse_event(data: str | bytes | dict[str, Any]) -> SessionEvent:
    """Parse a serialized event. Raises ``ValidationError`` on bad input."""
    if isinstance(data, dict):
        return _event_adapter.validate_python(data)
    return _event_adapter.validate_json(data)


def dump_event(event: SessionEvent) -> str:
    """Serialize an event to a single line of JSON."""
    return event.model_dump_json()


__all__ = [
    "SessionEvent",
    "SessionStartEvent",
    "IterationStartEvent",
    "LLMResponseEvent",
    "ToolCallRecord",
    "ToolCallEvent",
    "ToolErrorEvent",
    "MemoryUpdateEvent",
    "ScheduledEvent",
    "SleepingUntilEvent",
    "ContextCompactedEvent",
    "SessionEndEvent",
    "parse_event",
    "dump_event",
]
