"""
Lifecycle notifications the agent loop emits for presentation layers.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

import structlog

logger = structlog.get_logger()


class AgentEventType(str, Enum):
    """Kinds of notification emitted by the agent loop."""
    THINKING = "thinking"
    MESSAGE = "message"
    TOOL_START = "tool_start"
    TOOL_DONE = "tool_done"
    TOOL_ERROR = "tool_error"
    STATUS_UPDATE = "status_update"
    HUMAN_INPUT_NEEDED = "human_input_needed"
    SCHEDULED = "scheduled"
    SLEEPING = "sleeping"
    DONE = "done"
    ERROR = "error"


@dataclass(frozen=True)
class AgentEvent:
    """A notification with a type and free-form fields."""

    type: AgentEventType
    session_id: str = ""
    data: dict[str, Any] = field(default_factory=dict)


EventSink = Callable[[AgentEvent], None]


def emit_safely(sink: EventSink | None, event: AgentEvent) -> None:
    """Deliver a notification; a failing sink never affects the loop."""
    if sink is None:
        return
    try:
        sink(event)
    except Exception as e:
        logger.warning("Event sink failed", event_type=event.type.value, error=str(e))
