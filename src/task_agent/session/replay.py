"""
Rebuild session state from an event log.
"""

from dataclasses import dataclass, field

from .events import (
    IterationStartEvent,
    MemoryUpdateEvent,
    ScheduledEvent,
    SessionEndEvent,
    SessionEvent,
    SessionStartEvent,
    SleepingUntilEvent,
)
from .models import TaskStatus


@dataclass
class ReplayedState:
    """Session state derived purely from events."""

    goal: str = ""
    status: TaskStatus = TaskStatus.RUNNING
    iteration: int = 0
    memory: dict[str, str] = field(default_factory=dict)
    schedules: list[tuple[str, str]] = field(default_factory=list)
    final_summary: str | None = None


def replay_state(events: list[SessionEvent]) -> ReplayedState:
    """Fold events into the memory/status/iteration they imply."""
    state = ReplayedState()

    for event in events:
        if isinstance(event, SessionStartEvent):
            state.goal = event.goal
        elif isinstance(event, IterationStartEvent):
            state.iteration = max(state.iteration, event.iteration)
            state.status = TaskStatus.RUNNING
        elif isinstance(event, MemoryUpdateEvent):
            state.memory[event.key] = event.value
        elif isinstance(event, ScheduledEvent):
            state.schedules.append((event.cron, event.task))
        elif isinstance(event, SleepingUntilEvent):
            state.status = TaskStatus.SLEEPING
        elif isinstance(event, SessionEndEvent):
            state.status = event.status
            state.final_summary = event.summary

    return state
