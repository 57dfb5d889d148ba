"""
Session data model: one unit of autonomous work.
"""

import secrets
import string
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def generate_session_id() -> str:
    """Generate an id like ``task-2026-10-19T08-15-02-k3x9a``."""
    date_part = utcnow().strftime("%Y-%m-%dT%H-%M-%S")
    alphabet = string.ascii_lowercase + string.digits
    rand = "".join(secrets.choice(alphabet) for _ in range(5))
    return f"task-{date_part}-{rand}"


class TaskStatus(str, Enum):
    """Lifecycle status of a session."""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SLEEPING = "sleeping"
    SCHEDULED = "scheduled"


class ScheduledJob(BaseModel):
    """A recurring job created by a session."""

    id: str = Field(default_factory=lambda: f"job-{uuid4().hex[:8]}")
    cron: str
    task_description: str
    created_at: datetime = Field(default_factory=utcnow)
    last_run: datetime | None = None
    next_run: datetime | None = None


class TaskSession(BaseModel):
    """Snapshot of a run: identity, status, memory and schedule."""

    id: str = Field(frozen=True)
    goal: str = Field(frozen=True)
    status: TaskStatus = TaskStatus.RUNNING
    created_at: datetime = Field(default_factory=utcnow, frozen=True)
    updated_at: datetime = Field(default_factory=utcnow)
    iteration: int = 0
    memory: dict[str, str] = Field(default_factory=dict)
    scheduled_jobs: list[ScheduledJob] = Field(default_factory=list)
    final_summary: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.SCHEDULED)
