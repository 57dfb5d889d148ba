"""
Session store contract.

A store persists session snapshots and their append-only event logs. One
agent loop owns a session id at a time; stores do not coordinate concurrent
writers to the same id.
"""

from abc import ABC, abstractmethod

from .events import SessionEvent
from .models import TaskSession, TaskStatus, generate_session_id, utcnow


class SessionNotFoundError(LookupError):
    """Raised when a session id has no (readable) record."""

    def __init__(self, session_id: str):
        super().__init__(f"Session '{session_id}' not found.")
        self.session_id = session_id


class SessionStoreError(RuntimeError):
    """Raised when the persistence medium fails to read or write."""


class BaseSessionStore(ABC):
    """Base class for session persistence backends."""

    async def create(self, goal: str, session_id: str | None = None) -> TaskSession:
        """Create and persist a fresh running session."""
        session = TaskSession(id=session_id or generate_session_id(), goal=goal)
        await self.save(session)
        return session

    async def save(self, session: TaskSession) -> None:
        """Persist the full snapshot, refreshing ``updated_at``."""
        session.updated_at = utcnow()
        await self._write_snapshot(session)

    async def update_status(self, session: TaskSession, status: TaskStatus) -> None:
        session.status = status
        await self.save(session)

    @abstractmethod
    async def _write_snapshot(self, session: TaskSession) -> None:
        """Atomically replace the stored snapshot."""
        pass

    @abstractmethod
    async def load(self, session_id: str) -> TaskSession | None:
        """Load a session; missing or corrupt records yield None."""
        pass

    @abstractmethod
    async def append_event(self, session_id: str, event: SessionEvent) -> None:
        """Durably append one event to a session's log."""
        pass

    @abstractmethod
    async def load_events(self, session_id: str) -> list[SessionEvent]:
        """Load a session's events in append order."""
        pass

    @abstractmethod
    async def list_sessions(self) -> list[TaskSession]:
        """List all readable sessions, most recently updated first."""
        pass

    async def close(self) -> None:
        """Release any resources held by the store."""
        pass
