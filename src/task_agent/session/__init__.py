"""
Session module: durable run state and its append-only event log.

Includes:
- TaskSession / ScheduledJob: the session snapshot
- Session events and replay
- SQLSessionStore / FileSessionStore backends
"""

from .models import ScheduledJob, TaskSession, TaskStatus, generate_session_id
from .store import BaseSessionStore, SessionNotFoundError, SessionStoreError
from .sql_store import SQLSessionStore
from .file_store import FileSessionStore
from .factory import create_session_store
from .replay import ReplayedState, replay_state

__all__ = [
    "ScheduledJob",
    "TaskSession",
    "TaskStatus",
    "generate_session_id",
    "BaseSessionStore",
    "SessionNotFoundError",
    "SessionStoreError",
    "SQLSessionStore",
    "FileSessionStore",
    "create_session_store",
    "ReplayedState",
    "replay_state",
]
