"""
File session store.

Layout under ``base_dir``:
  {session_id}.json   full snapshot, replaced atomically via a temp file
  {session_id}.jsonl  append-only event log, one JSON object per line
"""

import asyncio
import os
from pathlib import Path

import structlog
from pydantic import ValidationError

from .events import SessionEvent, dump_event, parse_event
from .models import TaskSession
from .store import BaseSessionStore, SessionStoreError

logger = structlog.get_logger()


class FileSessionStore(BaseSessionStore):
    """Stores each session as a JSON snapshot plus a JSONL event log."""

    def __init__(self, base_dir: str | Path):
        self.base_dir = Path(base_dir).expanduser()
        self._locks: dict[str, asyncio.Lock] = {}

    def _get_lock(self, session_id: str) -> asyncio.Lock:
        if session_id not in self._locks:
            self._locks[session_id] = asyncio.Lock()
        return self._locks[session_id]

    def _meta_path(self, session_id: str) -> Path:
        return self.base_dir / f"{session_id}.json"

    def _events_path(self, session_id: str) -> Path:
        return self.base_dir / f"{session_id}.jsonl"

    async def _write_snapshot(self, session: TaskSession) -> None:
        path = self._meta_path(session.id)
        tmp_path = path.with_name(f".{path.name}.tmp")
        data = session.model_dump_json(indent=2)

        async with self._get_lock(session.id):
            try:
                self.base_dir.mkdir(parents=True, exist_ok=True)
                with open(tmp_path, "w", encoding="utf-8") as f:
                    f.write(data)
                    f.flush()
                    os.fsync(f.fileno())
                os.replace(tmp_path, path)
            except OSError as e:
                raise SessionStoreError(f"Failed to save session {session.id}: {e}") from e

    async def load(self, session_id: str) -> TaskSession | None:
        path = self._meta_path(session_id)
        if not path.exists():
            return None

        try:
            return TaskSession.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValidationError) as e:
            logger.warning("Unreadable session snapshot", session_id=session_id, error=str(e))
            return None

    async def append_event(self, session_id: str, event: SessionEvent) -> None:
        line = dump_event(event) + "\n"

        async with self._get_lock(session_id):
            try:
                self.base_dir.mkdir(parents=True, exist_ok=True)
                with open(self._events_path(session_id), "a", encoding="utf-8") as f:
                    f.write(line)
                    f.flush()
                    os.fsync(f.fileno())
            except OSError as e:
                raise SessionStoreError(f"Failed to append event to {session_id}: {e}") from e

    async def load_events(self, session_id: str) -> list[SessionEvent]:
        path = self._events_path(session_id)
        if not path.exists():
            return []

        try:
            lines = path.read_bytes().splitlines()
        except OSError as e:
            raise SessionStoreError(f"Failed to load events for {session_id}: {e}") from e

        events: list[SessionEvent] = []
        for raw in lines:
            if not raw.strip():
                continue
            try:
                events.append(parse_event(raw.decode("utf-8")))
            except (UnicodeDecodeError, ValidationError):
                # A torn final line from a crash mid-append, or a damaged one
                logger.warning("Skipping unreadable event line", session_id=session_id)
        return events

    async def list_sessions(self) -> list[TaskSession]:
        if not self.base_dir.exists():
            return []

        sessions = []
        for path in self.base_dir.glob("*.json"):
            session = await self.load(path.stem)
            if session is not None:
                sessions.append(session)
        return sorted(sessions, key=lambda s: s.updated_at, reverse=True)
