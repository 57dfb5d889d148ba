"""
SQL session store backed by SQLAlchemy's async ORM.

Each write runs in its own transaction, so a snapshot or event is either
fully stored or not at all.
"""

import asyncio
from pathlib import Path

import structlog
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker

from ..models import EventRecord, SessionRecord, init_database
from .events import SessionEvent, dump_event, parse_event
from .models import TaskSession
from .store import BaseSessionStore, SessionStoreError

logger = structlog.get_logger()


class SQLSessionStore(BaseSessionStore):
    """Stores sessions and events in a SQL database (SQLite by default)."""

    def __init__(self, database_url: str):
        self.database_url = database_url
        self._engine: AsyncEngine | None = None
        self._session_maker: async_sessionmaker | None = None
        self._init_lock = asyncio.Lock()

    async def _get_session_maker(self) -> async_sessionmaker:
        if self._session_maker is not None:
            return self._session_maker

        async with self._init_lock:
            if self._session_maker is None:
                url = make_url(self.database_url)
                if url.get_backend_name() == "sqlite" and url.database not in (None, "", ":memory:"):
                    Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
                try:
                    self._engine, self._session_maker = await init_database(self.database_url)
                except SQLAlchemyError as e:
                    raise SessionStoreError(f"Could not open session database: {e}") from e
                logger.info("Session database ready", url=url.render_as_string(hide_password=True))
        return self._session_maker

    async def _write_snapshot(self, session: TaskSession) -> None:
        maker = await self._get_session_maker()
        try:
            async with maker.begin() as db:
                record = await db.get(SessionRecord, session.id)
                if record is None:
                    record = SessionRecord(
                        id=session.id,
                        goal=session.goal,
                        created_at=session.created_at,
                    )
                    db.add(record)
                record.status = session.status.value
                record.iteration = session.iteration
                record.snapshot = session.model_dump_json()
                record.updated_at = session.updated_at
        except SQLAlchemyError as e:
            raise SessionStoreError(f"Failed to save session {session.id}: {e}") from e

    async def load(self, session_id: str) -> TaskSession | None:
        maker = await self._get_session_maker()
        try:
            async with maker() as db:
                record = await db.get(SessionRecord, session_id)
        except SQLAlchemyError as e:
            logger.error("Failed to load session", session_id=session_id, error=str(e))
            return None

        if record is None:
            return None

        try:
            return TaskSession.model_validate_json(record.snapshot)
        except ValidationError as e:
            logger.warning("Corrupt session snapshot", session_id=session_id, error=str(e))
            return None

    async def append_event(self, session_id: str, event: SessionEvent) -> None:
        maker = await self._get_session_maker()
        try:
            async with maker.begin() as db:
                db.add(EventRecord(
                    session_id=session_id,
                    event_type=event.type,
                    payload=dump_event(event),
                ))
        except SQLAlchemyError as e:
            raise SessionStoreError(f"Failed to append event to {session_id}: {e}") from e

    async def load_events(self, session_id: str) -> list[SessionEvent]:
        maker = await self._get_session_maker()
        try:
            async with maker() as db:
                result = await db.execute(
                    select(EventRecord.payload)
                    .where(EventRecord.session_id == session_id)
                    .order_by(EventRecord.seq)
                )
                payloads = result.scalars().all()
        except SQLAlchemyError as e:
            raise SessionStoreError(f"Failed to load events for {session_id}: {e}") from e

        events: list[SessionEvent] = []
        for payload in payloads:
            try:
                events.append(parse_event(payload))
            except ValidationError:
                logger.warning("Skipping unreadable event", session_id=session_id)
        return events

    async def list_sessions(self) -> list[TaskSession]:
        maker = await self._get_session_maker()
        try:
            async with maker() as db:
                result = await db.execute(
                    select(SessionRecord.snapshot).order_by(SessionRecord.updated_at.desc())
                )
                snapshots = result.scalars().all()
        except SQLAlchemyError as e:
            raise SessionStoreError(f"Failed to list sessions: {e}") from e

        sessions = []
        for snapshot in snapshots:
            try:
                sessions.append(TaskSession.model_validate_json(snapshot))
            except ValidationError:
                continue
        return sessions

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
            self._engine = None
            self._session_maker = None
