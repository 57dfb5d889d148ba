"""
Scheduler - cron-driven sub-runs of a finished task.

When a task completes with scheduled jobs, the scheduler takes over the
process. Each fire snapshots the parent's memory and starts a brand-new
agent loop (fresh session id, scheduled-run flag set) with that snapshot.
The parent stays alive until stopped or cancelled.
"""

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Awaitable, Callable, Optional

from ..agent.events import AgentEvent, AgentEventType, EventSink, emit_safely
from ..session.models import ScheduledJob, TaskSession
from ..session.store import BaseSessionStore
from .cron import is_valid_cron, next_fire_time

if TYPE_CHECKING:
    from ..agent.core import AgentLoop

logger = logging.getLogger(__name__)

# Memory keys that point at where a previous run left off
LOCATION_MEMORY_KEYS = ("thread_url", "conversation_url")

LoopFactory = Callable[[dict[str, str]], "AgentLoop"]


def build_sub_run_goal(task_description: str, memory: dict[str, str]) -> str:
    """Goal for a scheduled sub-run, pointing it at a remembered location if any."""
    for key in LOCATION_MEMORY_KEYS:
        location = memory.get(key)
        if location:
            return f"{task_description}\n\n[Use {key} from memory: {location}]"
    return task_description


class CronScheduler:
    """
    Runs scheduled jobs for a session.

    Features:
    - One asyncio task per registered job, sleeping until each fire time
    - Value-copy memory snapshot handed to every sub-run
    - Sub-run failures are reported, never fatal to the scheduler
    """

    def __init__(
        self,
        loop_factory: LoopFactory,
        store: BaseSessionStore,
        on_event: Optional[EventSink] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.loop_factory = loop_factory
        self.store = store
        self.on_event = on_event
        self._sleep = sleep
        self._job_tasks: dict[str, asyncio.Task] = {}
        self._children: set[asyncio.Task] = set()
        self._stop_event: Optional[asyncio.Event] = None

    @property
    def active_jobs(self) -> list[str]:
        return [job_id for job_id, task in self._job_tasks.items() if not task.done()]

    @property
    def running_children(self) -> int:
        return len(self._children)

    def _emit(self, event_type: AgentEventType, session_id: str, **data) -> None:
        emit_safely(self.on_event, AgentEvent(type=event_type, session_id=session_id, data=data))

    def register(self, session: TaskSession, job: ScheduledJob) -> asyncio.Task:
        """Start the timer task for ``job``. Raises ValueError on a bad cron."""
        if not is_valid_cron(job.cron):
            raise ValueError(f"Invalid cron expression: {job.cron}")

        existing = self._job_tasks.get(job.id)
        if existing is not None and not existing.done():
            return existing

        now = datetime.now().astimezone()
        if job.next_run is None or job.next_run < now:
            job.next_run = next_fire_time(job.cron, now)

        task = asyncio.create_task(self._run_job(session, job))
        self._job_tasks[job.id] = task
        logger.info(f"Registered cron job {job.id}: {job.cron} ({job.task_description})")
        return task

    async def _run_job(self, session: TaskSession, job: ScheduledJob) -> None:
        """Timer loop for one job."""
        while True:
            now = datetime.now().astimezone()
            if job.next_run is None or job.next_run < now:
                job.next_run = next_fire_time(job.cron, now)

            await self._sleep(max(0.0, (job.next_run - now).total_seconds()))

            try:
                await self.fire(session, job)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Error firing cron job {job.id}: {e}")
                self._emit(AgentEventType.ERROR, session.id, error=f"Cron job failed to start: {e}")

    async def fire(self, session: TaskSession, job: ScheduledJob) -> asyncio.Task:
        """Fire ``job`` once: record the run and start an independent sub-run."""
        now = datetime.now().astimezone()
        job.last_run = now
        job.next_run = next_fire_time(job.cron, now)
        await self.store.save(session)

        memory_snapshot = dict(session.memory)
        goal = build_sub_run_goal(job.task_description, memory_snapshot)

        logger.info(f"Running scheduled job {job.id}: {job.task_description}")
        self._emit(
            AgentEventType.MESSAGE,
            session.id,
            text=f"[cron {job.cron}] Running: {job.task_description}",
        )

        loop = self.loop_factory(memory_snapshot)
        task = asyncio.create_task(self._run_child(session, loop, goal))
        self._children.add(task)
        task.add_done_callback(self._children.discard)
        return task

    async def _run_child(self, parent: TaskSession, loop: "AgentLoop", goal: str) -> Optional[TaskSession]:
        try:
            return await loop.run(goal)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Scheduled sub-run for {parent.id} failed: {e}")
            self._emit(AgentEventType.ERROR, parent.id, error=f"Cron job failed: {e}")
            return None

    async def run_forever(self, session: TaskSession) -> None:
        """Register every job of ``session`` and block until ``stop()``."""
        self._stop_event = asyncio.Event()

        for job in session.scheduled_jobs:
            try:
                self.register(session, job)
            except ValueError as e:
                logger.error(f"Skipping job {job.id}: {e}")

        self._emit(
            AgentEventType.MESSAGE,
            session.id,
            text=f"{len(self.active_jobs)} cron job(s) active. Process will stay alive until stopped.",
        )

        try:
            await self._stop_event.wait()
        finally:
            await self._shutdown()

    def stop(self) -> None:
        """Ask ``run_forever`` to return."""
        if self._stop_event is not None:
            self._stop_event.set()

    async def _shutdown(self) -> None:
        tasks = list(self._job_tasks.values()) + list(self._children)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._job_tasks.clear()
        logger.info("Scheduler stopped")
