"""
Core agent loop: think -> act until the task is done.

Each iteration:
1. Bumps the iteration counter and persists it
2. Compacts the transcript when it grows too large
3. Asks the LLM what to do next
4. Executes the proposed actions in order (built-ins here, the rest via
   the tool registry), recording every result as a session event

A run ends completed, failed (iteration ceiling, error, cancellation) or
scheduled, in which case an attached CronScheduler takes over.
"""

import asyncio
from datetime import timedelta
from typing import TYPE_CHECKING, Any, Awaitable, Callable

import structlog
from pydantic import ValidationError

from ..actions import (
    DONE_ACTION,
    AskUser,
    Done,
    ExternalAction,
    ListMemories,
    Recall,
    Remember,
    Schedule,
    SleepUntil,
    StatusUpdate,
    builtin_definitions,
    parse_action,
)
from ..config import Settings, get_settings
from ..llm.base import BaseLLM, LLMMessage, ToolDefinition
from ..prompts import build_system_prompt
from ..scheduler.cron import is_valid_cron, next_fire_time
from ..scheduler.natural_time import resolve_wake_delay
from ..session.events import (
    ContextCompactedEvent,
    IterationStartEvent,
    LLMResponseEvent,
    MemoryUpdateEvent,
    ScheduledEvent,
    SessionEndEvent,
    SessionEvent,
    SessionStartEvent,
    SleepingUntilEvent,
    ToolCallEvent,
    ToolCallRecord,
    ToolErrorEvent,
)
from ..session.models import ScheduledJob, TaskSession, TaskStatus, utcnow
from ..session.store import BaseSessionStore, SessionNotFoundError, SessionStoreError
from ..tools.base import ToolResult
from ..tools.registry import ToolRegistry, create_tool_registry
from .compaction import CompactionConfig, compact_transcript
from .events import AgentEvent, AgentEventType, EventSink, emit_safely
from .loop_detector import LOOP_DETECTED_ERROR, LoopDetector
from .transcript import TranscriptBuilder, rebuild_transcript, render_result

if TYPE_CHECKING:
    from ..scheduler.scheduler import CronScheduler

logger = structlog.get_logger()

HumanInputHandler = Callable[[str, "str | None"], Awaitable[str]]

SUB_RUN_SCHEDULE_ERROR = (
    "You are already running as a scheduled sub-task. Do NOT call schedule() again; "
    "the parent schedule is still active. Report what you found, then call done()."
)

INTERRUPTED_ERROR = "Interrupted before completion"


def _format_validation_error(error: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in e['loc']) or 'arguments'}: {e['msg']}"
        for e in error.errors()
    )


class AgentLoop:
    """Drives one task session from goal to terminal status.

    One instance owns one session at a time. Memory handed in through
    ``inherited_memory`` is copied, never shared.
    """

    def __init__(
        self,
        llm: BaseLLM,
        store: BaseSessionStore,
        tool_registry: ToolRegistry | None = None,
        settings: Settings | None = None,
        on_event: EventSink | None = None,
        on_human_input: HumanInputHandler | None = None,
        is_scheduled_run: bool = False,
        inherited_memory: dict[str, str] | None = None,
        scheduler: "CronScheduler | None" = None,
        max_iterations: int | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.llm = llm
        self.store = store
        self.tool_registry = tool_registry if tool_registry is not None else create_tool_registry(self.settings)
        self.on_event = on_event
        self.on_human_input = on_human_input
        self.is_scheduled_run = is_scheduled_run
        self.inherited_memory = dict(inherited_memory or {})
        self.scheduler = scheduler
        self.max_iterations = max_iterations or self.settings.max_iterations
        self._sleep = sleep

        self.compaction_config = CompactionConfig(
            max_messages=self.settings.compaction_max_messages,
            keep_recent=self.settings.compaction_keep_recent,
        )
        self.loop_detector = LoopDetector(
            window=self.settings.loop_window,
            threshold=self.settings.loop_threshold,
        )
        self.transcript = TranscriptBuilder()
        self.session: TaskSession | None = None
        # Calls from the latest decision that have no recorded result yet
        self._unanswered: list[ToolCallRecord] = []

    @property
    def messages(self) -> list[LLMMessage]:
        """The transcript as the LLM currently sees it."""
        return self.transcript.messages

    def get_tool_definitions(self) -> list[ToolDefinition]:
        """Built-in actions first, then every registered external tool."""
        definitions = builtin_definitions()
        builtin_names = {d.name for d in definitions}
        for definition in self.tool_registry.get_definitions():
            if definition.name in builtin_names:
                logger.warning("Tool name shadows a built-in action, ignoring", tool_name=definition.name)
                continue
            definitions.append(definition)
        return definitions

    def _emit(self, event_type: AgentEventType, **data: Any) -> None:
        session_id = self.session.id if self.session else ""
        emit_safely(self.on_event, AgentEvent(type=event_type, session_id=session_id, data=data))

    async def _record(self, session: TaskSession, event: SessionEvent) -> None:
        """Append an event to the log and fold it into the live transcript."""
        await self.store.append_event(session.id, event)
        self.transcript.apply(event)
        if isinstance(event, (ToolCallEvent, ToolErrorEvent)):
            self._unanswered = [r for r in self._unanswered if r.tool_call_id != event.tool_call_id]

    # -- Run lifecycle -------------------------------------------------------

    async def run(self, goal: str = "", session_id: str | None = None) -> TaskSession:
        """Run a new task for ``goal``, or resume ``session_id``.

        Returns the session in a terminal status. With an attached scheduler
        a scheduled session does not return until the scheduler is stopped.
        """
        session = await self._start(goal, session_id)

        system_prompt = build_system_prompt(session.memory, self.is_scheduled_run)
        tools = self.get_tool_definitions()

        try:
            is_done = False
            summary = ""
            while not is_done and session.iteration < self.max_iterations:
                is_done, summary = await self._iterate(session, system_prompt, tools)

            if is_done:
                status = TaskStatus.SCHEDULED if session.scheduled_jobs else TaskStatus.COMPLETED
            else:
                status = TaskStatus.FAILED
                summary = (
                    f"Task hit the maximum iteration limit ({self.max_iterations}) without completing."
                )

            await self._finish(session, status, summary)

        except asyncio.CancelledError:
            await self._abort(session, "Cancelled: the task was interrupted before completing.")
            raise
        except Exception as e:
            await self._abort(session, f"Error: {e}")
            raise

        if session.status == TaskStatus.SCHEDULED and self.scheduler is not None:
            await self.scheduler.run_forever(session)

        return session

    async def _start(self, goal: str, session_id: str | None) -> TaskSession:
        if session_id:
            session = await self.store.load(session_id)
            if session is None:
                raise SessionNotFoundError(session_id)
            self.session = session

            events = await self.store.load_events(session_id)
            self.transcript = TranscriptBuilder(rebuild_transcript(events))
            self._restore_from_log(events)

            session.status = TaskStatus.RUNNING
            await self.store.save(session)
            # A crash can leave the last decision without results
            await self._close_unanswered(session)

            logger.info("Resuming session", session_id=session.id, iteration=session.iteration)
            self._emit(
                AgentEventType.MESSAGE,
                text=f"Resuming session {session.id} (iteration {session.iteration})",
            )
            return session

        session = await self.store.create(goal)
        self.session = session
        self.transcript = TranscriptBuilder()
        await self._record(session, SessionStartEvent(goal=goal))

        if self.inherited_memory:
            for key, value in self.inherited_memory.items():
                session.memory[key] = value
                await self.store.append_event(session.id, MemoryUpdateEvent(key=key, value=value))
            await self.store.save(session)

        logger.info(
            "Session started",
            session_id=session.id,
            scheduled_run=self.is_scheduled_run,
            inherited_keys=len(self.inherited_memory),
        )
        self._emit(AgentEventType.MESSAGE, text=f"Session {session.id} started")
        return session

    def _restore_from_log(self, events: list[SessionEvent]) -> None:
        """Refill the loop window and the unanswered calls from a stored log."""
        for event in events:
            if isinstance(event, LLMResponseEvent):
                self._unanswered = list(event.tool_calls)
                for record in event.tool_calls:
                    if record.tool_name == DONE_ACTION:
                        break
                    self.loop_detector.record(record.tool_name, record.args)
            elif isinstance(event, (ToolCallEvent, ToolErrorEvent)):
                self._unanswered = [r for r in self._unanswered if r.tool_call_id != event.tool_call_id]

    async def _close_unanswered(self, session: TaskSession) -> None:
        for record in list(self._unanswered):
            await self._record(session, ToolErrorEvent(
                tool_call_id=record.tool_call_id,
                tool_name=record.tool_name,
                args=record.args,
                error=INTERRUPTED_ERROR,
            ))

    async def _finish(self, session: TaskSession, status: TaskStatus, summary: str) -> None:
        session.status = status
        session.final_summary = summary
        await self.store.save(session)
        await self._record(session, SessionEndEvent(summary=summary, status=status))

        logger.info(
            "Session finished",
            session_id=session.id,
            status=status.value,
            iterations=session.iteration,
        )
        if status == TaskStatus.FAILED:
            self._emit(AgentEventType.ERROR, error=summary)
        else:
            if status == TaskStatus.SCHEDULED:
                self._emit(
                    AgentEventType.MESSAGE,
                    text=f"Handing off {len(session.scheduled_jobs)} scheduled job(s)",
                )
            self._emit(AgentEventType.DONE, summary=summary)

    async def _abort(self, session: TaskSession, summary: str) -> None:
        """Mark a session failed after an error or cancellation, best effort."""
        logger.error("Session failed", session_id=session.id, summary=summary)
        session.status = TaskStatus.FAILED
        session.final_summary = summary
        try:
            await self._close_unanswered(session)
            await self.store.save(session)
            await self.store.append_event(
                session.id, SessionEndEvent(summary=summary, status=TaskStatus.FAILED)
            )
        except SessionStoreError as e:
            logger.error("Could not persist failed session", session_id=session.id, error=str(e))
        self._emit(AgentEventType.ERROR, error=summary)

    # -- Think / act ---------------------------------------------------------

    async def _iterate(
        self,
        session: TaskSession,
        system_prompt: str,
        tools: list[ToolDefinition],
    ) -> tuple[bool, str]:
        """Run one think->act cycle. Returns (done, summary)."""
        session.iteration += 1
        await self._record(session, IterationStartEvent(iteration=session.iteration))
        await self.store.save(session)

        if self.compaction_config.needs_compaction(self.messages):
            self._emit(AgentEventType.MESSAGE, text="Compacting context...")
            _, result = await compact_transcript(self.llm, self.messages, self.compaction_config)
            await self._record(session, ContextCompactedEvent(
                from_messages=result.original_message_count,
                to_messages=result.compacted_message_count,
                summary=result.summary,
            ))

        self._emit(AgentEventType.THINKING, iteration=session.iteration)
        response = await self.llm.generate(
            messages=list(self.messages),
            tools=tools,
            system_prompt=system_prompt,
        )

        records = [
            ToolCallRecord(
                tool_call_id=tc.id or f"call_{session.iteration}_{index}",
                tool_name=tc.name,
                args=dict(tc.arguments or {}),
            )
            for index, tc in enumerate(response.tool_calls)
        ]
        await self._record(session, LLMResponseEvent(
            text=response.content,
            tool_calls=records,
            stop_reason=response.stop_reason,
        ))
        self._unanswered = list(records)

        if response.content:
            self._emit(AgentEventType.MESSAGE, text=response.content)

        if not records:
            if response.is_natural_stop:
                return True, response.content or "Task complete."
            # Thinking without acting; ask again
            return False, ""

        for record in records:
            if record.tool_name == DONE_ACTION:
                summary = self._done_summary(record)
                await self._record(session, ToolCallEvent(
                    tool_call_id=record.tool_call_id,
                    tool_name=record.tool_name,
                    args=record.args,
                    result={"ok": True},
                ))
                await self.store.save(session)
                return True, summary

            if self.loop_detector.check(record.tool_name, record.args):
                logger.warning("Loop detected", session_id=session.id, tool_name=record.tool_name)
                self._emit(AgentEventType.MESSAGE, text="Loop detected, changing approach...")
                self._emit(AgentEventType.TOOL_ERROR, tool_name=record.tool_name, error=LOOP_DETECTED_ERROR)
                await self._record(session, ToolErrorEvent(
                    tool_call_id=record.tool_call_id,
                    tool_name=record.tool_name,
                    args=record.args,
                    error=LOOP_DETECTED_ERROR,
                ))
                await self.store.save(session)
                continue

            self._emit(AgentEventType.TOOL_START, tool_name=record.tool_name, args=record.args)
            result = await self._execute(session, record)

            if result.success:
                await self._record(session, ToolCallEvent(
                    tool_call_id=record.tool_call_id,
                    tool_name=record.tool_name,
                    args=record.args,
                    result=result.payload,
                ))
                self._emit(
                    AgentEventType.TOOL_DONE,
                    tool_name=record.tool_name,
                    result=render_result(result.payload)[:200],
                )
            else:
                error = result.error or "Unknown error"
                await self._record(session, ToolErrorEvent(
                    tool_call_id=record.tool_call_id,
                    tool_name=record.tool_name,
                    args=record.args,
                    error=error,
                ))
                self._emit(AgentEventType.TOOL_ERROR, tool_name=record.tool_name, error=error)

            await self.store.save(session)

        return False, ""

    @staticmethod
    def _done_summary(record: ToolCallRecord) -> str:
        try:
            action = parse_action(record.tool_name, record.args)
        except ValidationError:
            return "Task complete."
        if isinstance(action, Done) and action.summary.strip():
            return action.summary.strip()
        return "Task complete."

    async def _execute(self, session: TaskSession, record: ToolCallRecord) -> ToolResult:
        """Dispatch one action to its handler."""
        try:
            action = parse_action(record.tool_name, record.args)
        except ValidationError as e:
            return ToolResult(
                success=False,
                error=f"Invalid arguments for {record.tool_name}: {_format_validation_error(e)}",
            )

        if isinstance(action, ExternalAction):
            return await self.tool_registry.execute(action.name, action.arguments)
        if isinstance(action, Remember):
            return await self._remember(session, action)
        if isinstance(action, Recall):
            return self._recall(session, action)
        if isinstance(action, ListMemories):
            keys = list(session.memory.keys())
            return ToolResult(success=True, output=", ".join(keys), data={"keys": keys, "count": len(keys)})
        if isinstance(action, StatusUpdate):
            self._emit(AgentEventType.STATUS_UPDATE, message=action.message)
            return ToolResult(success=True, output=action.message, data={"ok": True})
        if isinstance(action, AskUser):
            return await self._ask_user(action)
        if isinstance(action, Schedule):
            return await self._schedule(session, action)
        if isinstance(action, SleepUntil):
            return await self._sleep_until(session, action)
        return ToolResult(success=True, data={"ok": True})

    # -- Built-in actions ----------------------------------------------------

    async def _remember(self, session: TaskSession, action: Remember) -> ToolResult:
        session.memory[action.key] = action.value
        await self.store.save(session)
        await self.store.append_event(session.id, MemoryUpdateEvent(key=action.key, value=action.value))
        return ToolResult(success=True, output=f"Stored {action.key}", data={"ok": True, "stored": action.key})

    def _recall(self, session: TaskSession, action: Recall) -> ToolResult:
        if action.key not in session.memory:
            return ToolResult(success=False, error=f"Key '{action.key}' not found in memory")
        value = session.memory[action.key]
        return ToolResult(success=True, output=value, data={"ok": True, "key": action.key, "value": value})

    async def _ask_user(self, action: AskUser) -> ToolResult:
        if self.on_human_input is None:
            return ToolResult(success=False, error="No user is available to answer questions in this run.")

        self._emit(AgentEventType.HUMAN_INPUT_NEEDED, question=action.question, hint=action.hint)
        answer = await self.on_human_input(action.question, action.hint)
        return ToolResult(success=True, output=answer, data={"answer": answer})

    async def _schedule(self, session: TaskSession, action: Schedule) -> ToolResult:
        if self.is_scheduled_run:
            return ToolResult(success=False, error=SUB_RUN_SCHEDULE_ERROR)

        if not is_valid_cron(action.cron):
            return ToolResult(success=False, error=f"Invalid cron expression: {action.cron}")

        job = ScheduledJob(
            cron=action.cron.strip(),
            task_description=action.task_description,
            next_run=next_fire_time(action.cron),
        )
        session.scheduled_jobs.append(job)
        await self.store.save(session)
        await self.store.append_event(session.id, ScheduledEvent(
            job_id=job.id,
            cron=job.cron,
            task=job.task_description,
        ))
        self._emit(AgentEventType.SCHEDULED, cron=job.cron, task=job.task_description)

        return ToolResult(
            success=True,
            output=(
                f"Task scheduled: '{job.task_description}' with cron '{job.cron}'. "
                "The process will stay alive and re-run at each interval."
            ),
            data={"ok": True, "job_id": job.id, "next_run": job.next_run.isoformat()},
        )

    async def _sleep_until(self, session: TaskSession, action: SleepUntil) -> ToolResult:
        delay = resolve_wake_delay(
            action.until,
            default=timedelta(seconds=self.settings.default_sleep_seconds),
        )
        wake_time = utcnow() + delay

        await self.store.append_event(session.id, SleepingUntilEvent(until=wake_time, reason=action.reason))
        self._emit(AgentEventType.SLEEPING, until=wake_time.isoformat(), reason=action.reason)
        await self.store.update_status(session, TaskStatus.SLEEPING)

        logger.info("Sleeping", session_id=session.id, seconds=delay.total_seconds())
        await self._sleep(delay.total_seconds())

        await self.store.update_status(session, TaskStatus.RUNNING)
        return ToolResult(
            success=True,
            output=f"Slept until {wake_time.isoformat()}",
            data={"ok": True, "slept_until": wake_time.isoformat(), "reason": action.reason},
        )
