"""
Command-line interface for Task-Agent.
"""

import argparse
import asyncio
import contextlib
import logging
import sys
import threading

import structlog

from .agent import AgentEvent, AgentEventType, AgentLoop
from .config import Settings, get_settings
from .llm import LLMConfigError, create_llm
from .llm.factory import PROVIDERS
from .scheduler import CronScheduler
from .session import SessionNotFoundError, TaskSession, TaskStatus, create_session_store
from .session.events import dump_event


def configure_logging(level: str = "INFO") -> None:
    """Route structlog through stdlib logging at ``level``."""
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level.upper())

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


logger = structlog.get_logger()


def main() -> None:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="task-agent",
        description="Task-Agent - long-running autonomous tasks driven by an LLM",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Run a new task")
    run_parser.add_argument("goal", help="What the agent should accomplish")
    run_parser.add_argument("--max-iterations", type=int, default=None, help="Override the iteration ceiling")
    run_parser.add_argument("--provider", choices=sorted(PROVIDERS), default=None, help="LLM provider for this run")

    resume_parser = subparsers.add_parser("resume", help="Resume an existing session")
    resume_parser.add_argument("session_id", help="Session to resume")
    resume_parser.add_argument("--max-iterations", type=int, default=None, help="Override the iteration ceiling")
    resume_parser.add_argument("--provider", choices=sorted(PROVIDERS), default=None, help="LLM provider for this run")

    subparsers.add_parser("sessions", help="List stored sessions")

    logs_parser = subparsers.add_parser("logs", help="Print a session's event log")
    logs_parser.add_argument("session_id", help="Session to show")

    config_parser = subparsers.add_parser("config", help="Show configuration")
    config_parser.add_argument("--check", action="store_true", help="Check configuration validity")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    settings = get_settings()
    configure_logging("DEBUG" if args.debug or settings.debug else settings.log_level)

    if args.command == "run":
        sys.exit(_run_sync(settings, goal=args.goal, max_iterations=args.max_iterations,
                           provider=args.provider))
    elif args.command == "resume":
        sys.exit(_run_sync(settings, session_id=args.session_id, max_iterations=args.max_iterations,
                           provider=args.provider))
    elif args.command == "sessions":
        asyncio.run(list_sessions(settings))
    elif args.command == "logs":
        sys.exit(asyncio.run(show_logs(settings, args.session_id)))
    elif args.command == "config":
        sys.exit(show_config(settings, args.check))
    else:
        parser.print_help()


def print_event(event: AgentEvent) -> None:
    """Render agent notifications on the console."""
    data = event.data

    if event.type == AgentEventType.THINKING:
        print(f"\n[{data.get('iteration')}] thinking...")
    elif event.type == AgentEventType.MESSAGE:
        print(data.get("text", ""))
    elif event.type == AgentEventType.TOOL_START:
        print(f"  -> {data.get('tool_name')} {data.get('args')}")
    elif event.type == AgentEventType.TOOL_DONE:
        print(f"  <- {data.get('tool_name')}: {data.get('result')}")
    elif event.type == AgentEventType.TOOL_ERROR:
        print(f"  !! {data.get('tool_name')}: {data.get('error')}")
    elif event.type == AgentEventType.STATUS_UPDATE:
        print(f"  * {data.get('message')}")
    elif event.type == AgentEventType.SCHEDULED:
        print(f"Scheduled [{data.get('cron')}]: {data.get('task')}")
    elif event.type == AgentEventType.SLEEPING:
        print(f"Sleeping until {data.get('until')} {data.get('reason') or ''}".rstrip())
    elif event.type == AgentEventType.DONE:
        print(f"\nDone: {data.get('summary')}")
    elif event.type == AgentEventType.ERROR:
        print(f"\nError: {data.get('error')}", file=sys.stderr)


async def ask_on_stdin(question: str, hint: str | None) -> str:
    """Answer ``ask_user`` from the terminal.

    ``input`` runs on a daemon thread, so an interrupted run can exit
    without waiting for the user to press Enter.
    """
    print(f"\n? {question}")
    if hint:
        print(f"  ({hint})")

    loop = asyncio.get_running_loop()
    answer: asyncio.Future[str] = loop.create_future()

    def settle(setter, value) -> None:
        if not answer.done():
            setter(value)

    def read() -> None:
        try:
            outcome = (answer.set_result, input("> "))
        except Exception as e:
            outcome = (answer.set_exception, e)
        # the loop is already closed once an interrupted run has exited
        with contextlib.suppress(RuntimeError):
            loop.call_soon_threadsafe(settle, *outcome)

    threading.Thread(target=read, name="ask-user-stdin", daemon=True).start()
    return (await answer).strip()


def _run_sync(settings: Settings, goal: str = "", session_id: str | None = None,
              max_iterations: int | None = None, provider: str | None = None) -> int:
    try:
        session = asyncio.run(run_task(settings, goal, session_id, max_iterations, provider))
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        return 130
    except SessionNotFoundError as e:
        print(f"Session not found: {e.session_id}", file=sys.stderr)
        return 1
    except LLMConfigError as e:
        print(f"LLM configuration error: {e}", file=sys.stderr)
        return 2

    print(f"\nSession {session.id}: {session.status.value} after {session.iteration} iteration(s)")
    return 1 if session.status == TaskStatus.FAILED else 0


async def run_task(
    settings: Settings,
    goal: str = "",
    session_id: str | None = None,
    max_iterations: int | None = None,
    provider: str | None = None,
) -> TaskSession:
    """Run or resume a task, handing off to the cron scheduler when it schedules itself."""
    llm = create_llm(settings=settings, provider=provider)
    store = create_session_store(settings)

    def make_sub_run(memory: dict[str, str]) -> AgentLoop:
        return AgentLoop(
            llm=llm,
            store=store,
            settings=settings,
            on_event=print_event,
            is_scheduled_run=True,
            inherited_memory=memory,
            max_iterations=max_iterations,
        )

    scheduler = CronScheduler(make_sub_run, store, on_event=print_event)
    loop = AgentLoop(
        llm=llm,
        store=store,
        settings=settings,
        on_event=print_event,
        on_human_input=ask_on_stdin,
        scheduler=scheduler,
        max_iterations=max_iterations,
    )

    try:
        return await loop.run(goal, session_id=session_id)
    finally:
        await store.close()


async def list_sessions(settings: Settings) -> None:
    """List stored sessions, newest first."""
    store = create_session_store(settings)
    try:
        sessions = await store.list_sessions()
    finally:
        await store.close()

    if not sessions:
        print("No sessions found.")
        return

    print(f"\n{'ID':<32} {'Status':<10} {'Iter':>5}  {'Updated':<20} Goal")
    print("-" * 100)

    for session in sessions:
        updated = session.updated_at.strftime("%Y-%m-%d %H:%M:%S")
        goal = session.goal if len(session.goal) <= 40 else session.goal[:37] + "..."
        print(f"{session.id:<32} {session.status.value:<10} {session.iteration:>5}  {updated:<20} {goal}")


async def show_logs(settings: Settings, session_id: str) -> int:
    """Print the event log of a session, one JSON line per event."""
    store = create_session_store(settings)
    try:
        session = await store.load(session_id)
        if session is None:
            print(f"Session not found: {session_id}", file=sys.stderr)
            return 1
        events = await store.load_events(session_id)
    finally:
        await store.close()

    for event in events:
        print(dump_event(event))
    return 0


def show_config(settings: Settings, check: bool) -> int:
    """Show current configuration."""

    def mask(value: str) -> str:
        if not value:
            return "(not set)"
        return value[:4] + "..." + value[-4:] if len(value) > 10 else "****"

    llm_config = settings.get_llm_config()

    print("\n=== Task-Agent Configuration ===\n")

    print("LLM Providers:")
    print(f"  Default: {settings.default_provider}")
    print(f"  Model: {llm_config.model}")
    print(f"  Anthropic Key: {mask(settings.anthropic_api_key)}")
    print(f"  OpenAI Key: {mask(settings.openai_api_key)}")
    print(f"  OpenRouter Key: {mask(settings.openrouter_api_key)}")

    print("\nSessions:")
    print(f"  Backend: {settings.session_backend}")
    if settings.session_backend == "file":
        print(f"  Directory: {settings.sessions_dir}")
    else:
        print(f"  Database: {settings.database_url}")

    print("\nAgent Loop:")
    print(f"  Max Iterations: {settings.max_iterations}")
    print(f"  Compaction: > {settings.compaction_max_messages} turns, keep {settings.compaction_keep_recent}")
    print(f"  Loop Detection: {settings.loop_threshold} repeats in {settings.loop_window}")
    print(f"  Default Sleep: {settings.default_sleep_seconds}s")

    print("\nTools:")
    print(f"  fetch_url: {settings.enable_fetch_url}")
    print(f"  wait: max {settings.max_wait_seconds}s")

    if not check:
        return 0

    print("\n=== Configuration Check ===\n")
    errors = []
    warnings = []

    try:
        create_llm(llm_config)
    except LLMConfigError as e:
        errors.append(str(e))

    if settings.compaction_keep_recent >= settings.compaction_max_messages:
        warnings.append("COMPACTION_KEEP_RECENT should be smaller than COMPACTION_MAX_MESSAGES")

    if settings.loop_threshold > settings.loop_window:
        warnings.append("LOOP_THRESHOLD larger than LOOP_WINDOW disables loop detection")

    if errors:
        print("Errors:")
        for e in errors:
            print(f"   - {e}")

    if warnings:
        print("Warnings:")
        for w in warnings:
            print(f"   - {w}")

    if not errors and not warnings:
        print("Configuration looks good!")
    elif not errors:
        print("\nConfiguration is valid (with warnings)")
    else:
        print("\nConfiguration has errors - fix them before running a task")

    return 1 if errors else 0


if __name__ == "__main__":
    main()
