"""
Tests for cron scheduling and wake-time parsing.
"""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import AsyncMock, MagicMock

from task_agent.agent import AgentEventType
from task_agent.scheduler import (
    MAX_WAKE_DELAY,
    CronScheduler,
    build_sub_run_goal,
    is_valid_cron,
    next_fire_time,
    parse_wake_time,
    resolve_wake_delay,
)
from task_agent.session import ScheduledJob

NOW = datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)


def test_is_valid_cron():
    assert is_valid_cron("*/5 * * * *") is True
    assert is_valid_cron("0 9 * * 1-5") is True
    assert is_valid_cron("") is False
    assert is_valid_cron("every monday") is False
    assert is_valid_cron("61 * * * *") is False


def test_next_fire_time():
    base = datetime(2026, 10, 19, 10, 15, tzinfo=timezone.utc)

    assert next_fire_time("0 * * * *", base) == datetime(2026, 10, 19, 11, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize("text,expected", [
    ("30s", timedelta(seconds=30)),
    ("5m", timedelta(minutes=5)),
    ("2h", timedelta(hours=2)),
    ("1d", timedelta(days=1)),
    ("in 10 minutes", timedelta(minutes=10)),
    ("1.5 hours", timedelta(minutes=90)),
])
def test_parse_durations(text, expected):
    assert parse_wake_time(text, NOW) == NOW + expected


def test_parse_iso_timestamp():
    assert parse_wake_time("2026-10-19T12:00:00Z", NOW) == datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def test_parse_naive_iso_uses_local_zone():
    parsed = parse_wake_time("2026-10-19T12:00:00", NOW)
    assert parsed.tzinfo == NOW.tzinfo


def test_parse_tomorrow():
    assert parse_wake_time("tomorrow 9am", NOW) == datetime(2026, 10, 20, 9, 0, tzinfo=timezone.utc)
    assert parse_wake_time("tomorrow at 14:30", NOW) == datetime(2026, 10, 20, 14, 30, tzinfo=timezone.utc)
    assert parse_wake_time("tomorrow", NOW) == NOW + timedelta(days=1)


def test_parse_clock_time():
    assert parse_wake_time("at 14:30", NOW) == datetime(2026, 10, 19, 14, 30, tzinfo=timezone.utc)
    # 9am has already passed today
    assert parse_wake_time("at 9am", NOW) == datetime(2026, 10, 20, 9, 0, tzinfo=timezone.utc)


def test_parse_unparseable():
    assert parse_wake_time("whenever", NOW) is None
    assert parse_wake_time("", NOW) is None
    assert parse_wake_time("at 25:00", NOW) is None


def test_resolve_wake_delay():
    assert resolve_wake_delay("5m", NOW) == timedelta(minutes=5)
    assert resolve_wake_delay("whenever", NOW) == timedelta(seconds=60)
    assert resolve_wake_delay("whenever", NOW, default=timedelta(seconds=5)) == timedelta(seconds=5)
    # a time in the past means wake immediately
    assert resolve_wake_delay("2020-01-01T00:00:00Z", NOW) == timedelta(0)


def test_parse_out_of_range_is_unparseable():
    assert parse_wake_time("in 1000000000000 seconds", NOW) is None
    assert parse_wake_time("99999999999 days", NOW) is None
    assert resolve_wake_delay("in 1000000000000 seconds", NOW) == timedelta(seconds=60)


def test_resolve_wake_delay_is_clamped():
    assert resolve_wake_delay("9999-12-31T00:00:00Z", NOW) == MAX_WAKE_DELAY
    assert resolve_wake_delay("5000 days", NOW) == MAX_WAKE_DELAY


def test_build_sub_run_goal():
    assert build_sub_run_goal("check replies", {}) == "check replies"

    goal = build_sub_run_goal("check replies", {"thread_url": "https://x.example/t/1"})
    assert goal == "check replies\n\n[Use thread_url from memory: https://x.example/t/1]"


def _child(run=None) -> MagicMock:
    child = MagicMock()
    child.run = run or AsyncMock(return_value=None)
    return child


@pytest.mark.asyncio
async def test_fire_starts_sub_run_with_memory_snapshot(file_store):
    session = await file_store.create("watch the thread")
    session.memory.update({"thread_url": "https://x.example/t/1", "last_seen": "3"})
    job = ScheduledJob(cron="*/5 * * * *", task_description="check replies")
    session.scheduled_jobs.append(job)

    child = _child()
    factory = MagicMock(return_value=child)
    scheduler = CronScheduler(factory, file_store)

    task = await scheduler.fire(session, job)
    await task

    snapshot = factory.call_args.args[0]
    assert snapshot == session.memory
    assert snapshot is not session.memory

    # later parent changes do not leak into the child's copy
    session.memory["last_seen"] = "4"
    assert snapshot["last_seen"] == "3"

    child.run.assert_awaited_once_with(
        "check replies\n\n[Use thread_url from memory: https://x.example/t/1]"
    )
    assert job.last_run is not None
    assert job.next_run > job.last_run

    stored = await file_store.load(session.id)
    assert stored.scheduled_jobs[0].last_run is not None


@pytest.mark.asyncio
async def test_failed_sub_run_is_reported(file_store):
    seen = []
    session = await file_store.create("goal")
    job = ScheduledJob(cron="*/5 * * * *", task_description="check")
    child = _child(AsyncMock(side_effect=RuntimeError("boom")))
    scheduler = CronScheduler(MagicMock(return_value=child), file_store, on_event=seen.append)

    task = await scheduler.fire(session, job)
    result = await task

    assert result is None
    errors = [e for e in seen if e.type == AgentEventType.ERROR]
    assert "boom" in errors[0].data["error"]


@pytest.mark.asyncio
async def test_register_rejects_invalid_cron(file_store):
    session = await file_store.create("goal")
    scheduler = CronScheduler(MagicMock(), file_store)

    with pytest.raises(ValueError):
        scheduler.register(session, ScheduledJob(cron="nope", task_description="x"))

    assert scheduler.active_jobs == []


@pytest.mark.asyncio
async def test_run_forever_fires_until_stopped(file_store):
    session = await file_store.create("goal")
    job = ScheduledJob(cron="*/5 * * * *", task_description="check")
    session.scheduled_jobs.append(job)

    ran = asyncio.Event()
    child = _child(AsyncMock(side_effect=lambda goal: ran.set()))
    sleeps = []

    async def fake_sleep(seconds):
        sleeps.append(seconds)
        if len(sleeps) > 1:
            await asyncio.Event().wait()

    scheduler = CronScheduler(MagicMock(return_value=child), file_store, sleep=fake_sleep)
    runner = asyncio.create_task(scheduler.run_forever(session))

    await asyncio.wait_for(ran.wait(), timeout=5)
    assert scheduler.active_jobs == [job.id]

    scheduler.stop()
    await asyncio.wait_for(runner, timeout=5)

    assert scheduler.active_jobs == []
    assert sleeps[0] >= 0
    child.run.assert_awaited_once_with("check")
