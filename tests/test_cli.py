"""
Tests for the command-line entry points.
"""

import asyncio
import threading
import time
from unittest.mock import patch

import pytest

from task_agent.cli import _run_sync, ask_on_stdin, show_config
from task_agent.config import Settings


def _settings(tmp_path, **overrides) -> Settings:
    values = {
        "session_backend": "file",
        "sessions_dir": str(tmp_path / "tasks"),
        "anthropic_api_key": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.mark.asyncio
async def test_ask_on_stdin_returns_stripped_line():
    with patch("builtins.input", return_value="  blue \n"):
        assert await ask_on_stdin("Favourite colour?", None) == "blue"


@pytest.mark.asyncio
async def test_ask_on_stdin_propagates_eof():
    with patch("builtins.input", side_effect=EOFError):
        with pytest.raises(EOFError):
            await ask_on_stdin("Anyone there?", "yes/no")


def test_interrupted_question_does_not_block_shutdown():
    """An unanswered prompt must not hold up asyncio.run on the way out."""
    started = threading.Event()
    release = threading.Event()

    def blocked_input(prompt):
        started.set()
        release.wait(10)
        return "too late"

    async def ask_then_interrupt():
        task = asyncio.create_task(ask_on_stdin("Still there?", None))
        while not started.is_set():
            await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    with patch("builtins.input", side_effect=blocked_input):
        try:
            begin = time.monotonic()
            asyncio.run(ask_then_interrupt())
            assert time.monotonic() - begin < 5
        finally:
            release.set()


def test_run_without_api_key_exits_before_touching_sessions(tmp_path, capsys):
    settings = _settings(tmp_path)

    assert _run_sync(settings, goal="anything") == 2

    assert "No API key set for provider anthropic" in capsys.readouterr().err
    assert not (tmp_path / "tasks").exists()


def test_config_check_reports_missing_key(tmp_path, capsys):
    assert show_config(_settings(tmp_path), check=True) == 1
    assert "No API key set for provider anthropic" in capsys.readouterr().out


def test_config_check_passes_with_key(tmp_path, capsys):
    assert show_config(_settings(tmp_path, anthropic_api_key="sk-test-123456"), check=True) == 0
    assert "sk-t...3456" in capsys.readouterr().out
