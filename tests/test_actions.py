"""
Tests for built-in actions and prompts.
"""

import pytest
from pydantic import ValidationError

from task_agent.actions import (
    BUILTIN_ACTIONS,
    Done,
    ExternalAction,
    Remember,
    Schedule,
    builtin_definitions,
    parse_action,
)
from task_agent.prompts import SYSTEM_PROMPT, build_system_prompt


def test_parse_builtin_action():
    action = parse_action("remember", {"key": "url", "value": "https://example.com"})

    assert isinstance(action, Remember)
    assert action.key == "url"
    assert action.value == "https://example.com"


def test_parse_ignores_smuggled_kind():
    action = parse_action("schedule", {"kind": "done", "cron": "* * * * *", "task_description": "x"})
    assert isinstance(action, Schedule)


def test_parse_done_defaults():
    action = parse_action("done", None)

    assert isinstance(action, Done)
    assert action.summary == "Task complete."


def test_parse_external_action():
    action = parse_action("click", {"selector": "#buy"})

    assert action == ExternalAction(name="click", arguments={"selector": "#buy"})


def test_parse_invalid_arguments():
    with pytest.raises(ValidationError):
        parse_action("remember", {"key": "only key"})


def test_builtin_definitions():
    definitions = {d.name: d for d in builtin_definitions()}

    assert set(definitions) == set(BUILTIN_ACTIONS)
    remember = definitions["remember"]
    assert remember.parameters["required"] == ["key", "value"]
    assert "kind" not in remember.parameters["properties"]
    assert "title" not in remember.parameters["properties"]["key"]
    assert remember.description.startswith("Store a fact")


def test_builtin_definitions_exclude():
    names = [d.name for d in builtin_definitions(exclude={"schedule"})]
    assert "schedule" not in names
    assert "done" in names


def test_system_prompt_with_memory():
    prompt = build_system_prompt({"city": "Lisbon"})

    assert prompt.startswith(SYSTEM_PROMPT)
    assert "Memory from previous runs" in prompt
    assert "- city: Lisbon" in prompt


def test_system_prompt_for_scheduled_run():
    prompt = build_system_prompt({"conversation_url": "https://chat.example.com/c/9"}, is_scheduled_run=True)

    assert "Do NOT call schedule() again" in prompt
    assert "Go directly to https://chat.example.com/c/9" in prompt


def test_system_prompt_without_memory():
    assert build_system_prompt() == SYSTEM_PROMPT
