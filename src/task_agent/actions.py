"""
Built-in actions the agent loop interprets itself.

Each built-in is a pydantic model tagged by ``kind``; its docstring is the
description the oracle sees and its fields are the arguments. Anything not
in this set is an ``ExternalAction`` and goes to the tool registry.
"""

from dataclasses import dataclass, field
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from .llm.base import ToolDefinition

DONE_ACTION = "done"
SCHEDULE_ACTION = "schedule"


class Remember(BaseModel):
    """Store a fact in persistent memory. Scheduled runs inherit memory, so store anything a later run needs (URLs, last message sent, targets)."""

    kind: Literal["remember"] = "remember"
    key: str = Field(description="Short identifier, e.g. 'thread_url'")
    value: str = Field(description="The value to store")


class Recall(BaseModel):
    """Read a value previously stored with remember()."""

    kind: Literal["recall"] = "recall"
    key: str = Field(description="The key to look up")


class ListMemories(BaseModel):
    """List the keys currently stored in memory."""

    kind: Literal["list_memories"] = "list_memories"


class StatusUpdate(BaseModel):
    """Send a short progress message to the user without stopping."""

    kind: Literal["status_update"] = "status_update"
    message: str = Field(description="The message to show")


class AskUser(BaseModel):
    """Ask the user a question and wait for the answer. Only use this for information that is not available any other way."""

    kind: Literal["ask_user"] = "ask_user"
    question: str = Field(description="The question to ask")
    hint: str | None = Field(default=None, description="Optional hint about the expected answer format")


class Schedule(BaseModel):
    """Run a task on a recurring cron schedule. The process stays alive after done() and starts a fresh run at every fire."""

    kind: Literal["schedule"] = "schedule"
    cron: str = Field(description="Five-field cron expression, e.g. '*/5 * * * *'")
    task_description: str = Field(description="What to do when the schedule fires")


class SleepUntil(BaseModel):
    """Pause the task until a time (ISO timestamp, '30m', '2h', 'tomorrow 9am')."""

    kind: Literal["sleep_until"] = "sleep_until"
    until: str = Field(description="When to wake up")
    reason: str = Field(default="", description="Why the task is sleeping")


class Done(BaseModel):
    """Signal that the task is complete. Include every concrete result in the summary."""

    kind: Literal["done"] = "done"
    summary: str = Field(default="Task complete.", description="Full summary of what was found or done")


BuiltinAction = Annotated[
    Union[Remember, Recall, ListMemories, StatusUpdate, AskUser, Schedule, SleepUntil, Done],
    Field(discriminator="kind"),
]

BUILTIN_ACTIONS: dict[str, type[BaseModel]] = {
    "remember": Remember,
    "recall": Recall,
    "list_memories": ListMemories,
    "status_update": StatusUpdate,
    "ask_user": AskUser,
    "schedule": Schedule,
    "sleep_until": SleepUntil,
    "done": Done,
}

_builtin_adapter: TypeAdapter[BuiltinAction] = TypeAdapter(BuiltinAction)


@dataclass
class ExternalAction:
    """An action delegated to the tool registry."""

    name: str
    arguments: dict[str, Any] = field(default_factory=dict)


Action = Union[Remember, Recall, ListMemories, StatusUpdate, AskUser, Schedule, SleepUntil, Done, ExternalAction]


def parse_action(name: str, arguments: dict[str, Any] | None = None) -> Action:
    """Turn a proposed tool call into an action variant.

    Raises ``pydantic.ValidationError`` when a built-in's arguments are invalid.
    """
    arguments = dict(arguments or {})
    if name in BUILTIN_ACTIONS:
        arguments.pop("kind", None)
        return _builtin_adapter.validate_python({**arguments, "kind": name})
    return ExternalAction(name=name, arguments=arguments)


def builtin_definitions(exclude: set[str] | None = None) -> list[ToolDefinition]:
    """Tool definitions for the built-in actions."""
    definitions = []
    for name, model in BUILTIN_ACTIONS.items():
        if exclude and name in exclude:
            continue

        schema = model.model_json_schema()
        properties = {
            key: {k: v for k, v in prop.items() if k != "title"}
            for key, prop in schema.get("properties", {}).items()
            if key != "kind"
        }
        required = [key for key in schema.get("required", []) if key != "kind"]

        definitions.append(ToolDefinition(
            name=name,
            description=(model.__doc__ or "").strip(),
            parameters={"type": "object", "properties": properties, "required": required},
        ))
    return definitions
