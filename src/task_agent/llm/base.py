"""
Base classes for the decision oracle (LLM providers).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Literal

# Stop reasons that mean the model finished on its own rather than being cut off
NATURAL_STOP_REASONS = frozenset({"end_turn", "stop", "stop_sequence"})


@dataclass
class ToolDefinition:
    """Definition of a tool that the LLM can use."""

    name: str
    description: str
    parameters: dict[str, Any]


@dataclass
class ToolCall:
    """A tool call made by the LLM."""

    id: str
    name: str
    arguments: dict[str, Any]


@dataclass
class ToolResultPart:
    """The result of one tool call inside a tool turn."""

    tool_call_id: str
    tool_name: str
    content: str
    is_error: bool = False

    def as_text(self) -> str:
        """Plain-text form, for a result whose call is no longer in the transcript."""
        return f"RESULT {self.tool_name}: {self.content}"


@dataclass
class LLMMessage:
    """A turn in the conversation.

    Tool turns carry one ``ToolResultPart`` per call of the preceding
    assistant turn, in the order the calls were issued.
    """

    role: Literal["user", "assistant", "tool"]
    content: str = ""
    tool_calls: list[ToolCall] | None = None
    tool_results: list[ToolResultPart] | None = None


@dataclass
class LLMResponse:
    """Response from an LLM."""

    content: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""
    stop_reason: str | None = None
    raw_response: Any = None

    @property
    def is_natural_stop(self) -> bool:
        return self.stop_reason in NATURAL_STOP_REASONS


class BaseLLM(ABC):
    """Base class for LLM providers."""

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.max_tokens = max_tokens
        self.temperature = temperature

    @abstractmethod
    async def generate(
        self,
        messages: list[LLMMessage],
        tools: list[ToolDefinition] | None = None,
        system_prompt: str | None = None,
    ) -> LLMResponse:
        """Generate a response from the LLM."""
        pass

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Get the provider name."""
        pass
