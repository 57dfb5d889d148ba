"""
LLM module: the decision oracle behind the agent loop.

Providers:
- Anthropic Claude (native SDK)
- OpenAI GPT (native SDK)
- OpenRouter (via OpenAI-compatible endpoint)
"""

from .base import (
    BaseLLM,
    LLMMessage,
    LLMResponse,
    ToolCall,
    ToolDefinition,
    ToolResultPart,
)
from .anthropic import AnthropicLLM
from .openai import OpenAILLM
from .factory import LLMConfigError, create_llm

__all__ = [
    "BaseLLM",
    "LLMMessage",
    "LLMResponse",
    "ToolCall",
    "ToolDefinition",
    "ToolResultPart",
    "AnthropicLLM",
    "OpenAILLM",
    "LLMConfigError",
    "create_llm",
]
