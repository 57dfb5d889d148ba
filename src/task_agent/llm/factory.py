"""
Builds the decision oracle for a run from settings.

Anthropic goes through its native SDK; OpenAI and OpenRouter share the
OpenAI client, OpenRouter pointed at its compatible endpoint.
"""

import structlog

from ..config import OPENROUTER_BASE_URL, LLMConfig, Settings, get_settings
from .anthropic import AnthropicLLM
from .base import BaseLLM
from .openai import OpenAILLM

logger = structlog.get_logger()

# provider -> (client class, base URL used when none is configured)
PROVIDERS: dict[str, tuple[type[BaseLLM], str | None]] = {
    "anthropic": (AnthropicLLM, None),
    "openai": (OpenAILLM, None),
    "openrouter": (OpenAILLM, OPENROUTER_BASE_URL),
}


class LLMConfigError(ValueError):
    """The configured provider cannot be used."""


def create_llm(
    config: LLMConfig | None = None,
    settings: Settings | None = None,
    provider: str | None = None,
) -> BaseLLM:
    """Create the LLM for ``config``, or for ``provider`` as set up in ``settings``.

    Raises ``LLMConfigError`` for an unknown provider or a missing API key,
    before any request is made.
    """
    if config is None:
        config = (settings or get_settings()).get_llm_config(provider)

    try:
        llm_class, default_base_url = PROVIDERS[config.provider]
    except KeyError:
        raise LLMConfigError(
            f"Unknown LLM provider: {config.provider} (expected one of {', '.join(PROVIDERS)})"
        ) from None

    if not config.api_key:
        raise LLMConfigError(f"No API key set for provider {config.provider}")

    llm = llm_class(
        api_key=config.api_key,
        model=config.model,
        base_url=config.base_url or default_base_url,
        max_tokens=config.max_tokens,
        temperature=config.temperature,
    )
    logger.debug("LLM created", provider=config.provider, model=llm.model, base_url=llm.base_url)
    return llm
