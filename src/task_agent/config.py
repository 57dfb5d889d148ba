"""
Configuration management for Task-Agent

Uses pydantic-settings for environment variable parsing and validation.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"


class LLMConfig(BaseSettings):
    """Configuration for a single LLM provider."""

    model_config = SettingsConfigDict(extra="ignore")

    provider: Literal["anthropic", "openai", "openrouter"] = "anthropic"
    model: str = "claude-sonnet-4-20250514"
    api_key: str = ""
    base_url: str | None = None
    max_tokens: int = 4096
    temperature: float = 0.7


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    # Application
    app_name: str = "Task-Agent"
    debug: bool = False
    log_level: str = "INFO"

    # LLM Providers (API Keys)
    anthropic_api_key: str = Field(default="", description="Anthropic API key for Claude")
    openai_api_key: str = Field(default="", description="OpenAI API key")
    openrouter_api_key: str = Field(default="", description="OpenRouter API key")

    # Default model settings
    default_provider: Literal["anthropic", "openai", "openrouter"] = "anthropic"
    default_model: str = ""
    max_tokens: int = 4096
    temperature: float = 0.7

    # Session storage
    session_backend: Literal["sqlite", "file"] = Field(
        default="sqlite", description="Where sessions and event logs are persisted"
    )
    sessions_dir: str = Field(
        default=".task-agent/tasks", description="Directory for the file session backend"
    )
    database_url: str = Field(
        default="sqlite+aiosqlite:///./.task-agent/sessions.db",
        description="Database connection URL for the sqlite session backend",
    )

    # Agent loop
    max_iterations: int = Field(default=400, description="Fatal iteration ceiling per run")
    compaction_max_messages: int = Field(default=60, description="Compact when the transcript exceeds this")
    compaction_keep_recent: int = Field(default=20, description="Turns kept verbatim by compaction")
    loop_window: int = Field(default=20, description="Sliding window size for loop detection")
    loop_threshold: int = Field(default=5, description="Repeats inside the window that count as a loop")
    default_sleep_seconds: int = Field(default=60, description="Sleep used when a wake time cannot be parsed")

    # Tools
    enable_fetch_url: bool = True
    fetch_timeout_seconds: float = 30.0
    fetch_max_chars: int = 8000
    max_wait_seconds: int = 60

    @field_validator("max_iterations", "compaction_max_messages", "loop_window", "loop_threshold")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        if v < 1:
            raise ValueError("must be at least 1")
        return v

    def get_llm_config(self, provider: str | None = None) -> LLMConfig:
        """Get LLM configuration for a provider."""
        provider = provider or self.default_provider

        api_key_map = {
            "anthropic": self.anthropic_api_key,
            "openai": self.openai_api_key,
            "openrouter": self.openrouter_api_key,
        }

        model_map = {
            "anthropic": "claude-sonnet-4-20250514",
            "openai": "gpt-4o",
            "openrouter": "anthropic/claude-sonnet-4",
        }

        base_url_map = {
            "anthropic": None,
            "openai": None,
            "openrouter": OPENROUTER_BASE_URL,
        }

        return LLMConfig(
            provider=provider,  # type: ignore
            model=self.default_model or model_map.get(provider, ""),
            api_key=api_key_map.get(provider, ""),
            base_url=base_url_map.get(provider),
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
