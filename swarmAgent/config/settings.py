"""Environment-bound configuration objects.

This module provides Pydantic BaseSettings-based configuration loading from .env files.
Every settings group accepts several alias names for its environment variables
(e.g. OPENROUTER_API_KEY and OPENAI_API_KEY both work) and can also be built
directly with field names, which is what the tests do.

Example:
    from swarmAgent.config.settings import get_settings

    settings = get_settings()  # Cached singleton
    api_key = settings.models.api_key
    ceiling = settings.orchestration.recursion_limit
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


load_dotenv()


class ModelRoutingSettings(BaseSettings):
    """Model backend credentials and default model identifiers.

    All agents share one OpenAI-compatible endpoint (OpenRouter by default);
    each agent may prefer its own model id, otherwise ``default_model`` is used.
    The supervisor model serves routing fallback, clarification, planning and
    summarization prompts.
    """

    api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("OPENROUTER_API_KEY", "OPENAI_API_KEY", "MODEL_API_KEY"),
    )
    base_url: Optional[str] = Field(
        default="https://openrouter.ai/api/v1",
        validation_alias=AliasChoices("OPENROUTER_BASE_URL", "MODEL_BASE_URL"),
    )
    default_model: str = Field(
        default="anthropic/claude-3.5-sonnet",
        validation_alias=AliasChoices("MODEL_DEFAULT", "MODEL_DEFAULT_ID"),
    )
    supervisor_model: str = Field(
        default="openai/gpt-4o-mini",
        validation_alias=AliasChoices("MODEL_SUPERVISOR", "MODEL_SUPERVISOR_ID"),
    )
    supervisor_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    default_temperature: float = Field(default=0.7, ge=0.0, le=2.0)
    max_output_tokens: int = Field(
        default=2000,
        ge=1,
        validation_alias=AliasChoices("MODEL_MAX_OUTPUT_TOKENS"),
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class ContextSettings(BaseSettings):
    """Context window budget for specialist prompts.

    - max_tokens: token budget of the history sent to one specialist
    - preserve_recent_messages: the last N messages are always kept
    - floor_policy: what to do when system + recent messages alone exceed the
      budget ("exceed" keeps them anyway, "raise" raises BudgetExceededError)
    """

    max_tokens: int = Field(default=8000, ge=1, alias="CONTEXT_MAX_TOKENS")
    min_messages: int = Field(default=5, ge=0)
    preserve_system_messages: bool = Field(default=True)
    preserve_recent_messages: int = Field(default=10, ge=0, alias="CONTEXT_PRESERVE_RECENT")
    floor_policy: Literal["exceed", "raise"] = Field(default="exceed", alias="CONTEXT_FLOOR_POLICY")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class OrchestrationSettings(BaseSettings):
    """Runtime governance for one orchestration cycle.

    - default_mode: sequential | parallel | dynamic
    - recursion_limit: hard ceiling on dynamic-mode steps (1-500, default: 50)
    - agent_timeout_seconds: per-specialist-call timeout
    - enable_clarification: ask the supervisor model whether intent is clear
    - plan_with_model: let the supervisor model decompose requests into tasks
    - summarize_with_model: merge several task outputs with the supervisor model
    """

    default_mode: Literal["sequential", "parallel", "dynamic"] = Field(
        default="dynamic", alias="ORCHESTRATION_MODE"
    )
    recursion_limit: int = Field(default=50, ge=1, le=500, alias="ORCHESTRATION_RECURSION_LIMIT")
    agent_timeout_seconds: float = Field(default=120.0, gt=0, alias="AGENT_TIMEOUT_SECONDS")
    enable_clarification: bool = Field(default=False, alias="ENABLE_CLARIFICATION")
    plan_with_model: bool = Field(default=False, alias="PLAN_WITH_MODEL")
    summarize_with_model: bool = Field(default=True, alias="SUMMARIZE_WITH_MODEL")
    max_planned_tasks: int = Field(default=5, ge=1, le=20)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class ObservabilitySettings(BaseSettings):
    """Logging configuration.

    - log_level: console/file level for the ``swarmAgent`` logger
    - log_dir: directory for log files (empty string disables file logging)
    - log_prompt_max_length: truncation length for logged prompts and outputs
    """

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_dir: Optional[str] = Field(default="logs", alias="LOG_DIR")
    log_prompt_max_length: int = Field(default=500, ge=100, le=5000, alias="LOG_PROMPT_MAX_LENGTH")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


class Settings(BaseSettings):
    """Root application settings loaded from .env file.

    Hierarchical structure containing four nested settings groups:
    - models: Model backend credentials (ModelRoutingSettings)
    - context: History budget (ContextSettings)
    - orchestration: Cycle controls (OrchestrationSettings)
    - observability: Logging (ObservabilitySettings)

    Use get_settings() to obtain a cached singleton instance.
    """

    environment: str = Field(default="dev", alias="APP_ENV")
    models: ModelRoutingSettings = Field(default_factory=ModelRoutingSettings)
    context: ContextSettings = Field(default_factory=ContextSettings)
    orchestration: OrchestrationSettings = Field(default_factory=OrchestrationSettings)
    observability: ObservabilitySettings = Field(default_factory=ObservabilitySettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
        case_sensitive=False,
        populate_by_name=True,
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton Settings instance.

    Returns:
        Settings: Cached application settings instance
    """
    return Settings()
