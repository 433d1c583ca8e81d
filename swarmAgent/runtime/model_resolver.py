"""Default model resolver wiring using environment-derived settings.

All agents share one OpenAI-compatible endpoint (OpenRouter by default), so
the resolver only needs the model id and a temperature. Clients are created
lazily and cached per (model id, temperature).

The credential check happens when a model is first requested, which is when
the orchestrator prepares a cycle, i.e. before any session state changes.
"""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from langchain_openai import ChatOpenAI

from swarmAgent.agents import ModelResolver
from swarmAgent.config import Settings
from swarmAgent.utils.error_handler import ConfigurationError


def _chat_kwargs(settings: Settings, model: str, temperature: float) -> Dict[str, object]:
    api_key = settings.models.api_key
    if not api_key:
        raise ConfigurationError(
            f"Missing API key for model {model}",
            "缺少模型 API Key，请在 .env 中配置 OPENROUTER_API_KEY。",
        )
    kwargs: Dict[str, object] = {
        "model": model,
        "api_key": api_key,
        "temperature": temperature,
        "max_tokens": settings.models.max_output_tokens,
        "streaming": True,
    }
    if settings.models.base_url:
        kwargs["base_url"] = settings.models.base_url
    return kwargs


def build_model_resolver(settings: Settings) -> ModelResolver:
    """Construct a resolver that returns ChatOpenAI-compatible clients.

    Args:
        settings: Application settings

    Returns:
        ModelResolver: ``resolver(model_id, temperature=None) -> ChatOpenAI``

    Raises:
        ConfigurationError: (when called) no API key is configured

    Example:
        >>> resolver = build_model_resolver(get_settings())
        >>> chat_model = resolver("openai/gpt-4o-mini", temperature=0.3)
    """
    cache: Dict[Tuple[str, float], ChatOpenAI] = {}

    def resolver(model_id: str, temperature: Optional[float] = None) -> ChatOpenAI:
        temp = settings.models.default_temperature if temperature is None else temperature
        key = (model_id, temp)
        if key not in cache:
            cache[key] = ChatOpenAI(**_chat_kwargs(settings, model_id, temp))
        return cache[key]

    return resolver


def has_credentials(settings: Settings) -> bool:
    return bool(settings.models.api_key)


__all__ = ["build_model_resolver", "has_credentials"]
