"""Interfaces for agent dependencies."""

from __future__ import annotations

from typing import Optional, Protocol

from langchain_core.language_models import BaseChatModel


class ModelResolver(Protocol):
    """Callable that returns a LangChain chat model for a model id."""

    def __call__(self, model_id: str, temperature: Optional[float] = None) -> BaseChatModel:
        ...
