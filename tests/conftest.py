"""Pytest configuration and fixtures for all tests.

This file is automatically loaded by pytest and ensures proper test environment setup.
It also provides a scripted LangChain chat model, so no test talks to a real backend.
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List, Optional

import pytest
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import AIMessage, AIMessageChunk, BaseMessage
from langchain_core.outputs import ChatGeneration, ChatGenerationChunk, ChatResult
from pydantic import Field

# Ensure project root is in PYTHONPATH for imports to work
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from swarmAgent.config.settings import (  # noqa: E402
    ContextSettings,
    ModelRoutingSettings,
    ObservabilitySettings,
    OrchestrationSettings,
    Settings,
)
from swarmAgent.schema import create_agent_config  # noqa: E402


class ScriptedChatModel(BaseChatModel):
    """Chat model fake that replays scripted replies.

    - responses: replies used in call order (the last one repeats)
    - error: raise RuntimeError(error) instead of answering
    - fail_after_chunks: stream this many chunks, then raise ``error``
    - delay: seconds to wait before the first chunk
    - chunk_delay: seconds to wait between chunks
    """

    responses: List[str] = Field(default_factory=lambda: ["ok"])
    error: Optional[str] = None
    fail_after_chunks: Optional[int] = None
    delay: float = 0.0
    chunk_delay: float = 0.0
    calls: List[List[BaseMessage]] = Field(default_factory=list)

    @property
    def _llm_type(self) -> str:
        return "scripted"

    def _next_reply(self, messages: List[BaseMessage]) -> str:
        self.calls.append(list(messages))
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        return self.responses[index]

    def _generate(self, messages, stop=None, run_manager=None, **kwargs: Any) -> ChatResult:
        text = self._next_reply(messages)
        if self.error:
            raise RuntimeError(self.error)
        return ChatResult(generations=[ChatGeneration(message=AIMessage(content=text))])

    async def _agenerate(self, messages, stop=None, run_manager=None, **kwargs: Any) -> ChatResult:
        text = self._next_reply(messages)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise RuntimeError(self.error)
        return ChatResult(generations=[ChatGeneration(message=AIMessage(content=text))])

    async def _astream(self, messages, stop=None, run_manager=None, **kwargs: Any) -> AsyncIterator[ChatGenerationChunk]:
        text = self._next_reply(messages)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error and self.fail_after_chunks is None:
            raise RuntimeError(self.error)

        words = text.split(" ")
        for i, word in enumerate(words):
            if self.fail_after_chunks is not None and i >= self.fail_after_chunks:
                raise RuntimeError(self.error or "stream broken")
            if self.chunk_delay and i:
                await asyncio.sleep(self.chunk_delay)
            yield ChatGenerationChunk(message=AIMessageChunk(content=word if i == 0 else f" {word}"))


class ScriptedResolver:
    """ModelResolver over a dict of scripted models; unknown ids get a default model."""

    def __init__(self, models: Optional[Dict[str, ScriptedChatModel]] = None, default: Optional[ScriptedChatModel] = None):
        self.models = dict(models or {})
        self.default = default
        self.requested: List[str] = []

    def __call__(self, model_id: str, temperature: Optional[float] = None) -> ScriptedChatModel:
        self.requested.append(model_id)
        if model_id not in self.models:
            self.models[model_id] = self.default or ScriptedChatModel(responses=[f"reply from {model_id}"])
        return self.models[model_id]


@pytest.fixture
def scripted_model():
    """Factory for ScriptedChatModel instances."""
    def factory(*responses: str, **kwargs) -> ScriptedChatModel:
        return ScriptedChatModel(responses=list(responses) or ["ok"], **kwargs)
    return factory


@pytest.fixture
def roster():
    """dev, pm, architect, designer, analyst (registration order); model id == '<id>-model'."""
    return [
        create_agent_config(
            "dev", "Developer", "Software Developer",
            model_preference="dev-model", capability_tags=["development", "code"],
        ),
        create_agent_config(
            "pm", "Product Manager", "Product Manager",
            model_preference="pm-model", capability_tags=["product"],
        ),
        create_agent_config(
            "architect", "Architect", "Software Architect",
            model_preference="architect-model", capability_tags=["architecture"],
        ),
        create_agent_config(
            "designer", "Designer", "UI/UX Designer",
            model_preference="designer-model", capability_tags=["design"],
        ),
        create_agent_config(
            "analyst", "Analyst", "Data Analyst",
            model_preference="analyst-model", capability_tags=["analysis"],
        ),
    ]


@pytest.fixture
def make_settings():
    """Settings built in code: no .env key is needed and no log file is written."""
    def factory(**orchestration) -> Settings:
        orchestration.setdefault("agent_timeout_seconds", 5.0)
        orchestration.setdefault("summarize_with_model", False)
        return Settings(
            models=ModelRoutingSettings(api_key="test-key"),
            context=ContextSettings(max_tokens=8000),
            orchestration=OrchestrationSettings(**orchestration),
            observability=ObservabilitySettings(log_dir=""),
        )
    return factory


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def scripted_resolver():
    """The ScriptedResolver class, for tests that wire an Orchestrator."""
    return ScriptedResolver
