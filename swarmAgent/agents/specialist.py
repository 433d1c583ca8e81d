"""Specialist Agent - 单个专家 agent 的模型调用封装

prompt = 系统提示词 (+ 上下文摘要) + 裁剪后的历史 + 本次任务文本
支持流式输出、取消和单次调用超时。
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Dict, List, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage, SystemMessage

from swarmAgent.context.manager import create_summary_message
from swarmAgent.context.token_estimator import TokenEstimator
from swarmAgent.schema import AgentConfig, ContextWindow, Usage, message_text
from swarmAgent.streaming.cancellation import CancellationToken, run_cancellable
from swarmAgent.utils.error_handler import (
    AgentTimeoutError,
    CancellationError,
    ModelInvocationError,
    SwarmAgentError,
    handle_model_error,
)

from .interfaces import ModelResolver

LOGGER = logging.getLogger(__name__)

ChunkCallback = Callable[[str], None]


@dataclass(frozen=True)
class SpecialistResponse:
    """一次调用的结果：完整文本 + token 用量"""
    text: str
    usage: Usage
    model_id: Optional[str] = None


class SpecialistAgent:
    """Wraps one AgentConfig and the chat model it talks to.

    Args:
        config: Agent configuration
        model: LangChain chat model (already configured with the agent's temperature)
        model_id: Model identifier, used for pricing
        timeout: Default per-call timeout in seconds (None disables it)
    """

    def __init__(
        self,
        config: AgentConfig,
        model: BaseChatModel,
        *,
        model_id: Optional[str] = None,
        timeout: Optional[float] = None,
        estimator: Optional[TokenEstimator] = None,
    ):
        self.config = config
        self.model = model
        self.model_id = model_id or config.model_preference
        self.timeout = timeout
        self.estimator = estimator or TokenEstimator()

    @classmethod
    def from_resolver(
        cls,
        config: AgentConfig,
        resolver: ModelResolver,
        default_model: str,
        timeout: Optional[float] = None,
    ) -> "SpecialistAgent":
        model_id = config.model_preference or default_model
        return cls(config, resolver(model_id, temperature=config.temperature), model_id=model_id, timeout=timeout)

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def name(self) -> str:
        return self.config.name

    def __repr__(self) -> str:
        return f"SpecialistAgent(id={self.id!r}, role={self.config.role!r})"

    # ========== Prompt ==========

    def build_messages(self, window: Optional[ContextWindow], user_text: str) -> List[BaseMessage]:
        messages: List[BaseMessage] = []
        if self.config.system_instructions:
            messages.append(SystemMessage(content=self.config.system_instructions))
        if window is not None:
            if window.summary:
                messages.append(create_summary_message(window.summary))
            messages.extend(window.messages)
        messages.append(HumanMessage(content=user_text))
        return messages

    # ========== Invocation ==========

    async def stream(
        self,
        window: Optional[ContextWindow],
        user_text: str,
        *,
        cancel_token: Optional[CancellationToken] = None,
        timeout: Optional[float] = None,
    ) -> AsyncIterator[str]:
        """Yield text chunks as the model produces them.

        Same call as ``respond()``, so cancellation, timeout and backend errors
        surface from the iterator with the partial text attached.
        """
        chunks: asyncio.Queue = asyncio.Queue()
        call = asyncio.ensure_future(
            self.respond(window, user_text, on_chunk=chunks.put_nowait, cancel_token=cancel_token, timeout=timeout)
        )
        call.add_done_callback(lambda _: chunks.put_nowait(None))
        try:
            while True:
                chunk = await chunks.get()
                if chunk is None:
                    break
                yield chunk
            await call
        finally:
            if not call.done():
                call.cancel()
                await asyncio.gather(call, return_exceptions=True)

    async def respond(
        self,
        window: Optional[ContextWindow],
        user_text: str,
        *,
        on_chunk: Optional[ChunkCallback] = None,
        cancel_token: Optional[CancellationToken] = None,
        timeout: Optional[float] = None,
    ) -> SpecialistResponse:
        """Run one call, forwarding chunks to ``on_chunk`` as they arrive.

        Raises:
            CancellationError: cancelled mid-call (``partial_output`` holds the text received)
            AgentTimeoutError: the call exceeded its timeout
            ModelInvocationError: the backend failed
        """
        messages = self.build_messages(window, user_text)
        buffer: List[str] = []
        reported = {"input_tokens": 0, "output_tokens": 0}

        async def consume() -> str:
            async for chunk in self.model.astream(messages):
                # Stop forwarding as soon as the caller aborts
                if cancel_token is not None and cancel_token.is_cancelled:
                    break
                usage_metadata = getattr(chunk, "usage_metadata", None)
                if usage_metadata:
                    reported["input_tokens"] += usage_metadata.get("input_tokens", 0)
                    reported["output_tokens"] += usage_metadata.get("output_tokens", 0)
                text = message_text(chunk)
                if text:
                    buffer.append(text)
                    if on_chunk is not None:
                        on_chunk(text)
            if cancel_token is not None:
                cancel_token.raise_if_cancelled("".join(buffer))
            return "".join(buffer)

        def spent() -> Optional[Usage]:
            # Tokens already streamed are billed even when the call fails
            if not (buffer or reported["input_tokens"] or reported["output_tokens"]):
                return None
            return self._usage(reported, messages, "".join(buffer))

        effective_timeout = timeout if timeout is not None else self.timeout
        LOGGER.debug(f"[{self.id}] invoking {self.model_id or 'model'} with {len(messages)} messages")

        try:
            text = await run_cancellable(consume(), cancel_token, effective_timeout)
        except CancellationError as e:
            LOGGER.info(f"[{self.id}] cancelled after {len(buffer)} chunk(s)")
            raise CancellationError(str(e), partial_output="".join(buffer), usage=spent()) from e
        except AgentTimeoutError as e:
            LOGGER.warning(f"[{self.id}] timed out after {effective_timeout}s")
            raise AgentTimeoutError(
                f"{self.id}: {e}", e.user_message, partial_output="".join(buffer), usage=spent()
            ) from e
        except SwarmAgentError:
            raise
        except Exception as e:
            LOGGER.warning(f"[{self.id}] model call failed: {e}")
            raise ModelInvocationError(
                f"{self.id}: {e}", handle_model_error(e), partial_output="".join(buffer), usage=spent()
            ) from e

        return SpecialistResponse(text=text, usage=self._usage(reported, messages, text), model_id=self.model_id)

    def _usage(self, reported: Dict[str, int], messages: List[BaseMessage], text: str) -> Usage:
        """Backend-reported usage when present, otherwise an estimate of prompt and output."""
        if reported["input_tokens"] or reported["output_tokens"]:
            return Usage(reported["input_tokens"], reported["output_tokens"])
        return Usage(self.estimator.count_messages(messages), self.estimator.estimate(text))
