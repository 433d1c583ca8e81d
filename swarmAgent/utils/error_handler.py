"""Unified error handling for swarmAgent graph nodes and specialist calls."""

from __future__ import annotations

import functools
import inspect
import logging
from typing import Any, Callable, Optional

LOGGER = logging.getLogger(__name__)


class SwarmAgentError(Exception):
    """Base exception for swarmAgent errors."""

    def __init__(self, message: str, user_message: str = None):
        super().__init__(message)
        self.user_message = user_message or message


class ConfigurationError(SwarmAgentError):
    """Fatal, pre-dispatch error (missing credential, empty roster)."""
    pass


class AgentNotFoundError(SwarmAgentError):
    """A mentioned or rule-selected agent is not in the current roster."""

    def __init__(self, agent_id: str, message: str = None):
        super().__init__(message or f"Agent not found in roster: {agent_id}")
        self.agent_id = agent_id


class ModelInvocationError(SwarmAgentError):
    """Error during model invocation (recoverable, per agent)."""

    def __init__(self, message: str, user_message: str = None, partial_output: str = "", usage=None):
        super().__init__(message, user_message)
        self.partial_output = partial_output
        self.usage = usage  # tokens consumed before the failure, when known


class AgentTimeoutError(ModelInvocationError):
    """A specialist call exceeded its per-call timeout."""
    pass


class CancellationError(SwarmAgentError):
    """Caller-initiated cancellation of an in-flight call."""

    def __init__(self, message: str = "Cancelled by caller", partial_output: str = "", usage=None):
        super().__init__(message, "操作已被用户中断")
        self.partial_output = partial_output
        self.usage = usage


class BudgetExceededError(SwarmAgentError):
    """Preserved messages (system + recent) alone exceed the token budget."""

    def __init__(self, floor_tokens: int, max_tokens: int):
        super().__init__(
            f"Preserved messages need {floor_tokens} tokens, budget is {max_tokens}",
            "对话历史过长，请开启新会话",
        )
        self.floor_tokens = floor_tokens
        self.max_tokens = max_tokens


class InvalidTransitionError(SwarmAgentError):
    """A phase or task status change that the state machine does not allow."""
    pass


def with_error_boundary(node_name: str):
    """Decorator to add an error boundary to graph nodes.

    Unexpected exceptions end the cycle as interrupted (reason "error") instead
    of propagating to the caller. Cancellation is not an error here: it is
    turned into the same interrupted outcome with reason "cancelled".

    Args:
        node_name: Name of the node for logging and error messages

    Example:
        @with_error_boundary("plan")
        async def plan_node(state: CycleState, config: RunnableConfig) -> dict:
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def async_wrapper(state: Any, *args, **kwargs) -> dict:
            try:
                return await func(state, *args, **kwargs)
            except CancellationError as e:
                LOGGER.info(f"{node_name} cancelled: {e}")
                return {"aborted": True, "interrupt_reason": "cancelled"}
            except ConfigurationError:
                raise
            except Exception as e:
                LOGGER.exception(f"{node_name} unexpected error", exc_info=e)
                return {
                    "aborted": True,
                    "interrupt_reason": "error",
                    "error": f"{node_name} 执行出错：{handle_model_error(e)}",
                }

        if not inspect.iscoroutinefunction(func):
            raise TypeError(f"with_error_boundary expects an async node, got {func!r}")
        return async_wrapper

    return decorator


def handle_model_error(error: Exception) -> str:
    """Convert model invocation errors to user-friendly messages.

    Args:
        error: Exception raised during model invocation

    Returns:
        User-friendly error message
    """
    user_message: Optional[str] = getattr(error, "user_message", None)
    if isinstance(error, SwarmAgentError) and user_message:
        return user_message

    error_str = str(error).lower()

    if "rate_limit" in error_str or "429" in error_str:
        return "请求过于频繁，请稍后再试"

    if "timeout" in error_str or "timed out" in error_str:
        return "AI 响应超时，请重试"

    if "context_length" in error_str or "maximum context" in error_str:
        return "对话历史过长，请开启新会话"

    if "invalid_api_key" in error_str or "authentication" in error_str or "401" in error_str:
        return "API 密钥无效，请联系管理员"

    if "quota" in error_str or "insufficient" in error_str:
        return "AI 服务配额不足，请联系管理员"

    return f"AI 服务暂时不可用：{str(error)}"
