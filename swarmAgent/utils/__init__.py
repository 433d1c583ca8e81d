"""Utility modules for swarmAgent."""

from .error_handler import (
    AgentNotFoundError,
    AgentTimeoutError,
    BudgetExceededError,
    CancellationError,
    ConfigurationError,
    InvalidTransitionError,
    ModelInvocationError,
    SwarmAgentError,
    handle_model_error,
    with_error_boundary,
)
from .logging_utils import (
    log_context_window,
    log_error,
    log_phase_transition,
    log_routing_decision,
    log_supervisor_decision,
    log_task_result,
    log_user_message,
    setup_logging,
)
from .mention_parser import parse_mentions, resolve_mentions

__all__ = [
    "SwarmAgentError",
    "ConfigurationError",
    "AgentNotFoundError",
    "ModelInvocationError",
    "AgentTimeoutError",
    "CancellationError",
    "BudgetExceededError",
    "InvalidTransitionError",
    "handle_model_error",
    "with_error_boundary",
    "setup_logging",
    "log_routing_decision",
    "log_phase_transition",
    "log_supervisor_decision",
    "log_task_result",
    "log_context_window",
    "log_error",
    "log_user_message",
    "parse_mentions",
    "resolve_mentions",
]
