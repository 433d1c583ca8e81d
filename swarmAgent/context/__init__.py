"""Context window management: token estimation and history trimming."""

from .manager import (
    ContextManager,
    MessageImportance,
    create_context_manager,
    create_summary_message,
    extract_key_points,
    extract_topics,
    is_marked_important,
    mark_as_important,
)
from .token_estimator import TokenEstimator, estimate_tokens

__all__ = [
    "ContextManager",
    "MessageImportance",
    "TokenEstimator",
    "estimate_tokens",
    "create_context_manager",
    "create_summary_message",
    "extract_topics",
    "extract_key_points",
    "mark_as_important",
    "is_marked_important",
]
