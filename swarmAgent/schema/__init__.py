"""Data model shared by every swarmAgent component."""

from .agent import AgentConfig, DecisionTier, OrchestrationDecision, create_agent_config
from .conversation import (
    PHASE_TRANSITIONS,
    ConversationState,
    Phase,
    agent_message,
    check_transition,
    message_role,
    message_text,
    system_message,
    user_message,
)
from .events import EventType, StreamEvent
from .results import ContextWindow, CycleResult
from .task import FailureCause, Task, TaskStatus, Usage

__all__ = [
    "AgentConfig",
    "create_agent_config",
    "DecisionTier",
    "OrchestrationDecision",
    "ConversationState",
    "Phase",
    "PHASE_TRANSITIONS",
    "check_transition",
    "agent_message",
    "user_message",
    "system_message",
    "message_role",
    "message_text",
    "EventType",
    "StreamEvent",
    "ContextWindow",
    "CycleResult",
    "Task",
    "TaskStatus",
    "FailureCause",
    "Usage",
]
