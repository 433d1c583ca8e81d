"""CycleState - LangGraph state of one orchestration cycle.

The graph never touches ConversationState directly: it reads the history
snapshot taken when the cycle starts and the Orchestrator applies the result
(messages, phase, turn) after the graph reaches a terminal node.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple, TypedDict

from langchain_core.messages import BaseMessage

from swarmAgent.schema import AgentConfig, Task, Usage


class PlannedGoal(TypedDict, total=False):
    """One unit of work produced by the planning phase."""

    title: str
    description: str
    assigned_agent_id: Optional[str]
    priority: int


class CycleState(TypedDict, total=False):
    """State for one cycle of the phase machine."""

    # ========== Request ==========
    session_id: str
    user_text: str
    """Raw user text of this call."""

    request: str
    """User text with @mentions removed."""

    intent: str
    """Confirmed intent (clarification reply, caller-supplied, or the request itself)."""

    resumed: bool
    """True when this call answers a pending clarification."""

    # ========== Roster (read-only during the cycle) ==========
    mode: str
    roster: Tuple[AgentConfig, ...]
    participants: List[str]
    """Registration order; the rotation order of Sequential mode."""

    turn_index: int
    history: Tuple[BaseMessage, ...]
    """Conversation messages as they were when the cycle started."""

    mentioned_agent_ids: List[str]
    served_agent_ids: List[str]

    # ========== Plan & progress ==========
    goals: List[PlannedGoal]
    goal_index: int
    tasks: List[Task]

    # ========== Loop control ==========
    step: int
    """Executed steps so far."""

    max_steps: int
    """Hard ceiling on steps (Dynamic mode loop guard)."""

    wants_more: bool
    """Continuation condition as evaluated after the last step."""

    max_turns_reached: bool

    # ========== Phase machine ==========
    phase: str
    phase_history: List[str]

    needs_clarification: bool
    clarification_question: Optional[str]

    # ========== Outcome ==========
    summary: Optional[str]
    usage: Usage
    cost_usd: float
    aborted: bool
    interrupt_reason: Optional[str]
    error: Optional[str]
    metadata: Dict[str, Any]


__all__ = ["CycleState", "PlannedGoal"]
