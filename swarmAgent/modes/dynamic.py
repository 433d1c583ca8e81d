"""Dynamic mode: the supervisor picks exactly one agent per step.

After each step the continuation condition is evaluated again; the default
condition keeps going while planned goals or unserved mentions remain. The
number of steps is bounded by the cycle's ``max_steps``, checked by the graph.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from swarmAgent.graph.state import CycleState
from swarmAgent.schema import DecisionTier, OrchestrationDecision
from swarmAgent.supervisor.supervisor import Supervisor

from .base import CycleRuntime, ExecutionMode, ExecutionStrategy, StepAssignment, roster_ids, short_title

LOGGER = logging.getLogger(__name__)

ContinuationCondition = Callable[[CycleState], bool]


def pending_mentions(state: CycleState) -> List[str]:
    served = set(state.get("served_agent_ids", []))
    return [m for m in state.get("mentioned_agent_ids", []) if m not in served]


def remaining_work(state: CycleState) -> bool:
    """Default continuation: undecomposed goals or unserved mentions remain."""
    return state.get("goal_index", 0) < len(state.get("goals", [])) or bool(pending_mentions(state))


class DynamicStrategy(ExecutionStrategy):
    """Supervisor-driven loop.

    Args:
        supervisor: Routing policy consulted at the start of every step
        continuation: Condition evaluated after each step (default: ``remaining_work``)
    """

    mode = ExecutionMode.DYNAMIC

    def __init__(self, supervisor: Supervisor, continuation: Optional[ContinuationCondition] = None):
        self.supervisor = supervisor
        self.continuation = continuation or remaining_work

    async def plan(self, state: CycleState, runtime: CycleRuntime) -> List[StepAssignment]:
        goals = state.get("goals", [])
        goal_index = state.get("goal_index", 0)
        mentions = pending_mentions(state)

        if goal_index < len(goals):
            goal = goals[goal_index]
            text, title = goal.get("description", ""), goal.get("title") or short_title(goal.get("description", ""))
            assigned, priority = goal.get("assigned_agent_id"), goal.get("priority", goal_index)
        else:
            text = state.get("intent", "")
            title, assigned, priority = short_title(text), None, goal_index

        if assigned and assigned in roster_ids(state) and not mentions:
            decision = OrchestrationDecision(
                next_agent_id=assigned,
                reasoning=f"Assigned by task plan: {title}",
                tier=DecisionTier.MODEL,
            )
        else:
            decision = await self.supervisor.decide_next_agent(
                text,
                runtime.conversation,
                state.get("roster", ()),
                mentions,
                cancel_token=runtime.cancel_token,
            )

        LOGGER.debug(f"Dynamic step {state.get('step', 0) + 1}: {decision.next_agent_id} ({decision.tier.value})")
        return [StepAssignment(
            agent_id=decision.next_agent_id,
            title=title,
            description=text,
            priority=priority,
            decision=decision,
        )]

    def should_continue(self, state: CycleState) -> bool:
        return bool(self.continuation(state))

    def aborts_on_failure(self, state, tasks) -> bool:
        return len(state.get("roster", ())) == 1

    def progress(self, state, assignments) -> dict:
        # One goal per step
        return {"goal_index": state.get("goal_index", 0) + 1}
