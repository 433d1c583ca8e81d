"""Sequential mode: registered participants take turns in registration order.

The turn's agent answers the whole intent, or works through a decomposed plan
one goal per step, each step seeing the outputs of the earlier ones.
"""

from __future__ import annotations

import logging
from typing import List

from swarmAgent.graph.state import CycleState
from swarmAgent.schema import DecisionTier, OrchestrationDecision
from swarmAgent.utils.error_handler import ConfigurationError

from .base import (
    CycleRuntime,
    ExecutionMode,
    ExecutionStrategy,
    StepAssignment,
    active_participants,
    decomposed_goals,
    goal_assignment,
    short_title,
)

LOGGER = logging.getLogger(__name__)


class SequentialStrategy(ExecutionStrategy):
    """One agent per turn: ``participants[turn_index % n]``."""

    mode = ExecutionMode.SEQUENTIAL

    async def plan(self, state: CycleState, runtime: CycleRuntime) -> List[StepAssignment]:
        participants = active_participants(state)
        if not participants:
            raise ConfigurationError("Sequential mode needs at least one participant")

        turn_index = state.get("turn_index", 0)
        agent_id = participants[turn_index % len(participants)]
        reasoning = f"Sequential rotation: turn {turn_index} of {len(participants)} participant(s)"

        goals = decomposed_goals(state)
        goal_index = state.get("goal_index", 0)
        if goal_index < len(goals):
            LOGGER.debug(f"Sequential turn {turn_index}: {agent_id} on goal {goal_index + 1}/{len(goals)}")
            decision = OrchestrationDecision(
                next_agent_id=agent_id,
                reasoning=f"{reasoning}, goal {goal_index + 1} of {len(goals)}",
                tier=DecisionTier.RULE,
            )
            return [goal_assignment(goals[goal_index], agent_id, goal_index, decision)]

        intent = state.get("intent", "")
        LOGGER.debug(f"Sequential turn {turn_index}: {agent_id} ({len(participants)} participant(s))")
        return [StepAssignment(
            agent_id=agent_id,
            title=short_title(intent),
            description=intent,
            decision=OrchestrationDecision(next_agent_id=agent_id, reasoning=reasoning, tier=DecisionTier.RULE),
        )]

    def should_continue(self, state: CycleState) -> bool:
        return state.get("goal_index", 0) < len(decomposed_goals(state))

    def aborts_on_failure(self, state, tasks) -> bool:
        # The turn's agent is the sole participant of this cycle
        return True

    def progress(self, state, assignments) -> dict:
        if decomposed_goals(state):
            return {"goal_index": state.get("goal_index", 0) + 1}
        return super().progress(state, assignments)
