"""Parallel mode: every active participant works concurrently.

Without a decomposed plan all targets answer the same request. With one, each
planned goal goes to its assigned agent; unassigned goals are dealt out to the
targets in registration order.
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


class ParallelStrategy(ExecutionStrategy):
    """Fan out to all participants (or only the mentioned ones) and wait for all to settle."""

    mode = ExecutionMode.PARALLEL

    def targets(self, state: CycleState) -> List[str]:
        participants = active_participants(state)
        mentioned = [m for m in state.get("mentioned_agent_ids", []) if m in participants]
        return mentioned or participants

    async def plan(self, state: CycleState, runtime: CycleRuntime) -> List[StepAssignment]:
        targets = self.targets(state)
        if not targets:
            raise ConfigurationError("Parallel mode needs at least one participant")

        goals = decomposed_goals(state)
        if goals:
            assignments = []
            for i, goal in enumerate(goals):
                assigned = goal.get("assigned_agent_id")
                if assigned in targets:
                    agent_id, tier = assigned, DecisionTier.MODEL
                    reasoning = f"Assigned by task plan: {goal.get('title', '')}"
                else:
                    agent_id, tier = targets[i % len(targets)], DecisionTier.RULE
                    reasoning = f"Unassigned goal {i + 1} dealt to participant {targets.index(agent_id) + 1}"
                decision = OrchestrationDecision(next_agent_id=agent_id, reasoning=reasoning, tier=tier)
                assignments.append(goal_assignment(goal, agent_id, i, decision))
            LOGGER.info(
                f"Parallel fan-out of {len(assignments)} planned goal(s) to: "
                f"{', '.join(a.agent_id for a in assignments)}"
            )
            return assignments

        intent = state.get("intent", "")
        LOGGER.info(f"Parallel fan-out to {len(targets)} agent(s): {', '.join(targets)}")
        return [
            StepAssignment(agent_id=agent_id, title=short_title(intent), description=intent, priority=i)
            for i, agent_id in enumerate(targets)
        ]
