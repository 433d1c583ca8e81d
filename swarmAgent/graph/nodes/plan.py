"""Planning node - break the confirmed intent into goals.

Three sources, first non-empty wins:
1. the supervisor model's JSON plan (when ``orchestration.plan_with_model`` is on)
2. numbered or bulleted lines of the request
3. the whole intent as one goal
"""

from __future__ import annotations

import logging
import re
from typing import List, Optional, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_core.runnables import RunnableConfig

from swarmAgent.graph.phases import enter_phase, get_cycle_runtime
from swarmAgent.graph.state import CycleState, PlannedGoal
from swarmAgent.modes.base import short_title
from swarmAgent.schema import AgentConfig, Phase, message_text
from swarmAgent.streaming.cancellation import run_cancellable
from swarmAgent.utils.error_handler import CancellationError, with_error_boundary
from swarmAgent.utils.logging_utils import log_plan_created
from swarmAgent.utils.model_output import extract_json_object
from swarmAgent.utils.prompt_builder import PromptBuilder

LOGGER = logging.getLogger("swarmAgent.plan")

PLANNER_SYSTEM_PROMPT = "You are a task planning assistant. Always respond with valid JSON."

# "1. xxx" / "2) xxx" / "3、xxx" / "- xxx" / "* xxx" / "• xxx"
STEP_LINE_PATTERN = re.compile(r"^\s*(?:\d+\s*[.)、]|[-*•])\s*(.+?)\s*$")


def split_steps(intent: str, max_goals: int) -> List[PlannedGoal]:
    """Goals from a numbered or bulleted request; empty when there are fewer than two steps."""
    steps = []
    for line in (intent or "").splitlines():
        match = STEP_LINE_PATTERN.match(line)
        if match and match.group(1):
            steps.append(match.group(1))
    if len(steps) < 2:
        return []
    return [
        PlannedGoal(title=short_title(step), description=step, assigned_agent_id=None, priority=i)
        for i, step in enumerate(steps[:max_goals], 1)
    ]


def parse_model_plan(payload: Optional[dict], roster: Sequence[AgentConfig], max_goals: int) -> List[PlannedGoal]:
    """Goals from the planner JSON; unknown agent ids are dropped, not trusted."""
    if not payload or not isinstance(payload.get("tasks"), list):
        return []

    roster_ids = {agent.id for agent in roster}
    goals: List[PlannedGoal] = []
    for i, item in enumerate(payload["tasks"], 1):
        if not isinstance(item, dict):
            continue
        description = str(item.get("description") or item.get("title") or "").strip()
        if not description:
            continue
        assigned = item.get("assigned_to") or item.get("assignedTo")
        priority = item.get("priority")
        goals.append(PlannedGoal(
            title=str(item.get("title") or "").strip() or short_title(description),
            description=description,
            assigned_agent_id=assigned if assigned in roster_ids else None,
            priority=priority if isinstance(priority, int) else i,
        ))

    goals.sort(key=lambda goal: goal["priority"])
    return goals[:max_goals]


def build_plan_node(
    *,
    supervisor_model: Optional[BaseChatModel],
    prompt_builder: PromptBuilder,
    settings,
):
    """Build the planning node.

    Args:
        supervisor_model: Model for the optional JSON plan (None disables it)
        prompt_builder: Template source
        settings: Application settings
    """
    use_model = bool(settings.orchestration.plan_with_model and supervisor_model is not None)
    max_goals = settings.orchestration.max_planned_tasks
    timeout = settings.orchestration.agent_timeout_seconds

    async def model_plan(state: CycleState, runtime) -> List[PlannedGoal]:
        roster = state.get("roster", ())
        prompt = prompt_builder.planner(agents=roster, intent=state.get("intent", ""), max_tasks=max_goals)
        try:
            response = await run_cancellable(
                supervisor_model.ainvoke([SystemMessage(content=PLANNER_SYSTEM_PROMPT), HumanMessage(content=prompt)]),
                runtime.cancel_token,
                timeout,
            )
        except CancellationError:
            raise
        except Exception as e:
            LOGGER.warning(f"Model planning failed, using deterministic plan: {e}")
            return []
        return parse_model_plan(extract_json_object(message_text(response)), roster, max_goals)

    @with_error_boundary("plan")
    async def plan_node(state: CycleState, config: RunnableConfig) -> dict:
        runtime = get_cycle_runtime(config)
        if runtime.cancelled:
            return {"aborted": True, "interrupt_reason": "cancelled"}

        updates = enter_phase(state, Phase.PLANNING, runtime)
        intent = state.get("intent", "")

        goals: List[PlannedGoal] = []
        source = "single"
        if use_model:
            goals, source = await model_plan(state, runtime), "model"
        if not goals:
            goals, source = split_steps(intent, max_goals), "steps"
        if not goals:
            goals, source = [PlannedGoal(
                title=short_title(intent), description=intent, assigned_agent_id=None, priority=1
            )], "single"

        log_plan_created(LOGGER, [goal["title"] for goal in goals], state.get("mode", ""))
        metadata = dict(state.get("metadata", {}))
        metadata["plan_source"] = source
        updates.update({"goals": goals, "goal_index": 0, "metadata": metadata})
        return updates

    return plan_node


__all__ = ["build_plan_node", "split_steps", "parse_model_plan"]
