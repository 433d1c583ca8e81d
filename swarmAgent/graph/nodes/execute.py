"""Execute node - one step of the selected execution mode.

The node runs once per step: ask the strategy for assignments, run them,
fold the tasks into the cycle state and evaluate the continuation condition.
The Dynamic loop is the graph edge ``execute → execute``; the step counter
checked here is its only bound.
"""

from __future__ import annotations

import logging
from typing import List

from langchain_core.runnables import RunnableConfig

from swarmAgent.graph.phases import current_phase, enter_phase, get_cycle_runtime
from swarmAgent.graph.state import CycleState
from swarmAgent.modes.base import run_step
from swarmAgent.schema import FailureCause, Phase, Task, TaskStatus, Usage
from swarmAgent.utils.error_handler import with_error_boundary
from swarmAgent.utils.logging_utils import log_node_exit

LOGGER = logging.getLogger("swarmAgent.execute")


def _merge_served(served: List[str], tasks: List[Task]) -> List[str]:
    merged = list(served)
    for task in tasks:
        if task.assigned_agent_id not in merged:
            merged.append(task.assigned_agent_id)
    return merged


def build_execute_node():
    """Build the execute node; all collaborators come from the cycle runtime."""

    @with_error_boundary("execute")
    async def execute_node(state: CycleState, config: RunnableConfig) -> dict:
        runtime = get_cycle_runtime(config)
        updates = {}
        if current_phase(state) != Phase.EXECUTING:
            updates.update(enter_phase(state, Phase.EXECUTING, runtime))

        if runtime.cancelled:
            updates.update({"aborted": True, "interrupt_reason": "cancelled"})
            return updates

        strategy = runtime.strategy
        assignments = await strategy.plan(state, runtime)
        step_tasks = await run_step(assignments, state, runtime)

        usage = state.get("usage") or Usage()
        cost = state.get("cost_usd", 0.0)
        for task in step_tasks:
            usage = usage + task.usage
            cost += runtime.task_cost(task)

        step = state.get("step", 0) + 1
        updates.update({
            "tasks": [*state.get("tasks", []), *step_tasks],
            "served_agent_ids": _merge_served(state.get("served_agent_ids", []), step_tasks),
            "step": step,
            "usage": usage,
            "cost_usd": cost,
            **strategy.progress(state, assignments),
        })

        failed = [task for task in step_tasks if task.status == TaskStatus.FAILED]
        if runtime.cancelled or any(task.failure_cause == FailureCause.INTERRUPTED for task in failed):
            updates.update({"aborted": True, "interrupt_reason": "cancelled"})
            return updates

        after = {**state, **updates}
        if failed and strategy.aborts_on_failure(after, step_tasks):
            LOGGER.warning(f"Sole agent of the step failed: {failed[0].assigned_agent_id}")
            updates.update({"aborted": True, "interrupt_reason": "agent_failed", "error": failed[0].error})
            return updates

        wants_more = strategy.should_continue(after)
        max_steps = state.get("max_steps", 1)
        updates["wants_more"] = wants_more
        if wants_more and step >= max_steps:
            LOGGER.warning(f"Step ceiling reached: {step}/{max_steps}")
            updates["max_turns_reached"] = True

        log_node_exit(LOGGER, "execute", updates)
        return updates

    return execute_node


__all__ = ["build_execute_node"]
