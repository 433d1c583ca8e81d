"""Execution modes - 执行策略的公共接口和任务执行器

每种模式一个策略类，周期开始时选定一次：
- plan(state, runtime): 返回本步要执行的 StepAssignment 列表
- should_continue(state): 本步结束后是否还要再执行一步
- aborts_on_failure(state, tasks): 本步的失败是否结束整个周期
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from langchain_core.messages import BaseMessage

from swarmAgent.agents.specialist import SpecialistAgent
from swarmAgent.context.manager import ContextManager
from swarmAgent.graph.state import CycleState, PlannedGoal
from swarmAgent.schema import (
    AgentConfig,
    ConversationState,
    EventType,
    FailureCause,
    OrchestrationDecision,
    StreamEvent,
    Task,
    TaskStatus,
    Usage,
    agent_message,
    user_message,
)
from swarmAgent.streaming.cancellation import CancellationToken
from swarmAgent.streaming.channel import EventChannel
from swarmAgent.utils.error_handler import (
    AgentTimeoutError,
    BudgetExceededError,
    CancellationError,
    ModelInvocationError,
    handle_model_error,
)
from swarmAgent.utils.logging_utils import log_error, log_task_result

LOGGER = logging.getLogger(__name__)

TITLE_MAX_CHARS = 60


class ExecutionMode(str, Enum):
    """编排模式"""
    SEQUENTIAL = "sequential"  # 按注册顺序轮转，每轮一个 agent
    PARALLEL = "parallel"  # 所有参与者并发处理同一请求（或各自的计划任务）
    DYNAMIC = "dynamic"  # 每一步由 supervisor 选择一个 agent


@dataclass(frozen=True)
class StepAssignment:
    """一个 agent 在本步要做的事"""
    agent_id: str
    title: str
    description: str
    priority: int = 0
    decision: Optional[OrchestrationDecision] = None


@dataclass
class CycleRuntime:
    """Per-cycle collaborators handed to graph nodes through the run config.

    Attributes:
        session_id: Session being served
        conversation: Session state at cycle start (read-only during the cycle)
        specialists: Specialist wrappers keyed by agent id
        context_manager: Trims history for every specialist call
        strategy: Execution strategy selected for this cycle
        channel: Output event channel (optional)
        cancel_token: Caller's abort signal (optional)
        agent_timeout: Per-call timeout in seconds
    """

    session_id: str
    conversation: ConversationState
    specialists: Mapping[str, SpecialistAgent]
    context_manager: ContextManager
    strategy: "ExecutionStrategy"
    channel: Optional[EventChannel] = None
    cancel_token: Optional[CancellationToken] = None
    agent_timeout: Optional[float] = None
    cost_fn: Optional[Callable[[Optional[str], Usage], float]] = None

    def emit(self, event: StreamEvent) -> None:
        if self.channel is not None:
            self.channel.emit(event)

    @property
    def cancelled(self) -> bool:
        return self.cancel_token is not None and self.cancel_token.is_cancelled

    def task_cost(self, task: Task) -> float:
        if self.cost_fn is None:
            return 0.0
        specialist = self.specialists.get(task.assigned_agent_id)
        return self.cost_fn(specialist.model_id if specialist else None, task.usage)


class ExecutionStrategy(ABC):
    """Common interface of the three execution modes."""

    mode: ExecutionMode

    @abstractmethod
    async def plan(self, state: CycleState, runtime: CycleRuntime) -> List[StepAssignment]:
        """Assignments for the next step."""

    def should_continue(self, state: CycleState) -> bool:
        return False

    def aborts_on_failure(self, state: CycleState, tasks: Sequence[Task]) -> bool:
        """A failure ends the cycle when it hit the only agent of the step."""
        return len(tasks) == 1

    def progress(self, state: CycleState, assignments: Sequence[StepAssignment]) -> Dict[str, Any]:
        """Plan bookkeeping after a step; by default one step covers every goal."""
        return {"goal_index": len(state.get("goals", []))}


# ========== Helpers shared by strategies ==========

def decomposed_goals(state: CycleState) -> List[PlannedGoal]:
    """Planned goals worth running one by one.

    A single unassigned goal is just the intent restated, so it yields an
    empty list and the mode falls back to the whole intent.
    """
    goals = list(state.get("goals", []))
    if len(goals) > 1 or any(goal.get("assigned_agent_id") for goal in goals):
        return goals
    return []


def goal_assignment(goal: PlannedGoal, agent_id: str, index: int, decision=None) -> StepAssignment:
    description = goal.get("description", "")
    return StepAssignment(
        agent_id=agent_id,
        title=goal.get("title") or short_title(description),
        description=description,
        priority=goal.get("priority", index),
        decision=decision,
    )


def short_title(text: str) -> str:
    first_line = (text or "").strip().splitlines()[0] if (text or "").strip() else ""
    if len(first_line) > TITLE_MAX_CHARS:
        return first_line[:TITLE_MAX_CHARS].rstrip() + "…"
    return first_line or "Respond to user"


def roster_ids(state: CycleState) -> List[str]:
    return [agent.id for agent in state.get("roster", ())]


def active_participants(state: CycleState) -> List[str]:
    """Participants that are still in the roster, in registration order."""
    ids = set(roster_ids(state))
    return [p for p in state.get("participants", []) if p in ids]


def roster_agent(state: CycleState, agent_id: str) -> Optional[AgentConfig]:
    for agent in state.get("roster", ()):
        if agent.id == agent_id:
            return agent
    return None


def step_context(state: CycleState) -> List[BaseMessage]:
    """History given to the next specialist: session history plus earlier outputs of this cycle."""
    messages = list(state.get("history", ()))
    earlier = [t for t in state.get("tasks", []) if t.status == TaskStatus.COMPLETED and t.output]
    if earlier:
        messages.append(user_message(state.get("user_text", "")))
        messages.extend(agent_message(t.assigned_agent_id, t.output) for t in earlier)
    return messages


# ========== Task execution ==========

async def run_assignment(
    assignment: StepAssignment,
    context: Sequence[BaseMessage],
    runtime: CycleRuntime,
) -> Task:
    """Run one assignment to a terminal Task. Never raises for agent-level failures."""
    specialist = runtime.specialists[assignment.agent_id]
    task = Task(
        title=assignment.title,
        description=assignment.description,
        assigned_agent_id=assignment.agent_id,
        priority=assignment.priority,
    ).start()
    runtime.emit(StreamEvent(
        EventType.TASK_STARTED,
        runtime.session_id,
        agent_id=specialist.id,
        agent_name=specialist.name,
        task_id=task.id,
        data={
            "title": task.title,
            "reasoning": assignment.decision.reasoning if assignment.decision else None,
        },
    ))

    def forward(chunk: str) -> None:
        runtime.emit(StreamEvent.chunk(runtime.session_id, specialist.id, specialist.name, chunk))

    try:
        window = runtime.context_manager.optimize_context(context)
        response = await specialist.respond(
            window,
            assignment.description,
            on_chunk=forward,
            cancel_token=runtime.cancel_token,
            timeout=runtime.agent_timeout,
        )
    except CancellationError as e:
        task.fail(e.user_message, FailureCause.INTERRUPTED, e.partial_output, e.usage)
    except AgentTimeoutError as e:
        task.fail(e.user_message, FailureCause.TIMEOUT, e.partial_output, e.usage)
    except ModelInvocationError as e:
        task.fail(e.user_message, FailureCause.ERROR, e.partial_output, e.usage)
    except BudgetExceededError as e:
        task.fail(e.user_message, FailureCause.ERROR)
    except Exception as e:
        log_error(LOGGER, e, context=f"run_assignment({assignment.agent_id})")
        task.fail(handle_model_error(e), FailureCause.ERROR)
    else:
        task.complete(response.text, response.usage)

    event_type = EventType.TASK_COMPLETED if task.status == TaskStatus.COMPLETED else EventType.TASK_FAILED
    runtime.emit(StreamEvent(
        event_type,
        runtime.session_id,
        agent_id=specialist.id,
        agent_name=specialist.name,
        task_id=task.id,
        data={
            "status": task.status.value,
            "error": task.error,
            "failure_cause": task.failure_cause.value if task.failure_cause else None,
        },
    ))
    log_task_result(LOGGER, task)
    return task


async def run_step(
    assignments: Sequence[StepAssignment],
    state: CycleState,
    runtime: CycleRuntime,
) -> List[Task]:
    """Run the assignments of one step; several assignments run concurrently.

    Fan-in waits for every call to settle; one agent's failure neither cancels
    nor blocks the others. Tasks come back in assignment order.
    """
    context = step_context(state)
    if len(assignments) == 1:
        return [await run_assignment(assignments[0], context, runtime)]
    return list(await asyncio.gather(*(run_assignment(a, context, runtime) for a in assignments)))
