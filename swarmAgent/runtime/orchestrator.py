"""Orchestrator - 会话级入口，驱动一个编排周期

一次 run() 调用对应一个周期（cycle）：

1. 校验配置（roster 非空、模型凭据可用）；失败时直接抛出 ConfigurationError，
   此时会话状态还没有任何改动
2. 载入会话状态，准备本周期的 CycleRuntime（strategy / specialists / channel / cancel token）
3. 运行 LangGraph 阶段状态机（intake → plan → execute⟲ → summarize → finish）
4. 周期到达终止阶段后，才把消息、阶段、turn_index 写回会话并交给存储协作者

除配置错误外，所有错误都被吸收进 Task / phase，调用方总能拿到完整的 CycleResult。
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Callable, Dict, List, Optional, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage

from swarmAgent.agents import AgentRegistry, ModelResolver, SpecialistAgent
from swarmAgent.config import Settings
from swarmAgent.context import ContextManager
from swarmAgent.graph.builder import build_cycle_graph
from swarmAgent.graph.phases import RUNTIME_KEY
from swarmAgent.graph.state import CycleState
from swarmAgent.modes import CycleRuntime, ExecutionMode, create_strategy
from swarmAgent.modes.dynamic import ContinuationCondition
from swarmAgent.persistence import ConversationStore, InMemoryConversationStore
from swarmAgent.schema import (
    AgentConfig,
    ConversationState,
    CycleResult,
    EventType,
    Phase,
    StreamEvent,
    TaskStatus,
    Usage,
    agent_message,
    user_message,
)
from swarmAgent.streaming import CancellationToken, EventChannel
from swarmAgent.supervisor import Supervisor
from swarmAgent.utils.error_handler import ConfigurationError, handle_model_error
from swarmAgent.utils.logging_utils import log_error
from swarmAgent.utils.prompt_builder import PromptBuilder

from .pricing import calculate_cost

LOGGER = logging.getLogger(__name__)

# Graph super-steps outside the execute loop (intake, plan, summarize, finish, ...)
GRAPH_STEP_MARGIN = 10

CostFunction = Callable[[Optional[str], Usage], float]


class Orchestrator:
    """Owns the phase machine of every session it serves.

    Args:
        registry: Agent roster (injected, not a process-wide singleton)
        model_resolver: Returns a chat model for a model id
        settings: Application settings
        supervisor: Routing policy (default: rule table + ``supervisor_model``)
        supervisor_model: Model for routing fallback, clarification, planning and summary
        store: Conversation storage collaborator (default: in-memory)
        context_manager: History trimmer (default: built from ``settings.context``)
        prompt_builder: Template source for supervisor prompts
        continuation: Dynamic-mode continuation condition
        cost_fn: ``cost_fn(model_id, usage) -> USD``
    """

    def __init__(
        self,
        registry: AgentRegistry,
        *,
        model_resolver: ModelResolver,
        settings: Settings,
        supervisor: Optional[Supervisor] = None,
        supervisor_model: Optional[BaseChatModel] = None,
        store: Optional[ConversationStore] = None,
        context_manager: Optional[ContextManager] = None,
        prompt_builder: Optional[PromptBuilder] = None,
        continuation: Optional[ContinuationCondition] = None,
        cost_fn: CostFunction = calculate_cost,
    ):
        self.registry = registry
        self.model_resolver = model_resolver
        self.settings = settings
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.supervisor = supervisor or Supervisor(
            model=supervisor_model,
            prompt_builder=self.prompt_builder,
            timeout=settings.orchestration.agent_timeout_seconds,
        )
        self.store = store if store is not None else InMemoryConversationStore()
        self.context_manager = context_manager or ContextManager.from_settings(settings)
        self.continuation = continuation
        self.cost_fn = cost_fn
        self._mode = ExecutionMode(settings.orchestration.default_mode)

        self._graph = build_cycle_graph(
            supervisor_model=supervisor_model,
            settings=settings,
            prompt_builder=self.prompt_builder,
        )

    # ========== Mode & roster ==========

    @property
    def mode(self) -> ExecutionMode:
        return self._mode

    def set_mode(self, mode: ExecutionMode | str) -> ExecutionMode:
        self._mode = ExecutionMode(mode)
        LOGGER.info(f"Execution mode set to {self._mode.value}")
        return self._mode

    def register_agent(self, config: AgentConfig) -> AgentConfig:
        return self.registry.register(config)

    def unregister_agent(self, agent_id: str) -> Optional[AgentConfig]:
        return self.registry.unregister(agent_id)

    # ========== Cycle preparation (no state mutation) ==========

    def _roster(self, session_id: str) -> Sequence[AgentConfig]:
        roster = self.registry.agents_for_session(session_id)
        if not roster:
            raise ConfigurationError(
                f"No agents registered for session {session_id}",
                "当前会话没有注册任何 agent",
            )
        return roster

    def _specialists(self, roster: Sequence[AgentConfig]) -> Dict[str, SpecialistAgent]:
        timeout = self.settings.orchestration.agent_timeout_seconds
        default_model = self.settings.models.default_model
        return {
            agent.id: SpecialistAgent.from_resolver(agent, self.model_resolver, default_model, timeout)
            for agent in roster
        }

    def _initial_state(
        self,
        conversation: ConversationState,
        roster: Sequence[AgentConfig],
        user_text: str,
        confirmed_intent: Optional[str],
        mode: ExecutionMode,
        start_phase: Phase,
    ) -> CycleState:
        return CycleState(
            session_id=conversation.session_id,
            user_text=user_text,
            intent=(confirmed_intent or "").strip(),
            resumed=start_phase == Phase.CLARIFYING,
            mode=mode.value,
            roster=tuple(roster),
            participants=[agent.id for agent in roster],
            turn_index=conversation.turn_index,
            history=conversation.messages,
            mentioned_agent_ids=[],
            served_agent_ids=[],
            goals=[],
            goal_index=0,
            tasks=[],
            step=0,
            max_steps=self.settings.orchestration.recursion_limit,
            wants_more=False,
            max_turns_reached=False,
            phase=start_phase.value,
            phase_history=[],
            needs_clarification=False,
            clarification_question=None,
            summary=None,
            usage=Usage(),
            cost_usd=0.0,
            aborted=False,
            interrupt_reason=None,
            error=None,
            metadata={},
        )

    # ========== Public API ==========

    async def run(
        self,
        session_id: str,
        user_text: str,
        confirmed_intent: Optional[str] = None,
        *,
        cancel_token: Optional[CancellationToken] = None,
        channel: Optional[EventChannel] = None,
        mode: Optional[ExecutionMode | str] = None,
    ) -> CycleResult:
        """Run one cycle for ``user_text``.

        Args:
            session_id: Session identifier
            user_text: Raw user message (may contain @mentions)
            confirmed_intent: Intent confirmed by the caller; skips clarification
            cancel_token: Abort signal threaded down to every specialist call
            channel: Output channel for live events
            mode: Execution mode for this cycle (default: ``self.mode``)

        Raises:
            ConfigurationError: no agents, missing credentials, unknown mode
        """
        # ========== Step 1: validate before touching any state ==========
        try:
            cycle_mode = ExecutionMode(mode or self._mode)
        except ValueError as e:
            raise ConfigurationError(f"Unknown execution mode: {mode}") from e
        roster = self._roster(session_id)
        specialists = self._specialists(roster)

        # ========== Step 2: load session and prepare the cycle ==========
        conversation = self.store.load_state(session_id) or ConversationState(session_id=session_id)
        for agent in roster:
            conversation.add_participant(agent.id)
        if conversation.phase.is_terminal:
            conversation.transition_to(Phase.IDLE)
        start_phase = conversation.phase

        strategy = create_strategy(cycle_mode, self.supervisor, self.continuation)
        runtime = CycleRuntime(
            session_id=session_id,
            conversation=conversation,
            specialists=specialists,
            context_manager=self.context_manager,
            strategy=strategy,
            channel=channel,
            cancel_token=cancel_token,
            agent_timeout=self.settings.orchestration.agent_timeout_seconds,
            cost_fn=self.cost_fn,
        )
        initial = self._initial_state(conversation, roster, user_text, confirmed_intent, cycle_mode, start_phase)
        LOGGER.info(
            f"[{session_id[:8]}] Cycle start: mode={cycle_mode.value}, turn={conversation.turn_index}, "
            f"agents={len(roster)}, resumed={initial['resumed']}"
        )

        # ========== Step 3: run the phase machine ==========
        config = {
            "configurable": {RUNTIME_KEY: runtime},
            "recursion_limit": initial["max_steps"] + GRAPH_STEP_MARGIN,
        }
        try:
            final: CycleState = await self._graph.ainvoke(initial, config=config)
        except ConfigurationError:
            raise
        except Exception as e:
            log_error(LOGGER, e, context=f"cycle of session {session_id}")
            final = {**initial, "aborted": True, "interrupt_reason": "error", "error": handle_model_error(e)}

        # ========== Step 4: apply the outcome ==========
        result = self._apply(conversation, final, user_text)
        self.store.save_state(conversation)
        self.store.save_cycle(session_id, result)
        LOGGER.info(
            f"[{session_id[:8]}] Cycle end: phase={result.phase.value}, tasks={len(result.tasks)}, "
            f"cost=${result.cost_usd:.6f}"
        )
        return result

    async def stream(
        self,
        session_id: str,
        user_text: str,
        confirmed_intent: Optional[str] = None,
        *,
        cancel_token: Optional[CancellationToken] = None,
        mode: Optional[ExecutionMode | str] = None,
    ) -> AsyncIterator[StreamEvent]:
        """Run one cycle and yield its events; the last event is ``cycle_finished``.

        The ``cycle_finished`` event carries the CycleResult in ``data["result"]``.
        Leaving the iteration early fires the cancel token (a fresh one when the
        caller passed none), so the cycle still ends as ``interrupted`` and is
        saved with its partial output.
        """
        channel = EventChannel()
        token = cancel_token or CancellationToken()

        async def drive() -> None:
            try:
                result = await self.run(
                    session_id,
                    user_text,
                    confirmed_intent,
                    cancel_token=token,
                    channel=channel,
                    mode=mode,
                )
                channel.emit(StreamEvent(
                    EventType.CYCLE_FINISHED,
                    session_id,
                    phase=result.phase.value,
                    data={"result": result},
                ))
            finally:
                channel.close()

        task = asyncio.ensure_future(drive())
        try:
            async for event in channel:
                yield event
            await task
        finally:
            if not task.done():
                token.cancel("Stream consumer stopped reading")
                await task

    # ========== Outcome ==========

    def _apply(self, conversation: ConversationState, final: CycleState, user_text: str) -> CycleResult:
        """Write the terminal cycle state back into the session."""
        for phase in final.get("phase_history", []):
            conversation.transition_to(Phase(phase))
        suspended = conversation.phase == Phase.CLARIFYING and final.get("needs_clarification")
        if conversation.phase not in (Phase.COMPLETED, Phase.INTERRUPTED) and not suspended:
            # Graph failed before reaching a terminal node
            conversation.transition_to(Phase.INTERRUPTED)

        tasks = list(final.get("tasks", []))
        metadata = dict(final.get("metadata", {}))
        new_messages: List[BaseMessage] = [user_message(user_text)]
        question = None

        if conversation.phase == Phase.CLARIFYING:
            question = final.get("clarification_question")
            conversation.metadata["pending_clarification"] = {
                "request": final.get("request") or user_text,
                "question": question,
            }
        else:
            conversation.metadata.pop("pending_clarification", None)
            new_messages.extend(
                agent_message(task.assigned_agent_id, task.output)
                for task in tasks
                if task.status == TaskStatus.COMPLETED and task.output
            )

        if conversation.phase == Phase.INTERRUPTED:
            metadata.setdefault("interrupt_reason", final.get("interrupt_reason") or "cancelled")

        for message in new_messages:
            conversation.append_message(message)
            self.store.append_message(conversation.session_id, message)

        cost = final.get("cost_usd", 0.0)
        conversation.tasks = tasks
        conversation.metadata["cost_usd"] = conversation.metadata.get("cost_usd", 0.0) + cost
        if conversation.phase == Phase.COMPLETED:
            conversation.complete_turn()

        return CycleResult(
            session_id=conversation.session_id,
            phase=conversation.phase,
            tasks=tasks,
            clarification_question=question,
            summary=final.get("summary"),
            cost_usd=cost,
            usage=final.get("usage") or Usage(),
            turn_index=conversation.turn_index,
            metadata=metadata,
            error=final.get("error"),
        )


__all__ = ["Orchestrator"]
