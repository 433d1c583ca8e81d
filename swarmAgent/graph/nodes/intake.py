"""Intake and clarification nodes.

Intake parses mentions, settles the cycle's intent and decides whether the
request is clear enough to plan. Clarify suspends the cycle with a question
for the user; the next call resumes at planning.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage
from langchain_core.runnables import RunnableConfig

from swarmAgent.graph.phases import enter_phase, get_cycle_runtime
from swarmAgent.graph.state import CycleState
from swarmAgent.schema import EventType, Phase, StreamEvent, message_text
from swarmAgent.streaming.cancellation import run_cancellable
from swarmAgent.utils.error_handler import CancellationError, with_error_boundary
from swarmAgent.utils.logging_utils import log_node_exit, log_user_message
from swarmAgent.utils.mention_parser import parse_mentions, resolve_mentions
from swarmAgent.utils.prompt_builder import PromptBuilder

LOGGER = logging.getLogger("swarmAgent.intake")

CLEAR_PREFIX = "CLEAR_INTENT:"
UNCLEAR_PREFIX = "NEEDS_CLARIFICATION:"
EMPTY_REQUEST_QUESTION = "请具体说明您希望团队完成什么？"


def parse_clarity_reply(text: str) -> Tuple[bool, str]:
    """Parse the moderator reply.

    Returns:
        (is_clear, content): content is the intent summary or the question.
        Replies following neither protocol count as clear.
    """
    reply = (text or "").strip()
    upper = reply.upper()
    if UNCLEAR_PREFIX in upper:
        start = upper.index(UNCLEAR_PREFIX) + len(UNCLEAR_PREFIX)
        return False, reply[start:].strip()
    if CLEAR_PREFIX in upper:
        start = upper.index(CLEAR_PREFIX) + len(CLEAR_PREFIX)
        return True, reply[start:].strip()
    return True, ""


def build_intake_node(
    *,
    supervisor_model: Optional[BaseChatModel],
    prompt_builder: PromptBuilder,
    settings,
):
    """Build the intake node.

    Args:
        supervisor_model: Model for the optional clarity check (None disables it)
        prompt_builder: Template source
        settings: Application settings
    """
    use_model = bool(settings.orchestration.enable_clarification and supervisor_model is not None)
    timeout = settings.orchestration.agent_timeout_seconds

    async def ask_model(state: CycleState, runtime) -> Optional[str]:
        """Clarification question from the model, or None when the intent is clear."""
        prompt = prompt_builder.clarification(agents=state.get("roster", ()), user_text=state["request"])
        try:
            response = await run_cancellable(
                supervisor_model.ainvoke([HumanMessage(content=prompt)]),
                runtime.cancel_token,
                timeout,
            )
        except CancellationError:
            raise
        except Exception as e:
            LOGGER.warning(f"Clarity check failed, assuming clear intent: {e}")
            return None

        is_clear, content = parse_clarity_reply(message_text(response))
        if is_clear:
            LOGGER.info(f"Intent judged clear: {content or '(no summary)'}")
            return None
        return content or EMPTY_REQUEST_QUESTION

    @with_error_boundary("intake")
    async def intake_node(state: CycleState, config: RunnableConfig) -> dict:
        runtime = get_cycle_runtime(config)
        user_text = state.get("user_text", "")
        log_user_message(LOGGER, user_text)

        tokens, request = parse_mentions(user_text)
        mentioned = resolve_mentions(tokens, state.get("roster", ()))
        if len(mentioned) < len(tokens):
            LOGGER.info(f"Ignored mention(s) outside the roster: {tokens}")

        updates = {"request": request, "mentioned_agent_ids": mentioned, "needs_clarification": False}

        if runtime.cancelled:
            updates.update({"aborted": True, "interrupt_reason": "cancelled"})
            return updates

        # Confirmed intent (or a clarification reply) skips every check
        if state.get("intent") or state.get("resumed"):
            if not state.get("intent"):
                pending = runtime.conversation.pending_clarification or {}
                previous = pending.get("request", "")
                updates["intent"] = f"{previous}\n{request or user_text}".strip()
            log_node_exit(LOGGER, "intake", updates)
            return updates

        updates["intent"] = request or user_text

        question = None
        if not request and not mentioned:
            question = EMPTY_REQUEST_QUESTION
        elif use_model and request:
            question = await ask_model({**state, **updates}, runtime)

        if question:
            updates.update({"needs_clarification": True, "clarification_question": question})

        log_node_exit(LOGGER, "intake", updates)
        return updates

    return intake_node


def build_clarify_node():
    """Build the clarify node: suspend the cycle with a question."""

    @with_error_boundary("clarify")
    async def clarify_node(state: CycleState, config: RunnableConfig) -> dict:
        runtime = get_cycle_runtime(config)
        question = state.get("clarification_question") or EMPTY_REQUEST_QUESTION
        updates = enter_phase(state, Phase.CLARIFYING, runtime)
        runtime.emit(StreamEvent(
            EventType.CLARIFICATION,
            runtime.session_id,
            text=question,
            phase=Phase.CLARIFYING.value,
        ))
        LOGGER.info(f"Clarification requested: {question}")
        updates["clarification_question"] = question
        return updates

    return clarify_node


__all__ = ["build_intake_node", "build_clarify_node", "parse_clarity_reply"]
