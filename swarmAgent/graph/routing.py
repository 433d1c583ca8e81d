"""Routing logic for the cycle graph.

Every phase node returns a state update; the functions here read it and pick
the next node. An ``aborted`` flag always wins and sends the cycle to
``interrupt``.
"""

from __future__ import annotations

import logging
from typing import Literal

from swarmAgent.utils.logging_utils import log_routing_decision

from .state import CycleState

LOGGER = logging.getLogger("swarmAgent.routing")


def _aborted(state: CycleState, from_node: str) -> bool:
    if state.get("aborted"):
        reason = f"Cycle aborted ({state.get('interrupt_reason') or 'unknown'})"
        log_routing_decision(LOGGER, from_node, "interrupt", reason)
        return True
    return False


def route_after_intake(state: CycleState) -> Literal["clarify", "plan", "interrupt"]:
    """Route after intake.

    Returns:
        "interrupt": cancelled or failed during intake
        "clarify": request is ambiguous, ask the user
        "plan": intent is clear (or confirmed)
    """
    if _aborted(state, "intake"):
        return "interrupt"

    if state.get("needs_clarification"):
        log_routing_decision(LOGGER, "intake", "clarify", "Intent unclear, asking the user")
        return "clarify"

    reason = "Resuming with confirmed intent" if state.get("resumed") else "Intent clear"
    log_routing_decision(LOGGER, "intake", "plan", reason)
    return "plan"


def route_after_plan(state: CycleState) -> Literal["execute", "interrupt"]:
    if _aborted(state, "plan"):
        return "interrupt"

    log_routing_decision(LOGGER, "plan", "execute", f"{len(state.get('goals', []))} goal(s) planned")
    return "execute"


def route_after_execute(state: CycleState) -> Literal["execute", "summarize", "interrupt"]:
    """Route after one execution step.

    Decision logic:
    1. Aborted (cancellation, sole agent failed) → interrupt
    2. Step ceiling reached → summarize (the execute node already flagged it)
    3. Continuation condition still true → execute again
    4. Otherwise → summarize
    """
    if _aborted(state, "execute"):
        return "interrupt"

    step, max_steps = state.get("step", 0), state.get("max_steps", 0)
    if state.get("max_turns_reached"):
        log_routing_decision(LOGGER, "execute", "summarize", f"Step ceiling reached ({step}/{max_steps})")
        return "summarize"

    if state.get("wants_more"):
        log_routing_decision(LOGGER, "execute", "execute", f"Continuation condition holds ({step}/{max_steps})")
        return "execute"

    log_routing_decision(LOGGER, "execute", "summarize", f"Work finished after {step} step(s)")
    return "summarize"


def route_after_summarize(state: CycleState) -> Literal["finish", "interrupt"]:
    if _aborted(state, "summarize"):
        return "interrupt"

    log_routing_decision(LOGGER, "summarize", "finish", "Summary ready")
    return "finish"


__all__ = ["route_after_intake", "route_after_plan", "route_after_execute", "route_after_summarize"]
