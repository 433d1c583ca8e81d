"""Graph Builder for one orchestration cycle.

Cycle graph (one run per user message):

    START → intake → plan → execute ⟲ → summarize → finish → END
              │                 │            │
              ├→ clarify → END  └────────────┴→ interrupt → END
              └→ interrupt

- clarify suspends the cycle; the next call resumes at plan
- execute loops on itself in Dynamic mode, bounded by ``max_steps``
- any node may flag ``aborted``, which routes to interrupt

Per-cycle collaborators (strategy, specialists, channel, cancel token) are not
part of the graph: they travel in ``config["configurable"]["cycle_runtime"]``,
so one compiled graph serves every cycle.
"""

from __future__ import annotations

import logging
from typing import Optional

from langchain_core.language_models import BaseChatModel
from langgraph.graph import END, START, StateGraph

from swarmAgent.graph.nodes import (
    build_clarify_node,
    build_execute_node,
    build_finish_node,
    build_intake_node,
    build_interrupt_node,
    build_plan_node,
    build_summarize_node,
)
from swarmAgent.graph.routing import (
    route_after_execute,
    route_after_intake,
    route_after_plan,
    route_after_summarize,
)
from swarmAgent.graph.state import CycleState
from swarmAgent.utils.prompt_builder import PromptBuilder

LOGGER = logging.getLogger(__name__)


def build_cycle_graph(
    *,
    supervisor_model: Optional[BaseChatModel],
    settings,
    prompt_builder: Optional[PromptBuilder] = None,
):
    """Build the cycle graph.

    Args:
        supervisor_model: Model for clarification, planning and summary (None: deterministic only)
        settings: Application settings
        prompt_builder: Template source (default: package templates)

    Returns:
        Compiled LangGraph application
    """
    prompt_builder = prompt_builder or PromptBuilder()

    # ========== Build Nodes ==========
    intake_node = build_intake_node(
        supervisor_model=supervisor_model,
        prompt_builder=prompt_builder,
        settings=settings,
    )
    plan_node = build_plan_node(
        supervisor_model=supervisor_model,
        prompt_builder=prompt_builder,
        settings=settings,
    )
    summarize_node = build_summarize_node(
        supervisor_model=supervisor_model,
        prompt_builder=prompt_builder,
        settings=settings,
    )

    # ========== Build Graph ==========
    graph = StateGraph(CycleState)

    graph.add_node("intake", intake_node)
    graph.add_node("clarify", build_clarify_node())
    graph.add_node("plan", plan_node)
    graph.add_node("execute", build_execute_node())
    graph.add_node("summarize", summarize_node)
    graph.add_node("finish", build_finish_node())
    graph.add_node("interrupt", build_interrupt_node())

    # ========== Routing ==========
    graph.add_edge(START, "intake")

    graph.add_conditional_edges(
        "intake",
        route_after_intake,
        {
            "clarify": "clarify",      # Ambiguous request, ask the user
            "plan": "plan",            # Intent clear or confirmed
            "interrupt": "interrupt",  # Cancelled before planning
        }
    )

    graph.add_conditional_edges(
        "plan",
        route_after_plan,
        {
            "execute": "execute",
            "interrupt": "interrupt",
        }
    )

    # Dynamic mode loops on execute until the continuation condition or the ceiling stops it
    graph.add_conditional_edges(
        "execute",
        route_after_execute,
        {
            "execute": "execute",
            "summarize": "summarize",
            "interrupt": "interrupt",
        }
    )

    graph.add_conditional_edges(
        "summarize",
        route_after_summarize,
        {
            "finish": "finish",
            "interrupt": "interrupt",
        }
    )

    graph.add_edge("clarify", END)
    graph.add_edge("finish", END)
    graph.add_edge("interrupt", END)

    # ========== Compile ==========
    LOGGER.debug("Cycle graph compiled")
    return graph.compile()


__all__ = ["build_cycle_graph"]
