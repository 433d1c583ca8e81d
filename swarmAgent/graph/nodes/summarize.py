"""Summarize node - turn task outputs into the cycle's final response."""

from __future__ import annotations

import logging
from typing import List, Optional, Tuple

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage
from langchain_core.runnables import RunnableConfig

from swarmAgent.graph.phases import enter_phase, get_cycle_runtime
from swarmAgent.graph.state import CycleState
from swarmAgent.modes.base import roster_agent
from swarmAgent.schema import EventType, Phase, StreamEvent, Task, TaskStatus, message_text
from swarmAgent.streaming.cancellation import run_cancellable
from swarmAgent.utils.error_handler import CancellationError, with_error_boundary
from swarmAgent.utils.logging_utils import log_node_exit
from swarmAgent.utils.prompt_builder import PromptBuilder

LOGGER = logging.getLogger("swarmAgent.summarize")


def concatenate_outputs(results: List[dict]) -> str:
    """Plain merge used when no summary model is available."""
    return "\n\n".join(f"**{result['agent_name']}:**\n{result['output']}" for result in results)


def build_summarize_node(
    *,
    supervisor_model: Optional[BaseChatModel],
    prompt_builder: PromptBuilder,
    settings,
):
    """Build the summarize node.

    One completed output is the summary as is. Several outputs are merged by
    the supervisor model when ``orchestration.summarize_with_model`` is on,
    otherwise (or when the model fails) concatenated per agent.
    """
    use_model = bool(settings.orchestration.summarize_with_model and supervisor_model is not None)
    timeout = settings.orchestration.agent_timeout_seconds

    async def summarize(state: CycleState, results: List[dict], runtime) -> Tuple[Optional[str], str]:
        if not results:
            return None, "none"
        if len(results) == 1:
            return results[0]["output"], "single"
        if use_model:
            prompt = prompt_builder.summary(
                results=results,
                user_text=state.get("intent") or state.get("user_text", ""),
                max_turns_reached=bool(state.get("max_turns_reached")),
            )
            try:
                response = await run_cancellable(
                    supervisor_model.ainvoke([HumanMessage(content=prompt)]),
                    runtime.cancel_token,
                    timeout,
                )
                text = message_text(response).strip()
                if text:
                    return text, "model"
                LOGGER.warning("Summary model returned empty text, concatenating outputs")
            except CancellationError:
                raise
            except Exception as e:
                LOGGER.warning(f"Summary model failed, concatenating outputs: {e}")
        return concatenate_outputs(results), "concatenated"

    @with_error_boundary("summarize")
    async def summarize_node(state: CycleState, config: RunnableConfig) -> dict:
        runtime = get_cycle_runtime(config)
        updates = enter_phase(state, Phase.SUMMARIZING, runtime)

        completed: List[Task] = [t for t in state.get("tasks", []) if t.status == TaskStatus.COMPLETED]
        results = []
        for task in completed:
            agent = roster_agent(state, task.assigned_agent_id)
            results.append({
                "agent_id": task.assigned_agent_id,
                "agent_name": agent.name if agent else task.assigned_agent_id,
                "title": task.title,
                "output": task.output,
            })

        summary, source = await summarize(state, results, runtime)

        metadata = dict(state.get("metadata", {}))
        metadata["summary_source"] = source
        if state.get("max_turns_reached"):
            metadata["max_turns_reached"] = True
            metadata["steps"] = state.get("step", 0)

        if summary:
            runtime.emit(StreamEvent(
                EventType.SUMMARY,
                runtime.session_id,
                text=summary,
                data={"source": source, "max_turns_reached": bool(state.get("max_turns_reached"))},
            ))

        updates.update({"summary": summary, "metadata": metadata})
        log_node_exit(LOGGER, "summarize", updates)
        return updates

    return summarize_node


__all__ = ["build_summarize_node", "concatenate_outputs"]
