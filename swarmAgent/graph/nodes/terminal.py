"""Terminal nodes: ``finish`` (completed) and ``interrupt`` (interrupted)."""

from __future__ import annotations

import logging

from langchain_core.runnables import RunnableConfig

from swarmAgent.graph.phases import current_phase, enter_phase, get_cycle_runtime
from swarmAgent.graph.state import CycleState
from swarmAgent.schema import Phase

LOGGER = logging.getLogger("swarmAgent.terminal")


def build_finish_node():
    async def finish_node(state: CycleState, config: RunnableConfig) -> dict:
        runtime = get_cycle_runtime(config)
        return enter_phase(state, Phase.COMPLETED, runtime)

    return finish_node


def build_interrupt_node():
    """Interrupt keeps everything gathered so far; only the phase and reason change."""

    async def interrupt_node(state: CycleState, config: RunnableConfig) -> dict:
        runtime = get_cycle_runtime(config)
        reason = state.get("interrupt_reason") or "cancelled"
        LOGGER.warning(f"Cycle interrupted in {current_phase(state).value}: {reason}")

        updates = enter_phase(state, Phase.INTERRUPTED, runtime)
        metadata = dict(state.get("metadata", {}))
        metadata["interrupt_reason"] = reason
        updates.update({"interrupt_reason": reason, "metadata": metadata})
        return updates

    return interrupt_node


__all__ = ["build_finish_node", "build_interrupt_node"]
