"""Phase helpers shared by the graph nodes."""

from __future__ import annotations

import logging
from typing import Any, Dict

from langchain_core.runnables import RunnableConfig

from swarmAgent.modes.base import CycleRuntime
from swarmAgent.schema import Phase, StreamEvent, check_transition
from swarmAgent.utils.error_handler import ConfigurationError
from swarmAgent.utils.logging_utils import log_phase_transition

from .state import CycleState

LOGGER = logging.getLogger(__name__)

RUNTIME_KEY = "cycle_runtime"


def get_cycle_runtime(config: RunnableConfig) -> CycleRuntime:
    """Per-cycle collaborators passed in ``config["configurable"]``."""
    runtime = (config or {}).get("configurable", {}).get(RUNTIME_KEY)
    if runtime is None:
        raise ConfigurationError(f"Graph invoked without '{RUNTIME_KEY}' in config")
    return runtime


def current_phase(state: CycleState) -> Phase:
    return Phase(state.get("phase", Phase.IDLE.value))


def enter_phase(state: CycleState, target: Phase, runtime: CycleRuntime) -> Dict[str, Any]:
    """State update moving the cycle to ``target``; emits a phase_changed event.

    Raises:
        InvalidTransitionError: the state machine does not allow the move
    """
    source = current_phase(state)
    target = check_transition(source, target)
    log_phase_transition(LOGGER, runtime.session_id, source.value, target.value)
    runtime.emit(StreamEvent.phase_changed(runtime.session_id, source.value, target.value))
    return {
        "phase": target.value,
        "phase_history": [*state.get("phase_history", []), target.value],
    }
