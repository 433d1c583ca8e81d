"""Conversation storage collaborator.

The orchestrator only talks to the ``ConversationStore`` protocol; durable
backends live in the surrounding application. ``InMemoryConversationStore``
keeps everything in process memory, which is what tests and the CLI-less
default wiring use.
"""

from __future__ import annotations

import copy
import logging
from typing import Dict, List, Optional, Protocol, Tuple, runtime_checkable

from langchain_core.messages import BaseMessage

from swarmAgent.schema import ConversationState, CycleResult

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class ConversationStore(Protocol):
    """Storage interface used by the orchestrator."""

    def load_state(self, session_id: str) -> Optional[ConversationState]:
        ...

    def save_state(self, state: ConversationState) -> None:
        ...

    def append_message(self, session_id: str, message: BaseMessage) -> None:
        ...

    def save_cycle(self, session_id: str, result: CycleResult) -> None:
        ...


class InMemoryConversationStore:
    """Process-local store.

    States are kept by reference: the object returned by ``load_state`` is the
    one the orchestrator mutates and hands back to ``save_state``. Messages and
    cycle results are archived separately, in arrival order.
    """

    def __init__(self):
        self._states: Dict[str, ConversationState] = {}
        self._messages: Dict[str, List[BaseMessage]] = {}
        self._cycles: Dict[str, List[CycleResult]] = {}

    def load_state(self, session_id: str) -> Optional[ConversationState]:
        return self._states.get(session_id)

    def save_state(self, state: ConversationState) -> None:
        self._states[state.session_id] = state
        LOGGER.debug(f"Saved session {state.session_id} (turn {state.turn_index}, phase {state.phase.value})")

    def append_message(self, session_id: str, message: BaseMessage) -> None:
        self._messages.setdefault(session_id, []).append(message)

    def save_cycle(self, session_id: str, result: CycleResult) -> None:
        self._cycles.setdefault(session_id, []).append(copy.copy(result))

    # ========== Inspection ==========

    def messages(self, session_id: str) -> Tuple[BaseMessage, ...]:
        return tuple(self._messages.get(session_id, ()))

    def cycles(self, session_id: str) -> Tuple[CycleResult, ...]:
        return tuple(self._cycles.get(session_id, ()))

    def list_sessions(self) -> List[str]:
        return list(self._states)

    def delete(self, session_id: str) -> None:
        self._states.pop(session_id, None)
        self._messages.pop(session_id, None)
        self._cycles.pop(session_id, None)


__all__ = ["ConversationStore", "InMemoryConversationStore"]
