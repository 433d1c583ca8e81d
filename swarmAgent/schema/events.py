"""Typed events emitted on a cycle's output channel."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional


class EventType(str, Enum):
    CHUNK = "chunk"
    TASK_STARTED = "task_started"
    TASK_COMPLETED = "task_completed"
    TASK_FAILED = "task_failed"
    PHASE_CHANGED = "phase_changed"
    CLARIFICATION = "clarification"
    SUMMARY = "summary"
    CYCLE_FINISHED = "cycle_finished"


@dataclass(frozen=True)
class StreamEvent:
    """One event for live UI updates.

    Chunk events carry ``agent_id``/``agent_name``/``text``; task events carry
    the task id in ``task_id``; phase events carry ``phase``; everything else
    goes into ``data``.
    """

    type: EventType
    session_id: str = ""
    agent_id: Optional[str] = None
    agent_name: Optional[str] = None
    text: Optional[str] = None
    task_id: Optional[str] = None
    phase: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def chunk(cls, session_id: str, agent_id: str, agent_name: str, text: str) -> "StreamEvent":
        return cls(EventType.CHUNK, session_id, agent_id=agent_id, agent_name=agent_name, text=text)

    @classmethod
    def phase_changed(cls, session_id: str, from_phase: str, to_phase: str) -> "StreamEvent":
        return cls(EventType.PHASE_CHANGED, session_id, phase=to_phase, data={"from": from_phase})
