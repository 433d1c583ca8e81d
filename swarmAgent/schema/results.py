"""Derived results: the trimmed context window and the outcome of one cycle."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from langchain_core.messages import BaseMessage

from .conversation import Phase
from .task import Task, TaskStatus, Usage


@dataclass(frozen=True)
class ContextWindow:
    """Budget-bound subset of the history sent to one specialist.

    ``summary`` is non-empty exactly when ``omitted_count > 0``.
    """

    messages: Tuple[BaseMessage, ...]
    token_count: int
    summary: Optional[str] = None
    omitted_count: int = 0


@dataclass
class CycleResult:
    """一个编排周期的最终结果（调用方总能拿到一个结构完整的结果）"""

    session_id: str
    phase: Phase
    tasks: List[Task] = field(default_factory=list)
    clarification_question: Optional[str] = None
    summary: Optional[str] = None
    cost_usd: float = 0.0
    usage: Usage = field(default_factory=Usage)
    turn_index: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def completed_tasks(self) -> List[Task]:
        return [task for task in self.tasks if task.status == TaskStatus.COMPLETED]

    @property
    def failed_tasks(self) -> List[Task]:
        return [task for task in self.tasks if task.status == TaskStatus.FAILED]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "phase": self.phase.value,
            "clarification_question": self.clarification_question,
            "tasks": [task.to_dict() for task in self.tasks],
            "summary": self.summary,
            "cost_usd": self.cost_usd,
            "usage": self.usage.to_dict(),
            "turn_index": self.turn_index,
            "metadata": dict(self.metadata),
            "error": self.error,
        }
