"""Task - 一个周期内委派给单个 agent 的工作单元"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from swarmAgent.utils.error_handler import InvalidTransitionError


class TaskStatus(str, Enum):
    """任务状态（只能前进）"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


class FailureCause(str, Enum):
    """失败原因"""
    ERROR = "error"  # 模型调用报错
    INTERRUPTED = "interrupted"  # 调用方取消
    TIMEOUT = "timeout"  # 单次调用超时


_ALLOWED = {
    TaskStatus.PENDING: {TaskStatus.IN_PROGRESS},
    TaskStatus.IN_PROGRESS: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
}


@dataclass(frozen=True)
class Usage:
    """Token usage of one or more model calls."""

    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(self.input_tokens + other.input_tokens, self.output_tokens + other.output_tokens)

    def to_dict(self) -> Dict[str, int]:
        return {"input_tokens": self.input_tokens, "output_tokens": self.output_tokens}


def _now() -> datetime:
    return datetime.now(timezone.utc)


def new_task_id() -> str:
    return f"task-{uuid.uuid4().hex[:8]}"


@dataclass
class Task:
    """任务

    Attributes:
        id: 任务 ID
        title: 简短标题
        description: 发给 agent 的任务内容
        assigned_agent_id: 负责的 agent（每个任务恰好一个）
        status: pending → in_progress → completed | failed
        priority: 数字越小越优先
        output: 完成时为完整输出，失败时为已收到的部分输出
        error: 失败说明
        failure_cause: error / interrupted / timeout
        usage: token 用量
    """

    title: str
    description: str
    assigned_agent_id: str
    id: str = field(default_factory=new_task_id)
    status: TaskStatus = TaskStatus.PENDING
    priority: int = 0
    created_at: datetime = field(default_factory=_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    output: Optional[str] = None
    error: Optional[str] = None
    failure_cause: Optional[FailureCause] = None
    usage: Usage = field(default_factory=Usage)

    def _move(self, target: TaskStatus) -> None:
        if target not in _ALLOWED[self.status]:
            raise InvalidTransitionError(
                f"Task {self.id} cannot move from {self.status.value} to {target.value}"
            )
        self.status = target

    def start(self) -> "Task":
        self._move(TaskStatus.IN_PROGRESS)
        self.started_at = _now()
        return self

    def complete(self, output: str, usage: Optional[Usage] = None) -> "Task":
        self._move(TaskStatus.COMPLETED)
        self.output = output
        self.usage = usage or Usage()
        self.completed_at = _now()
        return self

    def fail(
        self,
        error: str,
        cause: FailureCause = FailureCause.ERROR,
        partial_output: str = "",
        usage: Optional[Usage] = None,
    ) -> "Task":
        self._move(TaskStatus.FAILED)
        self.error = error
        self.failure_cause = FailureCause(cause)
        self.output = partial_output or None
        self.usage = usage or Usage()
        self.completed_at = _now()
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "assigned_agent_id": self.assigned_agent_id,
            "status": self.status.value,
            "priority": self.priority,
            "created_at": self.created_at.isoformat(),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "output": self.output,
            "error": self.error,
            "failure_cause": self.failure_cause.value if self.failure_cause else None,
            "usage": self.usage.to_dict(),
        }
