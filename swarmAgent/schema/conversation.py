"""Conversation state - 一个 session 对应一个 ConversationState

消息只追加、不修改；phase 只能沿状态机允许的边移动；turn_index 只增不减。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Tuple

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from swarmAgent.utils.error_handler import InvalidTransitionError

from .task import Task

LOGGER = logging.getLogger(__name__)


class Phase(str, Enum):
    """编排周期的阶段"""
    IDLE = "idle"  # 无活动周期
    CLARIFYING = "clarifying"  # 请求含糊，等待用户确认意图
    PLANNING = "planning"  # 确定参与者、拆分任务
    EXECUTING = "executing"  # 按模式执行任务
    SUMMARIZING = "summarizing"  # 汇总任务输出
    COMPLETED = "completed"  # 终态：周期完成
    INTERRUPTED = "interrupted"  # 终态：被取消或失败

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.COMPLETED, Phase.INTERRUPTED)


PHASE_TRANSITIONS: Mapping[Phase, FrozenSet[Phase]] = {
    Phase.IDLE: frozenset({Phase.CLARIFYING, Phase.PLANNING, Phase.INTERRUPTED}),
    Phase.CLARIFYING: frozenset({Phase.PLANNING, Phase.INTERRUPTED}),
    Phase.PLANNING: frozenset({Phase.EXECUTING, Phase.INTERRUPTED}),
    Phase.EXECUTING: frozenset({Phase.EXECUTING, Phase.SUMMARIZING, Phase.INTERRUPTED}),
    Phase.SUMMARIZING: frozenset({Phase.COMPLETED, Phase.INTERRUPTED}),
    # A finished cycle is reset to idle when the next user message arrives
    Phase.COMPLETED: frozenset({Phase.IDLE}),
    Phase.INTERRUPTED: frozenset({Phase.IDLE}),
}


def check_transition(current: Phase, target: Phase) -> Phase:
    """Validate one phase change and return the target phase.

    Raises:
        InvalidTransitionError: the edge is not part of the state machine
    """
    current, target = Phase(current), Phase(target)
    if target not in PHASE_TRANSITIONS[current]:
        raise InvalidTransitionError(f"Phase transition not allowed: {current.value} → {target.value}")
    return target


# ========== Message helpers ==========

def user_message(text: str) -> HumanMessage:
    return HumanMessage(content=text)


def agent_message(agent_id: str, text: str) -> AIMessage:
    return AIMessage(content=text, name=agent_id)


def system_message(text: str) -> SystemMessage:
    return SystemMessage(content=text)


def message_role(message: BaseMessage) -> str:
    """Role tag of a history entry: ``user``, ``system`` or ``agent:<agent_id>``."""
    if isinstance(message, SystemMessage):
        return "system"
    if isinstance(message, HumanMessage):
        return "user"
    if isinstance(message, AIMessage):
        return f"agent:{message.name or 'unknown'}"
    return message.type


def message_text(message: BaseMessage) -> str:
    """Plain text of a message; list content (multimodal parts) is flattened."""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for part in content:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(part.get("text", ""))
    return "".join(parts)


@dataclass
class ConversationState:
    """会话状态

    Attributes:
        session_id: 会话 ID（不透明字符串）
        participants: 已注册 agent ID，按注册顺序排列（Sequential 模式的轮转顺序）
        turn_index: 已完成的周期数
        phase: 当前阶段
        tasks: 最近一个周期的任务
        metadata: 会话级注解（title, cost_usd, pending_clarification, ...）
    """

    session_id: str
    participants: List[str] = field(default_factory=list)
    turn_index: int = 0
    phase: Phase = Phase.IDLE
    tasks: List[Task] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    _messages: List[BaseMessage] = field(default_factory=list, repr=False)

    # ========== Messages (append-only) ==========

    @property
    def messages(self) -> Tuple[BaseMessage, ...]:
        """Read-only view of the history."""
        return tuple(self._messages)

    def append_message(self, message: BaseMessage) -> None:
        self._messages.append(message)

    def extend_messages(self, messages: List[BaseMessage]) -> None:
        for message in messages:
            self.append_message(message)

    # ========== Participants ==========

    def add_participant(self, agent_id: str) -> None:
        if agent_id not in self.participants:
            self.participants.append(agent_id)

    def remove_participant(self, agent_id: str) -> None:
        if agent_id in self.participants:
            self.participants.remove(agent_id)

    # ========== Phase / turn ==========

    def transition_to(self, target: Phase) -> None:
        """Move to ``target`` if the state machine allows it."""
        previous = self.phase
        self.phase = check_transition(previous, target)
        LOGGER.debug(f"[{self.session_id}] phase {previous.value} → {self.phase.value}")

    def complete_turn(self) -> int:
        """Increment the turn counter after a completed cycle."""
        self.turn_index += 1
        return self.turn_index

    @property
    def pending_clarification(self) -> Optional[Dict[str, Any]]:
        return self.metadata.get("pending_clarification")
