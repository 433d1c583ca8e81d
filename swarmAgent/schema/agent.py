"""Agent configuration and supervisor decision types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple


@dataclass(frozen=True)
class AgentConfig:
    """一个专家 agent 的配置（注册后在周期内不可变）

    Attributes:
        id: session 内唯一
        name: 显示名称
        role: 专长标签，路由规则会匹配这个字段
        system_instructions: 系统提示词
        model_preference: 偏好的模型 ID（None 时使用默认模型）
        temperature: 采样温度
        capability_tags: 能力标签集合，路由规则也会匹配
        description: 给 supervisor 模型看的简介
        aliases: 额外的 @mention 名称
    """

    id: str
    name: str
    role: str
    system_instructions: str = ""
    model_preference: Optional[str] = None
    temperature: float = 0.7
    capability_tags: FrozenSet[str] = field(default_factory=frozenset)
    description: str = ""
    aliases: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.id:
            raise ValueError("AgentConfig.id must not be empty")
        # Accept any iterable for the collection fields
        object.__setattr__(self, "capability_tags", frozenset(self.capability_tags))
        object.__setattr__(self, "aliases", tuple(self.aliases))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "system_instructions": self.system_instructions,
            "model_preference": self.model_preference,
            "temperature": self.temperature,
            "capability_tags": sorted(self.capability_tags),
            "description": self.description,
            "aliases": list(self.aliases),
        }


def create_agent_config(
    agent_id: str,
    name: str,
    role: str,
    system_instructions: str = "",
    *,
    model_preference: Optional[str] = None,
    temperature: float = 0.7,
    capability_tags: Iterable[str] = (),
    description: str = "",
    aliases: Iterable[str] = (),
) -> AgentConfig:
    """Convenience factory; the default instructions mention the role."""
    return AgentConfig(
        id=agent_id,
        name=name,
        role=role,
        system_instructions=system_instructions or f"You are {name}, acting as {role}.",
        model_preference=model_preference,
        temperature=temperature,
        capability_tags=frozenset(capability_tags),
        description=description,
        aliases=tuple(aliases),
    )


class DecisionTier(str, Enum):
    """Supervisor 决策层级"""
    MENTION = "mention"
    RULE = "rule"
    MODEL = "model"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class OrchestrationDecision:
    """Supervisor 的输出：下一个发言的 agent 以及原因"""

    next_agent_id: str
    reasoning: str
    tier: DecisionTier
    confidence: Optional[float] = None
