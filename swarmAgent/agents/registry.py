"""Agent Registry - 按注册顺序保存 AgentConfig 的名册

注册表是注入到 Orchestrator / Supervisor 的普通对象，不是进程级单例。
注册顺序就是 Sequential 模式的轮转顺序，也是规则匹配时的优先顺序。
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from swarmAgent.schema import AgentConfig
from swarmAgent.utils.error_handler import AgentNotFoundError

LOGGER = logging.getLogger(__name__)


class AgentRegistry:
    """Agent 注册表

    架构：
    - _agents: 所有已注册的 agent（dict 保持插入顺序）
    - _assignments: 可选的 session → agent ID 列表映射；没有分配的 session 使用全部 agent

    查询模式：
    - get(agent_id) / require(agent_id): 按 ID 查询
    - query_by_tag(tag): 按能力标签查询
    - query_by_role(text): 按角色子串查询
    """

    def __init__(self, agents: Iterable[AgentConfig] = ()):
        self._agents: Dict[str, AgentConfig] = {}
        self._assignments: Dict[str, List[str]] = {}
        for agent in agents:
            self.register(agent)

    # ========== Registration Methods ==========

    def register(self, config: AgentConfig) -> AgentConfig:
        """注册一个 agent

        Raises:
            ValueError: ID 已存在
        """
        if config.id in self._agents:
            raise ValueError(f"Agent already registered: {config.id}")
        self._agents[config.id] = config
        LOGGER.info(f"Registered agent: {config.id} ({config.name}, role={config.role})")
        return config

    def unregister(self, agent_id: str) -> Optional[AgentConfig]:
        """移除一个 agent（同时从所有 session 分配中移除）"""
        config = self._agents.pop(agent_id, None)
        for assigned in self._assignments.values():
            if agent_id in assigned:
                assigned.remove(agent_id)
        if config:
            LOGGER.info(f"Unregistered agent: {agent_id}")
        return config

    def assign_to_session(self, session_id: str, agent_ids: Iterable[str]) -> List[AgentConfig]:
        """限定某个 session 的参与者

        Raises:
            AgentNotFoundError: 有未注册的 ID
        """
        ids: List[str] = []
        for agent_id in agent_ids:
            self.require(agent_id)
            if agent_id not in ids:
                ids.append(agent_id)
        self._assignments[session_id] = ids
        LOGGER.debug(f"Session {session_id} assigned agents: {ids}")
        return [self._agents[i] for i in ids]

    # ========== Query Methods ==========

    def get(self, agent_id: str) -> Optional[AgentConfig]:
        return self._agents.get(agent_id)

    def require(self, agent_id: str) -> AgentConfig:
        try:
            return self._agents[agent_id]
        except KeyError:
            raise AgentNotFoundError(agent_id) from None

    def list_agents(self) -> List[AgentConfig]:
        """All agents in registration order."""
        return list(self._agents.values())

    def agents_for_session(self, session_id: str) -> Tuple[AgentConfig, ...]:
        """Read-only roster for one cycle of ``session_id``."""
        assigned = self._assignments.get(session_id)
        if assigned is None:
            return tuple(self._agents.values())
        return tuple(self._agents[i] for i in assigned if i in self._agents)

    def query_by_tag(self, tag: str) -> List[AgentConfig]:
        needle = tag.lower()
        return [a for a in self._agents.values() if needle in {t.lower() for t in a.capability_tags}]

    def query_by_role(self, text: str) -> List[AgentConfig]:
        needle = text.lower()
        return [a for a in self._agents.values() if needle in a.role.lower()]

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def __len__(self) -> int:
        return len(self._agents)

    def __iter__(self):
        return iter(self.list_agents())
