"""Agent scanner - 从 agents.yaml 读取 agent 名册并注册

agents.yaml 结构：

    global:
      enabled: true
    agents:
      dev:
        name: Developer
        role: Software Developer
        system_instructions: ...
        capability_tags: [development, code]
        enabled: true          # 可选，默认 true

agents 下的书写顺序就是注册顺序（Sequential 模式的轮转顺序）。
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from swarmAgent.schema import AgentConfig, create_agent_config

from .registry import AgentRegistry

LOGGER = logging.getLogger(__name__)

DEFAULT_AGENTS_CONFIG = Path(__file__).resolve().parent.parent / "config" / "agents.yaml"


def parse_agent_config(agent_id: str, config: Dict[str, Any]) -> AgentConfig:
    """从 YAML 配置解析 AgentConfig

    Raises:
        KeyError: 缺少必需的配置字段（name, role）
    """
    return create_agent_config(
        agent_id,
        config["name"],
        config["role"],
        config.get("system_instructions", ""),
        model_preference=config.get("model_preference"),
        temperature=float(config.get("temperature", 0.7)),
        capability_tags=config.get("capability_tags", []),
        description=config.get("description", ""),
        aliases=config.get("aliases", []),
    )


def load_agents_config(config_path: Path | str) -> Dict[str, Any]:
    """加载 agents.yaml 配置文件

    Raises:
        FileNotFoundError: 配置文件不存在
        yaml.YAMLError: YAML 解析错误
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Agent config not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    LOGGER.debug(f"Loaded agent config from {config_path}")
    return config


def scan_agents_from_config(
    config_path: Optional[Path | str] = None,
    registry: Optional[AgentRegistry] = None,
) -> AgentRegistry:
    """从 agents.yaml 扫描并注册 agents

    Args:
        config_path: agents.yaml 路径（默认使用包内的 config/agents.yaml）
        registry: 要填充的注册表（默认新建）

    Returns:
        填充好的 AgentRegistry
    """
    registry = registry if registry is not None else AgentRegistry()
    config = load_agents_config(config_path or DEFAULT_AGENTS_CONFIG)

    # 检查全局开关
    if not config.get("global", {}).get("enabled", True):
        LOGGER.info("Agents are disabled in config")
        return registry

    for agent_id, agent_config in (config.get("agents") or {}).items():
        if not agent_config.get("enabled", True):
            LOGGER.info(f"Skipped disabled agent: {agent_id}")
            continue
        try:
            registry.register(parse_agent_config(agent_id, agent_config))
        except (KeyError, ValueError) as e:
            LOGGER.error(f"Failed to register agent '{agent_id}': {e}")

    LOGGER.info(f"Agent scan complete: {len(registry)} agent(s) registered")
    return registry


__all__ = ["parse_agent_config", "load_agents_config", "scan_agents_from_config", "DEFAULT_AGENTS_CONFIG"]
