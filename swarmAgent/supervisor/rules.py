"""Keyword routing table for the supervisor's rule tier.

The table is scanned in order and the first rule whose keywords appear in the
user text (case-insensitive substring) wins. The rule's category is then
bound to the first registered agent whose role or capability tags match it.
The lexicon below is the built-in default; a YAML file with the same shape
can replace it (see ``load_routing_rules``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple

import yaml

from swarmAgent.schema import AgentConfig

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoutingRule:
    """一条路由规则

    Attributes:
        name: 规则名（出现在决策 reasoning 中）
        category: 角色类别
        keywords: 用户输入中的触发词
        role_keywords: agent.role 中的匹配子串
        tags: 与 agent.capability_tags 精确匹配的标签
    """

    name: str
    category: str
    keywords: Tuple[str, ...]
    role_keywords: Tuple[str, ...] = ()
    tags: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        object.__setattr__(self, "keywords", tuple(k.lower() for k in self.keywords))
        object.__setattr__(self, "role_keywords", tuple(k.lower() for k in self.role_keywords))
        object.__setattr__(self, "tags", frozenset(t.lower() for t in self.tags) | {self.category.lower()})

    def match_keyword(self, text: str) -> Optional[str]:
        """First keyword contained in ``text``, or None."""
        lowered = text.lower()
        for keyword in self.keywords:
            if keyword in lowered:
                return keyword
        return None

    def matches_agent(self, agent: AgentConfig) -> bool:
        role = agent.role.lower()
        if any(k in role for k in self.role_keywords):
            return True
        return any(tag.lower() in self.tags for tag in agent.capability_tags)


DEFAULT_RULES: Tuple[RoutingRule, ...] = (
    RoutingRule(
        name="development",
        category="development",
        keywords=(
            "实现", "代码", "开发", "编程", "函数", "调试", "报错", "接口", "部署",
            "implement", "code", "coding", "function", "debug", "bug", "refactor",
            "typescript", "python", "javascript", "deploy",
        ),
        role_keywords=("开发", "工程师", "程序员", "developer", "engineer", "programmer"),
        tags={"dev", "coding", "engineering", "fullstack-dev"},
    ),
    RoutingRule(
        name="product",
        category="product",
        keywords=(
            "产品", "需求", "prd", "用户故事", "功能列表", "路线图", "竞品",
            "requirement", "product", "user story", "roadmap", "feature list", "backlog",
        ),
        role_keywords=("产品", "product"),
        tags={"pm", "product-design", "requirement-analysis", "prd-writing"},
    ),
    RoutingRule(
        name="architecture",
        category="architecture",
        keywords=(
            "架构", "微服务", "系统设计", "技术选型", "高可用", "扩展性",
            "architecture", "microservice", "system design", "scalability", "tech stack",
        ),
        role_keywords=("架构", "architect"),
        tags={"system-architecture", "architect"},
    ),
    RoutingRule(
        name="design",
        category="design",
        keywords=(
            "界面", "原型", "交互", "视觉", "设计稿", "用户体验", "ui设计", "ux",
            "user interface", "mockup", "wireframe", "prototype", "visual design", "ui/ux",
        ),
        role_keywords=("设计", "design"),
        tags={"ui-design", "ux-design", "designer"},
    ),
    RoutingRule(
        name="analysis",
        category="analysis",
        keywords=(
            "分析", "数据", "统计", "报表", "指标", "趋势",
            "analyze", "analyse", "analysis", "data", "statistics", "metrics", "report",
        ),
        role_keywords=("分析", "analyst", "data", "数据"),
        tags={"data-analysis", "analytics", "machine-learning"},
    ),
)


def parse_routing_rules(config: Dict[str, Any]) -> Tuple[RoutingRule, ...]:
    """Build rules from a ``{"rules": [...]}`` mapping, keeping list order as priority."""
    rules = []
    for entry in config.get("rules", []):
        rules.append(RoutingRule(
            name=entry["name"],
            category=entry.get("category", entry["name"]),
            keywords=tuple(entry["keywords"]),
            role_keywords=tuple(entry.get("role_keywords", [])),
            tags=frozenset(entry.get("tags", [])),
        ))
    return tuple(rules)


def load_routing_rules(config_path: Path | str) -> Tuple[RoutingRule, ...]:
    """加载 routing rules YAML

    Raises:
        FileNotFoundError: 配置文件不存在
        yaml.YAMLError: YAML 解析错误
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Routing rules not found: {config_path}")
    with config_path.open("r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}
    rules = parse_routing_rules(config)
    LOGGER.info(f"Loaded {len(rules)} routing rule(s) from {config_path}")
    return rules


def agent_for_rule(rule: RoutingRule, agents: Iterable[AgentConfig]) -> Optional[AgentConfig]:
    """First agent (registration order) whose role or tags fit ``rule``."""
    for agent in agents:
        if rule.matches_agent(agent):
            return agent
    return None
