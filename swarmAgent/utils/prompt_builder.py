"""Prompt Template Builder for swarmAgent

所有发给 supervisor 模型的 prompt 都来自 Jinja2 模板，允许开发者自定义模板目录。
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Optional

from jinja2.sandbox import SandboxedEnvironment

TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "config" / "prompt_templates"


@lru_cache(maxsize=32)
def _load_template(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read()


class PromptBuilder:
    """Prompt 模板构建器

    Args:
        template_dir: 模板目录（默认使用包内的 config/prompt_templates）
    """

    SUPERVISOR_DECISION_TEMPLATE = "supervisor_decision.jinja2"
    CLARIFICATION_TEMPLATE = "clarification.jinja2"
    PLANNER_TEMPLATE = "planner.jinja2"
    SUMMARY_TEMPLATE = "summary.jinja2"

    def __init__(self, template_dir: Optional[Path | str] = None):
        self.template_dir = Path(template_dir) if template_dir else TEMPLATE_DIR
        # 使用沙箱环境确保安全性
        self._env = SandboxedEnvironment(trim_blocks=False, keep_trailing_newline=True)

    def render(self, template_name: str, **params) -> str:
        """渲染一个模板

        Args:
            template_name: 模板文件名
            **params: 模板参数

        Returns:
            渲染后的字符串
        """
        template = _load_template(str(self.template_dir / template_name))
        return self._env.from_string(template).render(**params).strip()

    def supervisor_decision(self, agents, recent, user_text: str) -> str:
        return self.render(self.SUPERVISOR_DECISION_TEMPLATE, agents=agents, recent=recent, user_text=user_text)

    def clarification(self, agents, user_text: str) -> str:
        return self.render(self.CLARIFICATION_TEMPLATE, agents=agents, user_text=user_text)

    def planner(self, agents, intent: str, max_tasks: int) -> str:
        return self.render(self.PLANNER_TEMPLATE, agents=agents, intent=intent, max_tasks=max_tasks)

    def summary(self, results, user_text: str, max_turns_reached: bool = False) -> str:
        return self.render(
            self.SUMMARY_TEMPLATE, results=results, user_text=user_text, max_turns_reached=max_turns_reached
        )
