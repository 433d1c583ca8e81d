"""Supervisor - 决定下一个发言的 agent

三层决策，严格按顺序：
1. 显式 @mention：roster 中被提到的 agent 无条件胜出
2. 关键词规则：按优先级扫描规则表，第一条命中的规则映射到第一个匹配的 agent
3. 兜底：让 supervisor 模型从 agent 列表中选择；失败或返回未知 ID 时选择第一个注册的 agent

Supervisor 不持有可变状态：同样的输入和 roster 在前两层总是得到同样的结果。
"""

from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from swarmAgent.schema import (
    AgentConfig,
    ConversationState,
    DecisionTier,
    OrchestrationDecision,
    message_role,
    message_text,
)
from swarmAgent.streaming.cancellation import CancellationToken, run_cancellable
from swarmAgent.utils.error_handler import AgentNotFoundError, CancellationError, ConfigurationError
from swarmAgent.utils.logging_utils import log_supervisor_decision
from swarmAgent.utils.mention_parser import parse_mentions, resolve_mentions
from swarmAgent.utils.model_output import extract_json_object
from swarmAgent.utils.prompt_builder import PromptBuilder

from .rules import DEFAULT_RULES, RoutingRule, agent_for_rule

LOGGER = logging.getLogger(__name__)

SUPERVISOR_SYSTEM_PROMPT = "You are an intelligent agent coordinator. Always respond with valid JSON."


class Supervisor:
    """Routing policy over a roster of agents.

    Args:
        model: Chat model for the fallback tier (None skips straight to the first agent)
        rules: Ordered routing table
        prompt_builder: Template source for the selection prompt
        recent_messages: How many history entries the selection prompt shows
        timeout: Timeout of the selection call in seconds
    """

    def __init__(
        self,
        model: Optional[BaseChatModel] = None,
        rules: Sequence[RoutingRule] = DEFAULT_RULES,
        prompt_builder: Optional[PromptBuilder] = None,
        recent_messages: int = 5,
        timeout: Optional[float] = None,
    ):
        self.model = model
        self.rules = tuple(rules)
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.recent_messages = recent_messages
        self.timeout = timeout

    # ========== Tier 1: explicit mention ==========

    def decide_by_mention(
        self,
        available_agents: Sequence[AgentConfig],
        mentioned_agent_ids: Sequence[str],
    ) -> Optional[OrchestrationDecision]:
        roster = {agent.id: agent for agent in available_agents}
        for agent_id in mentioned_agent_ids:
            agent = roster.get(agent_id)
            if agent is None:
                # Mentions outside the roster fall through to the next tier
                LOGGER.debug(f"Mention skipped: {AgentNotFoundError(agent_id)}")
                continue
            return OrchestrationDecision(
                next_agent_id=agent.id,
                reasoning=f"User explicitly mentioned {agent.name}",
                tier=DecisionTier.MENTION,
                confidence=1.0,
            )
        return None

    # ========== Tier 2: keyword rules ==========

    def decide_by_keywords(
        self, user_text: str, available_agents: Sequence[AgentConfig]
    ) -> Optional[OrchestrationDecision]:
        for rule in self.rules:
            keyword = rule.match_keyword(user_text)
            if keyword is None:
                continue
            agent = agent_for_rule(rule, available_agents)
            if agent is None:
                LOGGER.debug(f"Rule {rule.name} matched '{keyword}' but no agent fits it")
                continue
            return OrchestrationDecision(
                next_agent_id=agent.id,
                reasoning=f"Rule-based match: {rule.name} (keyword '{keyword}')",
                tier=DecisionTier.RULE,
                confidence=0.8,
            )
        return None

    def decide_by_rules(
        self,
        user_text: str,
        available_agents: Sequence[AgentConfig],
        mentioned_agent_ids: Optional[Sequence[str]] = None,
    ) -> Optional[OrchestrationDecision]:
        """Tiers 1-2 only: deterministic and network-free.

        When ``mentioned_agent_ids`` is None the mentions are parsed from ``user_text``.
        """
        if mentioned_agent_ids is None:
            tokens, _ = parse_mentions(user_text)
            mentioned_agent_ids = resolve_mentions(tokens, available_agents)
        return (
            self.decide_by_mention(available_agents, mentioned_agent_ids)
            or self.decide_by_keywords(user_text, available_agents)
        )

    # ========== Tier 3: model selection + fallback ==========

    def _recent_lines(self, state: Optional[ConversationState]) -> List[str]:
        if state is None or self.recent_messages <= 0:
            return []
        lines = []
        for message in state.messages[-self.recent_messages:]:
            role = message_role(message)
            label = "User" if role == "user" else ("System" if role == "system" else f"Agent {message.name}")
            lines.append(f"{label}: {message_text(message)}")
        return lines

    async def decide_by_model(
        self,
        user_text: str,
        state: Optional[ConversationState],
        available_agents: Sequence[AgentConfig],
        cancel_token: Optional[CancellationToken] = None,
    ) -> Optional[OrchestrationDecision]:
        """Ask the supervisor model; None when it fails or names an unknown agent."""
        if self.model is None:
            return None

        prompt = self.prompt_builder.supervisor_decision(
            agents=available_agents, recent=self._recent_lines(state), user_text=user_text
        )
        try:
            response = await run_cancellable(
                self.model.ainvoke([SystemMessage(content=SUPERVISOR_SYSTEM_PROMPT), HumanMessage(content=prompt)]),
                cancel_token,
                self.timeout,
            )
        except CancellationError:
            raise
        except Exception as e:
            LOGGER.warning(f"Supervisor model selection failed: {e}")
            return None

        payload = extract_json_object(message_text(response))
        if not payload:
            LOGGER.warning("Supervisor model returned no JSON decision")
            return None

        agent_id = payload.get("next_agent_id") or payload.get("nextAgentId")
        if agent_id not in {agent.id for agent in available_agents}:
            LOGGER.warning(f"Supervisor model picked unknown agent: {agent_id!r}")
            return None

        confidence = payload.get("confidence")
        return OrchestrationDecision(
            next_agent_id=agent_id,
            reasoning=f"Model selection: {payload.get('reasoning', '').strip() or 'no reason given'}",
            tier=DecisionTier.MODEL,
            confidence=float(confidence) if isinstance(confidence, (int, float)) else None,
        )

    async def decide_next_agent(
        self,
        user_text: str,
        state: Optional[ConversationState],
        available_agents: Sequence[AgentConfig],
        mentioned_agent_ids: Optional[Sequence[str]] = None,
        *,
        cancel_token: Optional[CancellationToken] = None,
    ) -> OrchestrationDecision:
        """Pick exactly one agent; always returns a roster member.

        Raises:
            ConfigurationError: ``available_agents`` is empty
            CancellationError: cancelled while the model tier was running
        """
        if not available_agents:
            raise ConfigurationError("No agents available for selection", "当前会话没有可用的 agent")

        decision = self.decide_by_rules(user_text, available_agents, mentioned_agent_ids)
        if decision is None:
            decision = await self.decide_by_model(user_text, state, available_agents, cancel_token)
        if decision is None:
            first = available_agents[0]
            decision = OrchestrationDecision(
                next_agent_id=first.id,
                reasoning=f"Fallback selection: first registered agent {first.name}",
                tier=DecisionTier.FALLBACK,
            )

        log_supervisor_decision(LOGGER, decision.next_agent_id, decision.tier.value, decision.reasoning)
        return decision
