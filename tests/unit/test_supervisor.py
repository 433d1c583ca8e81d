"""
测试 Supervisor 三层决策

测试场景：
1. 关键词规则命中 → 对应角色的 agent
2. @mention 优先于关键词
3. 中文关键词
4. 规则不命中时走模型层；模型失败或返回未知 ID 时选择第一个 agent
5. 空 roster → ConfigurationError
6. 从 YAML 加载规则表
"""

import pytest

from swarmAgent.schema import DecisionTier, create_agent_config
from swarmAgent.supervisor import DEFAULT_RULES, Supervisor, agent_for_rule, load_routing_rules
from swarmAgent.utils.error_handler import ConfigurationError


class TestDeterministicTiers:

    @pytest.mark.asyncio
    async def test_keyword_rule_selects_developer(self, roster):
        decision = await Supervisor().decide_next_agent("implement a login function", None, roster)

        assert decision.next_agent_id == "dev"
        assert decision.tier == DecisionTier.RULE
        assert "Rule-based match" in decision.reasoning

    @pytest.mark.asyncio
    async def test_mention_beats_keywords(self, roster):
        decision = await Supervisor().decide_next_agent("@pm please review, implement the code later", None, roster)

        assert decision.next_agent_id == "pm"
        assert decision.tier == DecisionTier.MENTION
        assert "explicitly mentioned" in decision.reasoning

    @pytest.mark.parametrize("text,expected", [
        ("帮我写一个排序函数", "dev"),
        ("整理一下产品需求", "pm"),
        ("设计一个微服务架构", "architect"),
        ("画一个登录页原型", "designer"),
        ("分析上个月的用户数据", "analyst"),
    ])
    def test_chinese_keywords(self, roster, text, expected):
        decision = Supervisor().decide_by_rules(text, roster)
        assert decision is not None
        assert decision.next_agent_id == expected

    def test_mention_outside_roster_falls_through(self, roster):
        decision = Supervisor().decide_by_rules("@qa implement this", roster)
        assert decision.tier == DecisionTier.RULE
        assert decision.next_agent_id == "dev"

    def test_explicit_mention_ids(self, roster):
        decision = Supervisor().decide_by_rules("design a mockup", roster, mentioned_agent_ids=["analyst"])
        assert decision.next_agent_id == "analyst"

    def test_rule_without_matching_agent_is_skipped(self, roster):
        only_analyst = [agent for agent in roster if agent.id == "analyst"]
        decision = Supervisor().decide_by_rules("implement the data report", only_analyst)
        assert decision.next_agent_id == "analyst"

    def test_rules_are_deterministic(self, roster):
        supervisor = Supervisor()
        picks = {supervisor.decide_by_rules("refactor the python code", roster).next_agent_id for _ in range(20)}
        assert picks == {"dev"}

    @pytest.mark.asyncio
    async def test_mention_precedence_for_every_agent(self, roster):
        supervisor = Supervisor()
        for agent in roster:
            decision = await supervisor.decide_next_agent(f"@{agent.id} implement and analyze the roadmap", None, roster)
            assert decision.next_agent_id == agent.id


class TestModelTier:

    @pytest.mark.asyncio
    async def test_model_selection(self, roster, scripted_model):
        model = scripted_model('```json\n{"next_agent_id": "designer", "reasoning": "visual work", "confidence": 0.6}\n```')
        decision = await Supervisor(model=model).decide_next_agent("make it prettier", None, roster)

        assert decision.next_agent_id == "designer"
        assert decision.tier == DecisionTier.MODEL
        assert decision.confidence == 0.6
        assert "visual work" in decision.reasoning
        assert len(model.calls) == 1

    @pytest.mark.asyncio
    async def test_unknown_agent_falls_back_to_first(self, roster, scripted_model):
        model = scripted_model('{"next_agent_id": "qa", "reasoning": "?"}')
        decision = await Supervisor(model=model).decide_next_agent("hello there", None, roster)

        assert decision.next_agent_id == "dev"
        assert decision.tier == DecisionTier.FALLBACK

    @pytest.mark.asyncio
    async def test_model_error_falls_back_to_first(self, roster, scripted_model):
        model = scripted_model("x", error="503 upstream")
        decision = await Supervisor(model=model).decide_next_agent("hello there", None, roster)

        assert decision.next_agent_id == "dev"
        assert decision.tier == DecisionTier.FALLBACK

    @pytest.mark.asyncio
    async def test_no_model_falls_back_to_first(self, roster):
        decision = await Supervisor().decide_next_agent("hello there", None, roster)
        assert decision.next_agent_id == "dev"
        assert "first registered agent" in decision.reasoning

    @pytest.mark.asyncio
    async def test_model_not_called_when_rule_matches(self, roster, scripted_model):
        model = scripted_model('{"next_agent_id": "pm"}')
        decision = await Supervisor(model=model).decide_next_agent("debug this bug", None, roster)

        assert decision.next_agent_id == "dev"
        assert model.calls == []

    @pytest.mark.asyncio
    async def test_empty_roster(self):
        with pytest.raises(ConfigurationError):
            await Supervisor().decide_next_agent("implement", None, [])


class TestRuleTable:

    def test_table_order_decides_between_rules(self, roster):
        # "analyze" hits the analysis rule, "code" the development rule listed before it
        decision = Supervisor().decide_by_keywords("analyze the code", roster)
        assert decision.next_agent_id == "dev"
        assert "development" in decision.reasoning
        assert "'code'" in decision.reasoning

    def test_no_match(self, roster):
        assert Supervisor().decide_by_keywords("good morning", roster) is None

    def test_agent_for_rule_uses_tags(self):
        agent = create_agent_config("ux", "UX", "Specialist", capability_tags=["ux-design"])
        design = next(rule for rule in DEFAULT_RULES if rule.name == "design")
        assert agent_for_rule(design, [agent]) is agent

    def test_load_from_yaml(self, tmp_path, roster):
        path = tmp_path / "rules.yaml"
        path.write_text(
            "rules:\n"
            "  - name: reviews\n"
            "    category: product\n"
            "    keywords: [Review, 评审]\n"
            "  - name: coding\n"
            "    category: development\n"
            "    keywords: [code]\n"
            "    role_keywords: [developer]\n",
            encoding="utf-8",
        )

        rules = load_routing_rules(path)

        assert [r.name for r in rules] == ["reviews", "coding"]
        assert rules[0].keywords == ("review", "评审")
        decision = Supervisor(rules=rules).decide_by_rules("please review the code", roster)
        assert decision.next_agent_id == "pm"

    def test_missing_yaml(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_routing_rules(tmp_path / "missing.yaml")
