"""
Orchestrator 集成测试 - 完整周期（LangGraph 状态机 + 脚本化模型）

测试场景：
1. Parallel：三个 agent 中一个失败 → 2 completed + 1 failed，周期仍为 completed
2. Dynamic：继续条件恒为真 → 恰好 recursion_limit 步后进入 summarizing，标记 max_turns_reached
3. 澄清：含糊请求挂起在 clarifying，下一条消息恢复并完成
4. 取消：进行中的调用被中断，保留部分输出，周期为 interrupted
5. 配置错误：不改动任何会话状态
6. Sequential 轮转、turn_index 只在 completed 时增加
7. stream() 事件顺序；提前退出时周期以 interrupted 保存
8. 计划拆分的任务按 assigned agent 分发（Parallel）或逐步执行（Sequential）
9. 超时：多 agent 步骤只让单个任务失败，单 agent 时结束周期
"""

from contextlib import aclosing

import pytest

from swarmAgent.agents import AgentRegistry
from swarmAgent.config.settings import ModelRoutingSettings, ObservabilitySettings, Settings
from swarmAgent.persistence import InMemoryConversationStore
from swarmAgent.runtime import Orchestrator, build_model_resolver
from swarmAgent.schema import EventType, FailureCause, Phase, TaskStatus, create_agent_config
from swarmAgent.streaming import CancellationToken, EventChannel
from swarmAgent.utils.error_handler import ConfigurationError


@pytest.fixture
def make_orchestrator(roster, settings, scripted_resolver):
    def factory(agents=None, models=None, settings_override=None, **kwargs):
        resolver = scripted_resolver(models=models)
        store = kwargs.pop("store", None) or InMemoryConversationStore()
        orchestrator = Orchestrator(
            AgentRegistry(roster if agents is None else agents),
            model_resolver=resolver,
            settings=settings_override or settings,
            store=store,
            **kwargs,
        )
        return orchestrator, store, resolver
    return factory


class TestParallelMode:

    @pytest.mark.asyncio
    async def test_partial_failure_still_completes(self, roster, scripted_model, make_orchestrator):
        models = {"pm-model": scripted_model("x", error="upstream 500")}
        orchestrator, store, _ = make_orchestrator(agents=roster[:3], models=models)

        result = await orchestrator.run("s-par", "review the login flow", mode="parallel")

        assert result.phase == Phase.COMPLETED
        assert len(result.completed_tasks) == 2
        assert len(result.failed_tasks) == 1
        assert result.failed_tasks[0].assigned_agent_id == "pm"
        assert result.failed_tasks[0].failure_cause == FailureCause.ERROR
        assert "**Developer:**" in result.summary and "**Architect:**" in result.summary

        conversation = store.load_state("s-par")
        assert [m.type for m in conversation.messages] == ["human", "ai", "ai"]
        assert conversation.turn_index == 1
        assert store.messages("s-par") == conversation.messages

    @pytest.mark.asyncio
    async def test_mentions_limit_fan_out(self, make_orchestrator):
        orchestrator, _, _ = make_orchestrator()

        result = await orchestrator.run("s-par2", "@designer @analyst check the dashboard", mode="parallel")

        assert [t.assigned_agent_id for t in result.tasks] == ["designer", "analyst"]

    @pytest.mark.asyncio
    async def test_model_plan_goes_to_assigned_agents(self, scripted_model, make_orchestrator, make_settings):
        plan = (
            '{"tasks": [{"description": "write the PRD", "assigned_to": "pm"},'
            ' {"description": "implement login", "assigned_to": "dev"}]}'
        )
        planner = scripted_model(plan)
        orchestrator, _, _ = make_orchestrator(
            settings_override=make_settings(plan_with_model=True), supervisor_model=planner
        )

        result = await orchestrator.run("s-par3", "build a login feature", mode="parallel")

        assert len(planner.calls) == 1
        assert result.metadata["plan_source"] == "model"
        assert [(t.assigned_agent_id, t.description) for t in result.tasks] == [
            ("pm", "write the PRD"),
            ("dev", "implement login"),
        ]
        assert result.phase == Phase.COMPLETED

    @pytest.mark.asyncio
    async def test_timeout_fails_one_task_cycle_completes(
        self, roster, scripted_model, make_orchestrator, make_settings
    ):
        models = {"pm-model": scripted_model("too late", delay=1.0)}
        settings = make_settings(agent_timeout_seconds=0.1)
        orchestrator, _, _ = make_orchestrator(agents=roster[:3], models=models, settings_override=settings)

        result = await orchestrator.run("s-par4", "review the login flow", mode="parallel")

        assert result.phase == Phase.COMPLETED
        assert [t.status for t in result.tasks] == [TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.COMPLETED]
        assert result.failed_tasks[0].assigned_agent_id == "pm"
        assert result.failed_tasks[0].failure_cause == FailureCause.TIMEOUT


class TestDynamicMode:

    @pytest.mark.asyncio
    async def test_step_ceiling_with_endless_continuation(self, make_orchestrator, make_settings):
        settings = make_settings(recursion_limit=50)
        channel = EventChannel(record=True, queue=False)
        orchestrator, _, _ = make_orchestrator(settings_override=settings, continuation=lambda state: True)

        result = await orchestrator.run("s-dyn", "implement a login function", mode="dynamic", channel=channel)

        assert len(result.tasks) == 50
        assert all(t.status == TaskStatus.COMPLETED for t in result.tasks)
        assert result.metadata["max_turns_reached"] is True
        assert result.metadata["steps"] == 50
        assert result.phase == Phase.COMPLETED

        phases = [e.phase for e in channel.history if e.type == EventType.PHASE_CHANGED]
        assert phases == ["planning", "executing", "summarizing", "completed"]

    @pytest.mark.asyncio
    async def test_mentions_are_each_served_once(self, make_orchestrator):
        orchestrator, _, _ = make_orchestrator()

        result = await orchestrator.run("s-dyn2", "@designer @pm implement the login page", mode="dynamic")

        assert [t.assigned_agent_id for t in result.tasks] == ["designer", "pm"]
        assert result.phase == Phase.COMPLETED
        assert result.metadata["summary_source"] == "concatenated"

    @pytest.mark.asyncio
    async def test_keyword_routing(self, make_orchestrator):
        orchestrator, _, resolver = make_orchestrator()

        result = await orchestrator.run("s-dyn3", "分析上个月的用户数据", mode="dynamic")

        assert [t.assigned_agent_id for t in result.tasks] == ["analyst"]
        assert result.summary == "reply from analyst-model"
        assert result.cost_usd > 0
        assert "analyst-model" in resolver.requested

    @pytest.mark.asyncio
    async def test_numbered_request_runs_one_step_per_goal(self, make_orchestrator):
        orchestrator, _, _ = make_orchestrator()

        result = await orchestrator.run(
            "s-dyn4", "Plan the release:\n1. write the product requirements\n2. implement the code", mode="dynamic"
        )

        assert [t.description for t in result.tasks] == ["write the product requirements", "implement the code"]
        assert [t.assigned_agent_id for t in result.tasks] == ["pm", "dev"]
        assert result.metadata["plan_source"] == "steps"


class TestSequentialMode:

    @pytest.mark.asyncio
    async def test_rotation_across_turns(self, make_orchestrator):
        orchestrator, store, _ = make_orchestrator()
        picks = []
        for i in range(3):
            result = await orchestrator.run("s-seq", f"message {i}", mode="sequential")
            picks.append(result.tasks[0].assigned_agent_id)
            assert result.turn_index == i + 1

        assert picks == ["dev", "pm", "architect"]
        assert len(store.cycles("s-seq")) == 3
        assert len(store.load_state("s-seq").messages) == 6

    @pytest.mark.asyncio
    async def test_single_agent_failure_interrupts(self, roster, scripted_model, make_orchestrator):
        models = {"dev-model": scripted_model("x", error="invalid_api_key")}
        orchestrator, store, _ = make_orchestrator(agents=roster[:1], models=models)

        result = await orchestrator.run("s-fail", "do something", mode="sequential")

        assert result.phase == Phase.INTERRUPTED
        assert result.metadata["interrupt_reason"] == "agent_failed"
        assert result.error == "API 密钥无效，请联系管理员"
        assert result.turn_index == 0
        assert [m.type for m in store.load_state("s-fail").messages] == ["human"]

    @pytest.mark.asyncio
    async def test_single_agent_timeout_interrupts(self, roster, scripted_model, make_orchestrator, make_settings):
        models = {"dev-model": scripted_model("too late", delay=1.0)}
        settings = make_settings(agent_timeout_seconds=0.05)
        orchestrator, _, _ = make_orchestrator(agents=roster[:1], models=models, settings_override=settings)

        result = await orchestrator.run("s-slow", "do something", mode="sequential")

        assert result.phase == Phase.INTERRUPTED
        assert result.metadata["interrupt_reason"] == "agent_failed"
        assert result.tasks[0].failure_cause == FailureCause.TIMEOUT
        assert result.error == "AI 响应超时，请重试"

    @pytest.mark.asyncio
    async def test_numbered_request_walks_goals_in_order(self, scripted_model, make_orchestrator):
        dev = scripted_model("prd done", "code done")
        orchestrator, store, _ = make_orchestrator(models={"dev-model": dev})

        result = await orchestrator.run(
            "s-seq2", "Ship it:\n1. write the PRD\n2. implement the code", mode="sequential"
        )

        assert result.metadata["plan_source"] == "steps"
        assert [(t.assigned_agent_id, t.description, t.output) for t in result.tasks] == [
            ("dev", "write the PRD", "prd done"),
            ("dev", "implement the code", "code done"),
        ]
        # The second step sees the first step's output
        assert any(m.content == "prd done" for m in dev.calls[1])
        assert result.turn_index == 1
        assert [m.type for m in store.load_state("s-seq2").messages] == ["human", "ai", "ai"]


class TestClarification:

    @pytest.mark.asyncio
    async def test_suspend_and_resume(self, make_orchestrator, make_settings, scripted_model):
        settings = make_settings(enable_clarification=True)
        supervisor_model = scripted_model("NEEDS_CLARIFICATION: Web or mobile?")
        orchestrator, store, _ = make_orchestrator(settings_override=settings, supervisor_model=supervisor_model)

        first = await orchestrator.run("s-clar", "make an app", mode="sequential")

        assert first.phase == Phase.CLARIFYING
        assert first.clarification_question == "Web or mobile?"
        assert first.tasks == []
        assert first.turn_index == 0
        conversation = store.load_state("s-clar")
        assert conversation.pending_clarification == {"request": "make an app", "question": "Web or mobile?"}

        second = await orchestrator.run("s-clar", "mobile", mode="sequential")

        assert second.phase == Phase.COMPLETED
        assert second.tasks[0].description == "make an app\nmobile"
        assert second.turn_index == 1
        assert conversation.pending_clarification is None
        assert [m.content for m in conversation.messages][:2] == ["make an app", "mobile"]
        # The clarity check ran once, on the first call only
        assert len(supervisor_model.calls) == 1

    @pytest.mark.asyncio
    async def test_confirmed_intent_skips_clarification(self, make_orchestrator):
        orchestrator, _, _ = make_orchestrator()

        result = await orchestrator.run("s-conf", "", confirmed_intent="write a PRD", mode="sequential")

        assert result.phase == Phase.COMPLETED
        assert result.tasks[0].description == "write a PRD"

    @pytest.mark.asyncio
    async def test_empty_request_asks(self, make_orchestrator):
        orchestrator, _, _ = make_orchestrator()

        result = await orchestrator.run("s-empty", "   ")

        assert result.phase == Phase.CLARIFYING
        assert result.clarification_question


class TestCancellation:

    @pytest.mark.asyncio
    async def test_cancel_mid_stream_keeps_partial_output(self, roster, scripted_model, make_orchestrator):
        token = CancellationToken()
        chunks = []

        def listener(event):
            if event.type == EventType.CHUNK:
                chunks.append(event.text)
                if len(chunks) == 2:
                    token.cancel()

        models = {"dev-model": scripted_model("a b c d e f", chunk_delay=0.02)}
        orchestrator, store, _ = make_orchestrator(models=models)

        channel = EventChannel(listener=listener, queue=False)
        result = await orchestrator.run("s-cancel", "hello", mode="sequential", cancel_token=token, channel=channel)

        assert result.phase == Phase.INTERRUPTED
        assert result.metadata["interrupt_reason"] == "cancelled"
        task = result.tasks[0]
        assert task.status == TaskStatus.FAILED
        assert task.failure_cause == FailureCause.INTERRUPTED
        assert task.output == "a b"
        # The streamed part is billed
        assert task.usage.output_tokens > 0
        assert result.cost_usd > 0
        assert result.turn_index == 0
        assert [m.type for m in store.load_state("s-cancel").messages] == ["human"]

        # The session accepts the next message
        follow_up = await orchestrator.run("s-cancel", "again", mode="sequential")
        assert follow_up.phase == Phase.COMPLETED
        assert follow_up.turn_index == 1

    @pytest.mark.asyncio
    async def test_cancel_during_parallel_fan_out(self, roster, scripted_model, make_orchestrator):
        token = CancellationToken()

        def listener(event):
            if event.type == EventType.CHUNK:
                token.cancel()

        models = {
            f"{agent.id}-model": scripted_model("one two three four", chunk_delay=0.05) for agent in roster[:3]
        }
        orchestrator, store, _ = make_orchestrator(agents=roster[:3], models=models)

        channel = EventChannel(listener=listener, queue=False)
        result = await orchestrator.run(
            "s-pcancel", "review the login flow", mode="parallel", cancel_token=token, channel=channel
        )

        assert result.phase == Phase.INTERRUPTED
        assert result.metadata["interrupt_reason"] == "cancelled"
        assert len(result.tasks) == 3
        assert all(t.status == TaskStatus.FAILED for t in result.tasks)
        assert all(t.failure_cause == FailureCause.INTERRUPTED for t in result.tasks)
        # The agent whose chunk triggered the signal keeps it as partial output
        assert any(t.output == "one" for t in result.tasks)
        assert [m.type for m in store.load_state("s-pcancel").messages] == ["human"]

    @pytest.mark.asyncio
    async def test_cancel_before_start(self, make_orchestrator):
        token = CancellationToken()
        token.cancel()
        orchestrator, _, _ = make_orchestrator()

        result = await orchestrator.run("s-pre", "hello", cancel_token=token)

        assert result.phase == Phase.INTERRUPTED
        assert result.tasks == []


class TestConfigurationErrors:

    @pytest.mark.asyncio
    async def test_empty_roster(self, make_orchestrator):
        orchestrator, store, _ = make_orchestrator(agents=[])

        with pytest.raises(ConfigurationError):
            await orchestrator.run("s-none", "hello")

        assert store.list_sessions() == []

    @pytest.mark.asyncio
    async def test_missing_credentials(self, roster):
        settings = Settings(
            models=ModelRoutingSettings(api_key=None),
            observability=ObservabilitySettings(log_dir=""),
        )
        store = InMemoryConversationStore()
        orchestrator = Orchestrator(
            AgentRegistry(roster), model_resolver=build_model_resolver(settings), settings=settings, store=store
        )

        with pytest.raises(ConfigurationError) as exc_info:
            await orchestrator.run("s-key", "hello")

        assert "API Key" in exc_info.value.user_message
        assert store.list_sessions() == []

    @pytest.mark.asyncio
    async def test_unknown_mode(self, make_orchestrator):
        orchestrator, store, _ = make_orchestrator()
        with pytest.raises(ConfigurationError):
            await orchestrator.run("s-mode", "hello", mode="round-robin")
        assert store.list_sessions() == []


class TestStoreCollaborator:

    @pytest.mark.asyncio
    async def test_store_receives_messages_and_cycle(self, mocker, make_orchestrator):
        store = InMemoryConversationStore()
        append_spy = mocker.spy(store, "append_message")
        cycle_spy = mocker.spy(store, "save_cycle")
        orchestrator, _, _ = make_orchestrator(store=store)

        result = await orchestrator.run("s-store", "@dev write the login api", mode="sequential")

        assert result.phase == Phase.COMPLETED
        cycle_spy.assert_called_once_with("s-store", result)
        assert append_spy.call_count == 2
        assert append_spy.call_args_list[0].args[0] == "s-store"

    @pytest.mark.asyncio
    async def test_store_untouched_on_configuration_error(self, mocker, make_orchestrator):
        store = InMemoryConversationStore()
        save_spy = mocker.spy(store, "save_state")
        orchestrator, _, _ = make_orchestrator(agents=[], store=store)

        with pytest.raises(ConfigurationError):
            await orchestrator.run("s-empty", "hello")

        save_spy.assert_not_called()


class TestRosterChanges:

    @pytest.mark.asyncio
    async def test_registered_agent_joins_rotation(self, roster, make_orchestrator):
        orchestrator, store, _ = make_orchestrator(agents=roster[:1])
        await orchestrator.run("s-join", "first", mode="sequential")

        orchestrator.register_agent(create_agent_config("writer", "Writer", "Technical Writer"))
        result = await orchestrator.run("s-join", "second", mode="sequential")

        assert result.tasks[0].assigned_agent_id == "writer"
        assert store.load_state("s-join").participants == ["dev", "writer"]

    def test_set_mode(self, make_orchestrator):
        orchestrator, _, _ = make_orchestrator()
        assert orchestrator.set_mode("parallel").value == "parallel"
        with pytest.raises(ValueError):
            orchestrator.set_mode("bogus")


class TestStream:

    @pytest.mark.asyncio
    async def test_event_order(self, make_orchestrator):
        orchestrator, _, _ = make_orchestrator()

        events = [event async for event in orchestrator.stream("s-stream", "implement a login function", mode="dynamic")]
        types = [event.type for event in events]

        assert types[0] == EventType.PHASE_CHANGED
        assert types[-1] == EventType.CYCLE_FINISHED
        assert types.index(EventType.TASK_STARTED) < types.index(EventType.CHUNK)
        assert types.index(EventType.CHUNK) < types.index(EventType.TASK_COMPLETED)
        assert types.index(EventType.TASK_COMPLETED) < types.index(EventType.SUMMARY)

        text = "".join(e.text for e in events if e.type == EventType.CHUNK)
        assert text == "reply from dev-model"
        assert events[-1].data["result"].phase == Phase.COMPLETED

    @pytest.mark.asyncio
    async def test_configuration_error_propagates(self, make_orchestrator):
        orchestrator, _, _ = make_orchestrator(agents=[])
        with pytest.raises(ConfigurationError):
            async for _ in orchestrator.stream("s-bad", "hello"):
                pass

    @pytest.mark.asyncio
    async def test_leaving_early_interrupts_and_saves_the_cycle(self, scripted_model, make_orchestrator):
        models = {"dev-model": scripted_model("a b c d", chunk_delay=0.05)}
        orchestrator, store, _ = make_orchestrator(models=models)

        async with aclosing(orchestrator.stream("s-early", "implement it", mode="sequential")) as events:
            async for event in events:
                if event.type == EventType.CHUNK:
                    break

        cycles = store.cycles("s-early")
        assert len(cycles) == 1
        assert cycles[0].phase == Phase.INTERRUPTED
        assert cycles[0].metadata["interrupt_reason"] == "cancelled"
        task = cycles[0].tasks[0]
        assert task.failure_cause == FailureCause.INTERRUPTED
        assert task.output == "a"
        assert [m.type for m in store.load_state("s-early").messages] == ["human"]

    @pytest.mark.asyncio
    async def test_leaving_early_fires_the_callers_token(self, scripted_model, make_orchestrator):
        models = {"dev-model": scripted_model("a b c d", chunk_delay=0.05)}
        orchestrator, _, _ = make_orchestrator(models=models)
        token = CancellationToken()

        async with aclosing(orchestrator.stream("s-early2", "implement it", cancel_token=token, mode="sequential")) as events:
            async for event in events:
                if event.type == EventType.CHUNK:
                    break

        assert token.is_cancelled
