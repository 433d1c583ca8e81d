"""
测试数据模型：阶段状态机、任务状态、消息只追加、Usage 与 CycleResult
"""

import pytest

from swarmAgent.schema import (
    ConversationState,
    CycleResult,
    FailureCause,
    Phase,
    Task,
    TaskStatus,
    Usage,
    agent_message,
    check_transition,
    create_agent_config,
    message_role,
    message_text,
    system_message,
    user_message,
)
from swarmAgent.utils.error_handler import InvalidTransitionError


class TestPhaseMachine:

    @pytest.mark.parametrize("current,target", [
        (Phase.IDLE, Phase.PLANNING),
        (Phase.IDLE, Phase.CLARIFYING),
        (Phase.CLARIFYING, Phase.PLANNING),
        (Phase.EXECUTING, Phase.EXECUTING),
        (Phase.SUMMARIZING, Phase.COMPLETED),
        (Phase.COMPLETED, Phase.IDLE),
        (Phase.INTERRUPTED, Phase.IDLE),
    ])
    def test_allowed_edges(self, current, target):
        assert check_transition(current, target) == target

    @pytest.mark.parametrize("current,target", [
        (Phase.IDLE, Phase.EXECUTING),
        (Phase.PLANNING, Phase.SUMMARIZING),
        (Phase.COMPLETED, Phase.PLANNING),
        (Phase.INTERRUPTED, Phase.COMPLETED),
    ])
    def test_rejected_edges(self, current, target):
        with pytest.raises(InvalidTransitionError):
            check_transition(current, target)

    def test_every_active_phase_can_be_interrupted(self):
        for phase in (Phase.IDLE, Phase.CLARIFYING, Phase.PLANNING, Phase.EXECUTING, Phase.SUMMARIZING):
            assert check_transition(phase, Phase.INTERRUPTED) == Phase.INTERRUPTED

    def test_terminal_flags(self):
        assert Phase.COMPLETED.is_terminal
        assert Phase.INTERRUPTED.is_terminal
        assert not Phase.EXECUTING.is_terminal

    def test_state_transition_keeps_phase_on_error(self):
        state = ConversationState(session_id="s1")
        with pytest.raises(InvalidTransitionError):
            state.transition_to(Phase.SUMMARIZING)
        assert state.phase == Phase.IDLE


class TestConversationState:

    def test_messages_are_append_only(self):
        state = ConversationState(session_id="s1")
        state.append_message(user_message("hi"))
        view = state.messages

        assert isinstance(view, tuple)
        state.extend_messages([agent_message("dev", "hello"), system_message("note")])

        assert len(view) == 1
        assert [message_role(m) for m in state.messages] == ["user", "agent:dev", "system"]

    def test_participants_keep_registration_order(self):
        state = ConversationState(session_id="s1")
        for agent_id in ("pm", "dev", "pm", "designer"):
            state.add_participant(agent_id)
        state.remove_participant("dev")
        assert state.participants == ["pm", "designer"]

    def test_complete_turn_increments(self):
        state = ConversationState(session_id="s1")
        assert state.complete_turn() == 1
        assert state.complete_turn() == 2

    def test_message_text_flattens_parts(self):
        message = user_message("x").model_copy(
            update={"content": [{"type": "text", "text": "hello "}, "world", {"type": "image_url", "image_url": "u"}]}
        )
        assert message_text(message) == "hello world"


class TestTask:

    def test_happy_path(self):
        task = Task(title="t", description="d", assigned_agent_id="dev")
        task.start().complete("done", Usage(3, 4))

        assert task.status == TaskStatus.COMPLETED
        assert task.output == "done"
        assert task.usage.total_tokens == 7
        assert task.started_at <= task.completed_at

    def test_failure_keeps_partial_output(self):
        task = Task(title="t", description="d", assigned_agent_id="dev").start()
        task.fail("stopped", FailureCause.INTERRUPTED, partial_output="half")

        assert task.status == TaskStatus.FAILED
        assert task.output == "half"
        assert task.failure_cause == FailureCause.INTERRUPTED

    def test_status_never_moves_backwards(self):
        task = Task(title="t", description="d", assigned_agent_id="dev").start().complete("x")
        with pytest.raises(InvalidTransitionError):
            task.fail("late")
        with pytest.raises(InvalidTransitionError):
            Task(title="t", description="d", assigned_agent_id="dev").complete("skip")

    def test_to_dict(self):
        task = Task(title="t", description="d", assigned_agent_id="dev").start()
        task.fail("boom", "timeout")
        data = task.to_dict()

        assert data["status"] == "failed"
        assert data["failure_cause"] == "timeout"
        assert data["output"] is None
        assert data["usage"] == {"input_tokens": 0, "output_tokens": 0}


class TestUsageAndResult:

    def test_usage_addition(self):
        total = Usage(1, 2) + Usage(10, 20)
        assert total == Usage(11, 22)
        assert total.total_tokens == 33

    def test_cycle_result_views(self):
        done = Task(title="a", description="a", assigned_agent_id="dev").start().complete("ok")
        failed = Task(title="b", description="b", assigned_agent_id="pm").start().fail("err")
        result = CycleResult(session_id="s1", phase=Phase.COMPLETED, tasks=[done, failed], summary="ok")

        assert result.completed_tasks == [done]
        assert result.failed_tasks == [failed]

        data = result.to_dict()
        assert data["phase"] == "completed"
        assert [t["status"] for t in data["tasks"]] == ["completed", "failed"]


class TestAgentConfig:

    def test_defaults_and_normalization(self):
        config = create_agent_config("dev", "Developer", "Software Developer", capability_tags=["code", "code"], aliases=["coder"])

        assert config.system_instructions == "You are Developer, acting as Software Developer."
        assert config.capability_tags == frozenset({"code"})
        assert config.aliases == ("coder",)
        assert config.to_dict()["capability_tags"] == ["code"]

    def test_empty_id_rejected(self):
        with pytest.raises(ValueError):
            create_agent_config("", "Nobody", "none")
