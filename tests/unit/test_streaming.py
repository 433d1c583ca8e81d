"""
测试事件通道与可取消调用
"""

import asyncio

import pytest

from swarmAgent.schema import EventType, StreamEvent
from swarmAgent.streaming import CancellationToken, EventChannel, run_cancellable
from swarmAgent.utils.error_handler import AgentTimeoutError, CancellationError


class TestEventChannel:

    @pytest.mark.asyncio
    async def test_events_come_out_in_emit_order(self):
        channel = EventChannel(record=True)
        seen = []
        for i in range(3):
            channel.emit(StreamEvent.chunk("s1", "dev", "Developer", f"c{i}"))
        channel.close()

        async for event in channel:
            seen.append(event.text)

        assert seen == ["c0", "c1", "c2"]
        assert len(channel.history) == 3

    @pytest.mark.asyncio
    async def test_emit_after_close_is_dropped(self):
        channel = EventChannel(record=True)
        channel.close()
        channel.emit(StreamEvent(EventType.SUMMARY, "s1"))

        assert [event async for event in channel] == []
        assert channel.history == []
        assert channel.closed

    @pytest.mark.asyncio
    async def test_listener_sees_every_event(self):
        received = []
        channel = EventChannel(listener=received.append)
        channel.emit(StreamEvent.phase_changed("s1", "idle", "planning"))

        assert received[0].phase == "planning"
        assert received[0].data == {"from": "idle"}

    @pytest.mark.asyncio
    async def test_unqueued_channel_only_records(self):
        channel = EventChannel(record=True, queue=False)
        channel.emit(StreamEvent.chunk("s1", "dev", "Developer", "x"))
        channel.close()

        assert [event.text for event in channel.history] == ["x"]
        with pytest.raises(RuntimeError):
            async for _ in channel:
                pass

    @pytest.mark.asyncio
    async def test_concurrent_producer(self):
        channel = EventChannel()

        async def produce():
            for i in range(5):
                await asyncio.sleep(0)
                channel.emit(StreamEvent.chunk("s1", "pm", "PM", str(i)))
            channel.close()

        task = asyncio.create_task(produce())
        texts = [event.text async for event in channel]
        await task

        assert texts == ["0", "1", "2", "3", "4"]


class TestRunCancellable:

    @pytest.mark.asyncio
    async def test_returns_result(self):
        async def work():
            return 42
        assert await run_cancellable(work(), CancellationToken(), timeout=1) == 42

    @pytest.mark.asyncio
    async def test_cancel_while_running(self):
        token = CancellationToken()

        async def work():
            await asyncio.sleep(5)

        async def cancel_soon():
            await asyncio.sleep(0.01)
            token.cancel("stop")

        canceller = asyncio.create_task(cancel_soon())
        with pytest.raises(CancellationError) as exc_info:
            await run_cancellable(work(), token)
        await canceller

        assert "stop" in str(exc_info.value)
        assert token.reason == "stop"

    @pytest.mark.asyncio
    async def test_timeout(self):
        async def work():
            await asyncio.sleep(5)

        with pytest.raises(AgentTimeoutError):
            await run_cancellable(work(), None, timeout=0.01)

    @pytest.mark.asyncio
    async def test_pre_cancelled_token(self):
        token = CancellationToken()
        token.cancel()

        async def work():
            return "never"

        with pytest.raises(CancellationError):
            await run_cancellable(work(), token)

    def test_cancel_is_idempotent(self):
        token = CancellationToken()
        token.cancel("first")
        token.cancel("second")
        assert token.reason == "first"
        with pytest.raises(CancellationError):
            token.raise_if_cancelled()
