"""Tests for the replay-latest Broadcaster."""

import asyncio

import pytest

from docvault.core.broadcast import Broadcaster


class TestSubscribe:
    @pytest.mark.asyncio
    async def test_new_subscriber_receives_latest(self):
        broadcaster: Broadcaster[int] = Broadcaster()
        await broadcaster.publish(1)
        await broadcaster.publish(2)

        seen: list[int] = []

        async def handler(value: int) -> None:
            seen.append(value)

        await broadcaster.subscribe(handler)
        await broadcaster.publish(3)
        assert seen == [2, 3]

    @pytest.mark.asyncio
    async def test_unsubscribe(self):
        broadcaster: Broadcaster[int] = Broadcaster()
        seen: list[int] = []

        async def handler(value: int) -> None:
            seen.append(value)

        sub_id = await broadcaster.subscribe(handler)
        await broadcaster.publish(1)
        await broadcaster.unsubscribe(sub_id)
        await broadcaster.publish(2)
        assert seen == [1]

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_break_others(self):
        broadcaster: Broadcaster[int] = Broadcaster()
        seen: list[int] = []

        async def bad(value: int) -> None:
            raise RuntimeError("nope")

        async def good(value: int) -> None:
            seen.append(value)

        await broadcaster.subscribe(bad)
        await broadcaster.subscribe(good)
        await broadcaster.publish(5)
        assert seen == [5]


class TestStream:
    @pytest.mark.asyncio
    async def test_stream_replays_then_follows(self):
        broadcaster: Broadcaster[str] = Broadcaster()
        await broadcaster.publish("a")
        received: list[str] = []

        async def consume() -> None:
            async for value in broadcaster.stream():
                received.append(value)

        task = asyncio.create_task(consume())
        await asyncio.sleep(0.01)
        await broadcaster.publish("b")
        await broadcaster.close()
        await asyncio.wait_for(task, timeout=1)

        assert received == ["a", "b"]
        assert broadcaster.closed

    @pytest.mark.asyncio
    async def test_publish_after_close_is_ignored(self):
        broadcaster: Broadcaster[int] = Broadcaster()
        await broadcaster.close()
        await broadcaster.publish(1)
        assert broadcaster.latest is None


class TestStreamBuffering:
    @pytest.mark.asyncio
    async def test_stalled_stream_keeps_only_latest(self):
        broadcaster: Broadcaster[int] = Broadcaster()
        await broadcaster.publish(0)
        stream = broadcaster.stream()
        assert await anext(stream) == 0

        for n in range(1, 6):
            await broadcaster.publish(n)

        assert await anext(stream) == 5
        await broadcaster.close()
        with pytest.raises(StopAsyncIteration):
            await anext(stream)

    @pytest.mark.asyncio
    async def test_larger_buffer_drops_oldest(self):
        broadcaster: Broadcaster[int] = Broadcaster(buffer_size=3)
        await broadcaster.publish(0)
        stream = broadcaster.stream()
        assert await anext(stream) == 0

        for n in range(1, 6):
            await broadcaster.publish(n)
        await broadcaster.close()

        assert [value async for value in stream] == [3, 4, 5]

    def test_buffer_size_must_be_positive(self):
        with pytest.raises(ValueError):
            Broadcaster(buffer_size=0)
