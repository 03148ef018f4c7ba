"""
Tests for the bounded outbound queue.
"""

import asyncio

import pytest

from mcrelay.bus.events import ChatEvent, format_say_command
from mcrelay.bus.queue import DEFAULT_QUEUE_SIZE, OutboundQueue
from mcrelay.errors import QueueClosedError, QueueFullError


class TestFormatting:
    """Chat events become console broadcast lines."""

    @pytest.mark.unit
    def test_say_command(self):
        assert format_say_command(ChatEvent(author="Carl", body="hi")) == "/say Carl: hi\n"

    @pytest.mark.unit
    def test_body_is_not_escaped(self):
        line = format_say_command(ChatEvent(author="Eve", body="a\n/op Eve"))
        assert line == "/say Eve: a\n/op Eve\n"

    @pytest.mark.unit
    def test_chat_event_is_immutable(self):
        event = ChatEvent(author="Carl", body="hi")
        with pytest.raises(AttributeError):
            event.body = "changed"


class TestCapacity:
    """Backpressure at the capacity boundary."""

    @pytest.mark.unit
    def test_default_capacity(self):
        assert DEFAULT_QUEUE_SIZE == 32

    @pytest.mark.unit
    def test_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError):
            OutboundQueue(maxsize=0)

    @pytest.mark.asyncio
    async def test_33rd_put_blocks_until_a_get(self):
        queue = OutboundQueue()

        for i in range(32):
            await asyncio.wait_for(queue.put(f"line {i}"), timeout=0.1)
        assert queue.full

        blocked = asyncio.create_task(queue.put("line 32"))
        await asyncio.sleep(0.05)
        assert not blocked.done()

        assert await queue.get() == "line 0"
        await asyncio.wait_for(blocked, timeout=1.0)
        assert queue.size == 32

    @pytest.mark.asyncio
    async def test_put_nowait_rejects_when_full(self):
        queue = OutboundQueue(maxsize=2)
        queue.put_nowait("a")
        queue.put_nowait("b")

        with pytest.raises(QueueFullError):
            queue.put_nowait("c")
        assert queue.size == 2


class TestOrderingAndClose:

    @pytest.mark.asyncio
    async def test_fifo(self):
        queue = OutboundQueue()
        for line in ("a", "b", "c"):
            await queue.put(line)

        assert [await queue.get() for _ in range(3)] == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_get_waits_for_item(self):
        queue = OutboundQueue()
        getter = asyncio.create_task(queue.get())
        await asyncio.sleep(0.01)
        assert not getter.done()

        await queue.put("late")
        assert await asyncio.wait_for(getter, timeout=1.0) == "late"

    @pytest.mark.asyncio
    async def test_close_wakes_waiting_consumer(self):
        queue = OutboundQueue()
        getter = asyncio.create_task(queue.get())
        await asyncio.sleep(0.01)

        queue.close()
        with pytest.raises(QueueClosedError):
            await asyncio.wait_for(getter, timeout=1.0)

    @pytest.mark.asyncio
    async def test_closed_queue_drains_then_refuses(self):
        queue = OutboundQueue()
        await queue.put("pending")
        queue.close()

        with pytest.raises(QueueClosedError):
            await queue.put("more")

        assert await queue.get() == "pending"
        with pytest.raises(QueueClosedError):
            await queue.get()

    @pytest.mark.asyncio
    async def test_cancelled_get_loses_nothing(self):
        queue = OutboundQueue()
        getter = asyncio.create_task(queue.get())
        await asyncio.sleep(0.01)
        getter.cancel()
        await asyncio.gather(getter, return_exceptions=True)

        await queue.put("kept")
        assert await queue.get() == "kept"

    @pytest.mark.asyncio
    async def test_get_cancelled_in_same_tick_as_put_keeps_line(self):
        queue = OutboundQueue()
        getter = asyncio.create_task(queue.get())
        await asyncio.sleep(0.01)

        queue.put_nowait("kept")
        getter.cancel()
        await asyncio.gather(getter, return_exceptions=True)

        assert getter.cancelled()
        assert queue.size == 1
        assert await queue.get() == "kept"

    @pytest.mark.asyncio
    async def test_close_wakes_blocked_producer(self):
        queue = OutboundQueue(maxsize=1)
        await queue.put("a")

        blocked = asyncio.create_task(queue.put("b"))
        await asyncio.sleep(0.01)
        assert not blocked.done()

        queue.close()
        with pytest.raises(QueueClosedError):
            await asyncio.wait_for(blocked, timeout=1.0)

        assert queue.size == 1
        assert await queue.get() == "a"
        with pytest.raises(QueueClosedError):
            await queue.get()
