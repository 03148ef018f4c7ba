"""
Tests for the connection lifecycle and reconnect policy.
"""

import asyncio

import pytest

from conftest import FakeConnector, FakeSocket, wait_until
from mcrelay.bus.queue import OutboundQueue
from mcrelay.relay.connection import ConnectionManager, ConnectionState, to_ws_url


async def _ignore(text):
    pass


def _manager(connector, queue=None, delay=0.05):
    return ConnectionManager(
        url="ws://mc.local:8080/chats",
        queue=queue or OutboundQueue(),
        on_line=_ignore,
        reconnect_delay=delay,
        connect=connector,
    )


async def _shutdown(manager, task):
    await manager.stop()
    task.cancel()
    await asyncio.gather(task, return_exceptions=True)


class TestEndpointDerivation:

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "base, expected",
        [
            ("http://host:8080", "ws://host:8080/chats"),
            ("https://mc.example.com", "wss://mc.example.com/chats"),
            ("http://host:8080/", "ws://host:8080/chats"),
            ("http://host/api", "ws://host/api/chats"),
            ("ws://host:8080", "ws://host:8080/chats"),
        ],
    )
    def test_to_ws_url(self, base, expected):
        assert to_ws_url(base) == expected

    @pytest.mark.unit
    def test_custom_path(self):
        assert to_ws_url("http://host", "console") == "ws://host/console"

    @pytest.mark.unit
    @pytest.mark.parametrize("base", ["ftp://host", "host:8080", ""])
    def test_rejects_non_http(self, base):
        with pytest.raises(ValueError):
            to_ws_url(base)


class TestReconnect:

    @pytest.mark.asyncio
    async def test_initial_state(self):
        manager = _manager(FakeConnector())
        assert manager.state is ConnectionState.DISCONNECTED
        assert manager.attempts == 0

    @pytest.mark.asyncio
    async def test_waits_fixed_delay_after_handshake_failure(self):
        connector = FakeConnector([OSError("connection refused"), FakeSocket()])
        manager = _manager(connector, delay=0.2)
        task = asyncio.create_task(manager.run())

        await wait_until(lambda: manager.state is ConnectionState.FAILED)
        await wait_until(lambda: manager.state is ConnectionState.CONNECTED)

        assert connector.calls == 2
        assert connector.times[1] - connector.times[0] >= 0.18
        assert manager.attempts == 2

        await _shutdown(manager, task)

    @pytest.mark.asyncio
    async def test_never_gives_up(self):
        failures = [OSError(f"refused #{i}") for i in range(8)]
        connector = FakeConnector(failures + [FakeSocket()])
        manager = _manager(connector, delay=0.01)
        task = asyncio.create_task(manager.run())

        await wait_until(lambda: manager.state is ConnectionState.CONNECTED)

        assert connector.calls == 9
        assert all(url == "ws://mc.local:8080/chats" for url in connector.urls)

        await _shutdown(manager, task)

    @pytest.mark.asyncio
    async def test_reconnects_after_stream_end(self):
        first = FakeSocket()
        connector = FakeConnector([first, FakeSocket()])
        manager = _manager(connector, delay=0.05)
        task = asyncio.create_task(manager.run())

        await wait_until(lambda: manager.state is ConnectionState.CONNECTED)
        first.end()

        await wait_until(lambda: connector.calls == 2 and manager.state is ConnectionState.CONNECTED)
        assert connector.times[1] - connector.times[0] >= 0.04

        await _shutdown(manager, task)

    @pytest.mark.asyncio
    async def test_write_failure_drops_inflight_line_and_reconnects(self):
        queue = OutboundQueue()
        await queue.put("/say Carl: lost\n")

        first = FakeSocket(fail_send=True)
        second = FakeSocket()
        connector = FakeConnector([first, second])
        manager = _manager(connector, queue=queue, delay=0.05)
        task = asyncio.create_task(manager.run())

        await wait_until(lambda: connector.calls == 2 and manager.state is ConnectionState.CONNECTED)

        await queue.put("/say Carl: after\n")
        await wait_until(lambda: second.sent == ["/say Carl: after\n"])

        assert first.attempted == ["/say Carl: lost\n"]
        assert first.sent == []
        assert "/say Carl: lost\n" not in second.attempted

        await _shutdown(manager, task)

    @pytest.mark.asyncio
    async def test_queued_lines_survive_outage(self):
        queue = OutboundQueue()
        sock = FakeSocket()
        connector = FakeConnector([OSError("down"), sock])
        manager = _manager(connector, queue=queue, delay=0.05)
        task = asyncio.create_task(manager.run())

        await queue.put("/say A: during outage\n")
        await wait_until(lambda: sock.sent == ["/say A: during outage\n"])

        await _shutdown(manager, task)


class TestStop:

    @pytest.mark.asyncio
    async def test_stop_ends_run(self):
        connector = FakeConnector([FakeSocket()])
        manager = _manager(connector)
        task = asyncio.create_task(manager.run())
        await wait_until(lambda: manager.state is ConnectionState.CONNECTED)

        await manager.stop()
        await asyncio.wait_for(task, timeout=1.0)

        assert connector.calls == 1
        assert not manager.is_running
        assert manager.state is ConnectionState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_closed_queue_ends_run(self):
        queue = OutboundQueue()
        manager = _manager(FakeConnector([FakeSocket()]), queue=queue)
        task = asyncio.create_task(manager.run())
        await wait_until(lambda: manager.state is ConnectionState.CONNECTED)

        queue.close()

        await asyncio.wait_for(task, timeout=1.0)
