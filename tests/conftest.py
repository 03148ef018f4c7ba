"""
Shared fixtures and fakes.

The game server socket is replaced by FakeSocket and websockets.connect by
FakeConnector, so no test touches the network.
"""

import asyncio
from contextlib import asynccontextmanager

import pytest

from mcrelay.bus.events import OutboundMessage


_EOF = object()

ENV_VARS = (
    "DISCORD_TOKEN",
    "DISCORD_CHANNEL",
    "MC_API_BASE",
    "LOG_LEVEL",
    "LOG_FILE",
    "RELAY__QUEUE_SIZE",
    "RELAY__RECONNECT_DELAY",
    "RELAY__CHATS_PATH",
)


class FakeSocket:
    """In-memory stand-in for a websockets client connection."""

    def __init__(self, frames=(), fail_send=False):
        self.sent = []
        self.attempted = []
        self.closed = False
        self.fail_send = fail_send
        self._inbound = asyncio.Queue()
        for frame in frames:
            self._inbound.put_nowait(frame)

    def feed(self, frame):
        self._inbound.put_nowait(frame)

    def end(self):
        self._inbound.put_nowait(_EOF)

    async def send(self, data):
        self.attempted.append(data)
        if self.fail_send:
            raise ConnectionError("write failed")
        self.sent.append(data)

    async def close(self):
        self.closed = True
        self.end()

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._inbound.get()
        if item is _EOF:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item


class FakeConnector:
    """
    Replacement for websockets.connect.

    Each call consumes the next outcome: an exception is raised as a
    handshake failure, a FakeSocket is yielded as the live connection.
    Once outcomes run out, an idle socket is handed out.
    """

    def __init__(self, outcomes=()):
        self.outcomes = list(outcomes)
        self.urls = []
        self.times = []
        self.sockets = []

    def __call__(self, url):
        self.urls.append(url)
        self.times.append(asyncio.get_running_loop().time())
        outcome = self.outcomes.pop(0) if self.outcomes else FakeSocket()
        if isinstance(outcome, FakeSocket):
            self.sockets.append(outcome)
        return self._open(outcome)

    @asynccontextmanager
    async def _open(self, outcome):
        if isinstance(outcome, Exception):
            raise outcome
        yield outcome

    @property
    def calls(self):
        return len(self.urls)


class FakeChatClient:
    """Records what the relay sends to the chat channel."""

    def __init__(self, fail_on=()):
        self.messages = []
        self.fail_on = set(fail_on)

    async def send(self, msg: OutboundMessage) -> None:
        if msg.content in self.fail_on:
            raise RuntimeError("Missing Permissions")
        self.messages.append(msg)

    @property
    def contents(self):
        return [m.content for m in self.messages]


async def wait_until(predicate, timeout=2.0, interval=0.005):
    """Poll ``predicate`` until true or fail the test after ``timeout``."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    """Isolate config tests from the caller's environment and home dir."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    return tmp_path
