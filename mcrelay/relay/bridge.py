"""
Bridge facade: the only entry point the chat side needs.

Usage:
    relay = start("http://localhost:8080", channel_id, discord_channel)
    await relay.send_chat(ChatEvent(author="Carl", body="hi"))
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable, Optional, Protocol

from loguru import logger

from mcrelay.bus.events import ChatEvent, OutboundMessage, format_say_command
from mcrelay.bus.queue import DEFAULT_QUEUE_SIZE, OutboundQueue
from mcrelay.errors import QueueClosedError, RelayStoppedError
from mcrelay.relay.connection import (
    DEFAULT_CHATS_PATH,
    DEFAULT_RECONNECT_DELAY,
    ConnectionManager,
    ConnectionState,
    to_ws_url,
)


class ChatClient(Protocol):
    """Anything that can deliver a message to a chat channel."""

    async def send(self, msg: OutboundMessage) -> None:
        ...


class RelayHandle:
    """
    Producer end of a running relay.

    Lines are queued, not written directly; while the game server is
    unreachable they wait in the queue (up to its capacity).
    """

    def __init__(self, queue: OutboundQueue, manager: ConnectionManager, task: asyncio.Task):
        self._queue = queue
        self._manager = manager
        self._task = task

    async def send(self, line: str) -> None:
        """
        Queue a raw console line for the game server.

        Raises:
            RelayStoppedError: the background relay is gone.
        """
        if self._task.done():
            raise RelayStoppedError("Relay task is not running") from _task_error(self._task)

        try:
            await self._queue.put(line)
        except QueueClosedError as e:
            raise RelayStoppedError("Relay queue is closed") from e

    async def send_chat(self, event: ChatEvent) -> None:
        """Queue a chat event as a ``/say`` broadcast."""
        await self.send(format_say_command(event))

    async def wait(self) -> None:
        """Block until the background relay ends; re-raise its crash."""
        await asyncio.shield(self._task)

    async def close(self) -> None:
        """Stop the relay and refuse further lines."""
        self._queue.close()
        await self._manager.stop()

        if not self._task.done():
            self._task.cancel()

        # Crashes were already logged by _log_relay_exit.
        await asyncio.gather(self._task, return_exceptions=True)

    # ----------------------------------------------------------
    # Runtime state
    # ----------------------------------------------------------

    @property
    def alive(self) -> bool:
        return not self._task.done()

    @property
    def state(self) -> ConnectionState:
        return self._manager.state

    @property
    def pending(self) -> int:
        return self._queue.size

    @property
    def url(self) -> str:
        return self._manager.url


def start(
    endpoint: str,
    channel_id: str | int,
    client: ChatClient,
    *,
    queue_size: int = DEFAULT_QUEUE_SIZE,
    reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
    chats_path: str = DEFAULT_CHATS_PATH,
    connect: Optional[Callable[[str], Any]] = None,
) -> RelayHandle:
    """
    Start relaying between the game server at ``endpoint`` and a chat channel.

    ``endpoint`` is the server's HTTP API base; the chat stream URL is
    derived from it (http://host -> ws://host/chats).

    Spawns the connection loop as a background task on the running event
    loop and returns immediately.
    """
    queue = OutboundQueue(maxsize=queue_size)
    manager = ConnectionManager(
        url=to_ws_url(endpoint, chats_path),
        queue=queue,
        on_line=_chat_sink(str(channel_id), client),
        reconnect_delay=reconnect_delay,
        connect=connect,
    )

    task = asyncio.create_task(manager.run(), name="mcrelay-relay")
    task.add_done_callback(_log_relay_exit)
    # Producers blocked on a full queue must not outlive the relay.
    task.add_done_callback(lambda _: queue.close())

    return RelayHandle(queue, manager, task)


def _chat_sink(chat_id: str, client: ChatClient) -> Callable[[str], Awaitable[None]]:
    async def deliver(text: str) -> None:
        # One attempt; a failing send must not stall the reader.
        try:
            await client.send(OutboundMessage(chat_id=chat_id, content=text))
        except Exception as e:
            logger.warning("Chat send failed, dropping line | chat={} err={}", chat_id, e)

    return deliver


def _task_error(task: asyncio.Task) -> Optional[BaseException]:
    if task.cancelled():
        return None
    return task.exception()


def _log_relay_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        logger.info("Relay task cancelled")
        return

    err = task.exception()
    if err is not None:
        logger.opt(exception=err).error("Relay task crashed")
