"""
Bounded outbound queue between the chat handler and the relay writer.
"""

from __future__ import annotations

import asyncio
from typing import Union

from loguru import logger

from mcrelay.errors import QueueClosedError, QueueFullError


DEFAULT_QUEUE_SIZE = 32


class _Closed:
    """End-of-stream marker handed to consumers waiting on a closed queue."""


_CLOSED = _Closed()


class OutboundQueue:
    """
    FIFO of console lines waiting to be written to the game server.

    Architecture:
        chat handler(s) -> put -> OutboundQueue -> get -> relay writer

    Any number of producers may ``put`` concurrently; a single relay writer
    consumes. The queue outlives individual connections, so lines enqueued
    during an outage are written once the relay reconnects.

    A cancelled ``get`` never consumes a line.
    """

    def __init__(self, maxsize: int = DEFAULT_QUEUE_SIZE):
        if maxsize <= 0:
            raise ValueError(f"Outbound queue needs a positive capacity, got {maxsize}")

        self._queue: asyncio.Queue[Union[str, _Closed]] = asyncio.Queue(maxsize=maxsize)
        self._closed = asyncio.Event()
        self._markers = 0

    # ---------------------------------------------------------------------
    # Producer side
    # ---------------------------------------------------------------------

    async def put(self, line: str) -> None:
        """
        Enqueue a line, waiting while the queue is full.

        Raises:
            QueueClosedError: the queue is closed, including while waiting.
        """
        if self.closed:
            raise QueueClosedError("Outbound queue is closed")

        if not self._queue.full():
            self._queue.put_nowait(line)
            return

        logger.debug("Outbound queue full ({}), waiting for writer", self.maxsize)

        putter = asyncio.ensure_future(self._queue.put(line))
        closer = asyncio.ensure_future(self._closed.wait())

        try:
            await asyncio.wait({putter, closer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            closer.cancel()
            if not putter.done():
                putter.cancel()

        # A cancelled Queue.put never inserts its item.
        if putter.done() and not putter.cancelled():
            putter.result()
            return

        raise QueueClosedError("Outbound queue is closed")

    def put_nowait(self, line: str) -> None:
        """Enqueue a line or fail immediately when at capacity."""
        if self.closed:
            raise QueueClosedError("Outbound queue is closed")

        try:
            self._queue.put_nowait(line)
        except asyncio.QueueFull as e:
            raise QueueFullError(f"Outbound queue is full ({self.maxsize})") from e

    # ---------------------------------------------------------------------
    # Consumer side
    # ---------------------------------------------------------------------

    async def get(self) -> str:
        """
        Take the next line, waiting until one is available.

        Raises:
            QueueClosedError: the queue is closed and has been drained.
        """
        if self.closed and self.size == 0:
            raise QueueClosedError("Outbound queue is closed")

        item = await self._queue.get()

        if isinstance(item, _Closed):
            self._markers -= 1
            # Pass the marker on to any other waiting consumer.
            self._push_marker()
            raise QueueClosedError("Outbound queue is closed")

        return item

    # ---------------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------------

    def close(self) -> None:
        """Refuse further lines and wake waiting producers and consumers."""
        if self.closed:
            return

        logger.info("Outbound queue closed | pending={}", self.size)
        self._closed.set()
        self._push_marker()

    def _push_marker(self) -> None:
        # A full queue has no waiting consumer; they drain and then see closed.
        if not self._queue.full():
            self._queue.put_nowait(_CLOSED)
            self._markers += 1

    # ---------------------------------------------------------------------
    # Metrics
    # ---------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def size(self) -> int:
        return self._queue.qsize() - self._markers

    @property
    def maxsize(self) -> int:
        return self._queue.maxsize

    @property
    def full(self) -> bool:
        return self._queue.full()
