"""
Per-connection relay pump.

One RelayLoop is bound to one live WebSocket. It runs two tasks:

    writer: OutboundQueue -> ws.send
    reader: ws frames -> classify -> on_line

and returns as soon as either task finishes. The other task is cancelled,
not drained; the next connection starts fresh.
"""

from __future__ import annotations

import asyncio
from typing import Any, Awaitable, Callable

from loguru import logger

from mcrelay.bus.queue import OutboundQueue
from mcrelay.errors import QueueClosedError
from mcrelay.relay.classifier import classify, render, split_frame
from mcrelay.utils.helpers import truncate


LineCallback = Callable[[str], Awaitable[None]]


class RelayLoop:
    """
    Concurrent read/write pump over a single connection.

    Guarantees:
        - Outbound lines are written in queue order
        - Inbound lines are dispatched in socket order, one at a time
        - A line whose write fails is dropped, never re-enqueued
    """

    def __init__(self, ws: Any, queue: OutboundQueue, on_line: LineCallback):
        self._ws = ws
        self._queue = queue
        self._on_line = on_line

    async def run(self) -> str:
        """
        Pump until the connection is no longer usable.

        Returns:
            Which side ended the loop: ``"writer"`` or ``"reader"``.
        """
        writer = asyncio.create_task(self._write_loop(), name="relay-writer")
        reader = asyncio.create_task(self._read_loop(), name="relay-reader")

        try:
            done, _ = await asyncio.wait(
                {writer, reader},
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in (writer, reader):
                if not task.done():
                    task.cancel()
            await asyncio.gather(writer, reader, return_exceptions=True)

        ended_by = "writer" if writer in done else "reader"
        finished = writer if ended_by == "writer" else reader

        if not finished.cancelled() and finished.exception() is not None:
            err = finished.exception()
            if isinstance(err, QueueClosedError):
                logger.info("Relay writer stopped: outbound queue closed")
            else:
                logger.warning("Relay {} failed | {}: {}", ended_by, type(err).__name__, err)

        return ended_by

    # ==========================================================
    # Writer
    # ==========================================================

    async def _write_loop(self) -> None:
        while True:
            line = await self._queue.get()
            try:
                await self._ws.send(line)
            except Exception:
                logger.warning("Dropping outbound line after write failure | line={!r}", truncate(line, 80))
                raise
            logger.debug("Outbound -> server | {!r}", truncate(line, 120))

    # ==========================================================
    # Reader
    # ==========================================================

    async def _read_loop(self) -> None:
        async for frame in self._ws:
            if not isinstance(frame, str):
                logger.debug("Ignoring non-text frame ({} bytes)", len(frame))
                continue

            for line in split_frame(frame):
                text = render(classify(line))
                if text is None:
                    continue

                logger.debug("Inbound -> chat | {}", truncate(text, 120))
                await self._on_line(text)

        logger.info("Server stream ended")
