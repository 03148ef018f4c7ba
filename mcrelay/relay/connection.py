"""Game server WebSocket connection lifecycle."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Any, Callable, Optional
from urllib.parse import urlsplit, urlunsplit

import websockets
from loguru import logger

from mcrelay.bus.queue import OutboundQueue
from mcrelay.relay.loop import LineCallback, RelayLoop


DEFAULT_CHATS_PATH = "/chats"
DEFAULT_RECONNECT_DELAY = 5.0

_WS_SCHEMES = {
    "http": "ws",
    "https": "wss",
    "ws": "ws",
    "wss": "wss",
}


def to_ws_url(base: str, path: str = DEFAULT_CHATS_PATH) -> str:
    """
    Derive the chat stream endpoint from the server's HTTP API base.

    Example:
        http://host:8080 -> ws://host:8080/chats
    """
    parts = urlsplit(base.strip())
    scheme = _WS_SCHEMES.get(parts.scheme.lower())
    if scheme is None or not parts.netloc:
        raise ValueError(f"Not an http(s) or ws(s) URL: {base!r}")

    full_path = parts.path.rstrip("/") + "/" + path.lstrip("/")
    return urlunsplit((scheme, parts.netloc, full_path, parts.query, parts.fragment))


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    FAILED = "failed"


class ConnectionManager:
    """
    Keeps one WebSocket to the game server alive.

    Lifecycle:
        DISCONNECTED -> CONNECTING -> CONNECTED -> DISCONNECTED -> ...
                             |
                             +-> FAILED -> (delay) -> DISCONNECTED

    Every lost or failed connection is followed by the same fixed delay.
    There is no retry limit; only stop() or task cancellation ends run().
    """

    def __init__(
        self,
        url: str,
        queue: OutboundQueue,
        on_line: LineCallback,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        connect: Optional[Callable[[str], Any]] = None,
    ):
        self.url = url
        self.queue = queue
        self.on_line = on_line
        self.reconnect_delay = reconnect_delay

        self._connect = connect or websockets.connect
        self._state = ConnectionState.DISCONNECTED
        self._ws: Optional[Any] = None
        self._running = False

        self.attempts = 0

    # ==========================================================
    # Lifecycle
    # ==========================================================

    async def run(self) -> None:
        self._running = True
        logger.info("Relay starting | url={}", self.url)

        try:
            while self._running:
                await self._connect_once()

                if self.queue.closed or not self._running:
                    break

                logger.info("Reconnecting to game server in {}s...", self.reconnect_delay)
                await asyncio.sleep(self.reconnect_delay)
                self._state = ConnectionState.DISCONNECTED
        finally:
            self._running = False
            self._state = ConnectionState.DISCONNECTED
            logger.info("Relay stopped | url={}", self.url)

    async def stop(self) -> None:
        self._running = False

        if self._ws is not None:
            try:
                await self._ws.close()
            except Exception as e:
                logger.debug("Error while closing relay socket | {}", e)

    async def _connect_once(self) -> None:
        self._state = ConnectionState.CONNECTING
        self.attempts += 1
        logger.info("Connecting to game server | url={} attempt={}", self.url, self.attempts)

        try:
            async with self._connect(self.url) as ws:
                self._ws = ws
                self._state = ConnectionState.CONNECTED
                logger.success("Game server connected | url={}", self.url)

                ended_by = await RelayLoop(ws, self.queue, self.on_line).run()
                logger.warning("Game server connection closed | ended_by={}", ended_by)

            self._state = ConnectionState.DISCONNECTED

        except asyncio.CancelledError:
            raise

        except Exception as e:
            self._state = ConnectionState.FAILED
            logger.error("Game server connection error | url={} err={}", self.url, e)

        finally:
            self._ws = None

    # ==========================================================
    # Runtime state
    # ==========================================================

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._running
