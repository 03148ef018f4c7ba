"""Base channel abstraction for chat platform integrations."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from loguru import logger

from mcrelay.bus.events import ChatEvent, OutboundMessage
from mcrelay.errors import RelayStoppedError
from mcrelay.relay.bridge import RelayHandle


class BaseChannel(ABC):
    """
    Base abstraction for the chat side of the bridge.

    A channel watches exactly one chat room. Human messages posted there are
    turned into ChatEvents and queued on the relay; classified server lines
    come back through send().
    """

    #: Channel unique identifier
    name: str = "base"

    def __init__(self, config: Any, chat_id: str | int, relay: Optional[RelayHandle] = None):
        self.config = config
        self.chat_id = str(chat_id)
        self.relay = relay
        self._running: bool = False

    # =============================
    # Lifecycle
    # =============================

    @abstractmethod
    async def start(self) -> None:
        """
        Start channel runtime.

        This should:
            1. Establish network connections
            2. Start receiving messages
            3. Block until stopped
        """
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop channel runtime and release network resources."""
        ...

    # =============================
    # Outbound (server -> chat)
    # =============================

    @abstractmethod
    async def send(self, msg: OutboundMessage) -> None:
        """
        Deliver a message to the platform.

        Contract:
            - Single attempt, no retry
            - Raise on failure; the relay logs and drops
        """
        ...

    # =============================
    # Inbound (chat -> server)
    # =============================

    async def handle_message(self, author: str, chat_id: str, content: str) -> None:
        """
        Forward a human message from the watched room to the game server.

        Raises:
            RelayStoppedError: the relay task has died.
        """
        if str(chat_id) != self.chat_id:
            return

        if self.relay is None:
            logger.warning("No relay attached | channel={}, dropping message", self.name)
            return

        event = ChatEvent(author=author, body=content)
        logger.debug("Chat -> server | author={} len={}", author, len(content))

        try:
            await self.relay.send_chat(event)
        except RelayStoppedError:
            logger.exception("Relay is down, cannot forward chat message")
            raise

    # =============================
    # Runtime state
    # =============================

    @property
    def is_running(self) -> bool:
        return self._running
