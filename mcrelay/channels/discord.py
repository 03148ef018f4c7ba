"""Discord channel implementation using Gateway WebSocket + REST API."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Optional

import httpx
import websockets
from loguru import logger

from mcrelay.bus.events import OutboundMessage
from mcrelay.channels.base import BaseChannel
from mcrelay.config.schema import DiscordConfig
from mcrelay.relay.bridge import RelayHandle
from mcrelay.server.api import ServerApiClient
from mcrelay.utils.helpers import truncate


MESSAGE_LIMIT = 2000
RECONNECT_DELAY = 5

# Interaction types / callback types
APPLICATION_COMMAND = 2
CHANNEL_MESSAGE_WITH_SOURCE = 4

SLASH_COMMANDS = [
    {
        "name": "list",
        "description": "Show players currently online",
        "type": 1,
    },
]


class DiscordChannel(BaseChannel):
    """
    Discord Gateway + REST dual-stack channel implementation.

    Architecture:
        - Gateway WebSocket: MESSAGE_CREATE / INTERACTION_CREATE events
        - REST API: channel messages, slash command registration & replies
        - Heartbeat task: keepalive
        - Auto reconnect loop
    """

    name = "discord"

    def __init__(
        self,
        config: DiscordConfig,
        token: str,
        chat_id: str | int,
        relay: Optional[RelayHandle] = None,
        server_api: Optional[ServerApiClient] = None,
    ):
        super().__init__(config, chat_id, relay)

        self.config: DiscordConfig = config
        self.token = token
        self.server_api = server_api

        self._ws: Optional[Any] = None
        self._seq: Optional[int] = None
        self._user_id: Optional[str] = None
        self._application_id: Optional[str] = None

        self._http: Optional[httpx.AsyncClient] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._forward_tasks: set[asyncio.Task] = set()

    # ==========================================================
    # Lifecycle
    # ==========================================================

    async def start(self) -> None:
        self._running = True
        self._http = httpx.AsyncClient(timeout=30.0)

        logger.info("Discord channel starting | channel={}", self.chat_id)

        while self._running:
            try:
                await self._connect_gateway()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.warning("Gateway error: {}", e)

            if self._running:
                logger.info("Reconnecting to Discord in {}s...", RECONNECT_DELAY)
                await asyncio.sleep(RECONNECT_DELAY)

        logger.info("Discord channel stopped")

    async def stop(self) -> None:
        self._running = False

        self._stop_heartbeat()

        for task in self._forward_tasks:
            task.cancel()

        if self._ws:
            await self._ws.close()
            self._ws = None

        if self._http:
            await self._http.aclose()
            self._http = None

    # ==========================================================
    # Gateway
    # ==========================================================

    async def _connect_gateway(self) -> None:
        logger.info("Connecting to Discord Gateway...")

        try:
            async with websockets.connect(self.config.gateway_url) as ws:
                self._ws = ws
                self._seq = None

                await self._gateway_loop()
        finally:
            self._stop_heartbeat()
            self._ws = None

    async def _gateway_loop(self) -> None:
        assert self._ws

        async for raw in self._ws:
            try:
                data = json.loads(raw)
            except json.JSONDecodeError:
                logger.warning("Invalid gateway JSON: {}", raw[:200])
                continue

            op = data.get("op")
            event = data.get("t")
            seq = data.get("s")
            payload = data.get("d")

            if seq is not None:
                self._seq = seq

            if op == 10:
                await self._on_hello(payload)
            elif op == 0:
                await self._on_dispatch(event, payload or {})
            elif op == 1:
                await self._send_heartbeat()
            elif op == 7:
                logger.info("Gateway reconnect requested")
                break
            elif op == 9:
                logger.warning("Invalid session")
                break

    async def _on_hello(self, payload: dict) -> None:
        interval_ms = payload.get("heartbeat_interval", 45000)
        self._start_heartbeat(interval_ms / 1000)
        await self._identify()

    async def _identify(self) -> None:
        if not self._ws:
            return

        payload = {
            "op": 2,
            "d": {
                "token": self.token,
                "intents": self.config.intents,
                "properties": {
                    "os": "mcrelay",
                    "browser": "mcrelay",
                    "device": "mcrelay",
                },
            },
        }

        await self._ws.send(json.dumps(payload))

    async def _send_heartbeat(self) -> None:
        if self._ws:
            await self._ws.send(json.dumps({"op": 1, "d": self._seq}))

    def _start_heartbeat(self, interval: float) -> None:
        self._stop_heartbeat()

        async def loop():
            while self._running and self._ws:
                try:
                    await self._send_heartbeat()
                except Exception as e:
                    logger.warning("Heartbeat failed: {}", e)
                    break
                await asyncio.sleep(interval)

        self._heartbeat_task = asyncio.create_task(loop())

    def _stop_heartbeat(self) -> None:
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
            self._heartbeat_task = None

    async def _on_dispatch(self, event: Optional[str], payload: dict) -> None:
        if event == "READY":
            await self._on_ready(payload)
        elif event == "MESSAGE_CREATE":
            await self._handle_message_create(payload)
        elif event == "INTERACTION_CREATE":
            await self._handle_interaction(payload)

    async def _on_ready(self, payload: dict) -> None:
        self._user_id = str((payload.get("user") or {}).get("id", "")) or None
        self._application_id = str((payload.get("application") or {}).get("id", "")) or None

        logger.info("Discord READY | user={} app={}", self._user_id, self._application_id)

        await self._register_commands()

    # ==========================================================
    # Inbound handling
    # ==========================================================

    async def _handle_message_create(self, payload: dict[str, Any]) -> None:
        author = payload.get("author") or {}
        if author.get("bot"):
            return
        if self._user_id and str(author.get("id", "")) == self._user_id:
            return

        channel_id = str(payload.get("channel_id", ""))
        content = payload.get("content") or ""
        username = author.get("username") or ""

        if not content or not username:
            return

        # The relay queue may be full; the gateway loop must keep reading.
        task = asyncio.create_task(
            self.handle_message(author=username, chat_id=channel_id, content=content)
        )
        self._forward_tasks.add(task)
        task.add_done_callback(self._on_forward_done)

    def _on_forward_done(self, task: asyncio.Task) -> None:
        self._forward_tasks.discard(task)

        if task.cancelled():
            return

        err = task.exception()
        if err is not None:
            logger.opt(exception=err).error("Chat message was not forwarded")

    @property
    def pending_forwards(self) -> set[asyncio.Task]:
        """Chat messages still waiting for room in the relay queue."""
        return set(self._forward_tasks)

    # ==========================================================
    # Slash commands
    # ==========================================================

    async def _register_commands(self) -> None:
        if not self._http or not self._application_id:
            return

        url = f"{self.config.api_base}/applications/{self._application_id}/commands"

        try:
            resp = await self._http.put(url, headers=self._headers(), json=SLASH_COMMANDS)
            resp.raise_for_status()
            logger.info("Slash commands registered | count={}", len(SLASH_COMMANDS))
        except httpx.HTTPError as e:
            logger.warning("Slash command registration failed: {}", e)

    async def _handle_interaction(self, payload: dict[str, Any]) -> None:
        if payload.get("type") != APPLICATION_COMMAND:
            return

        name = (payload.get("data") or {}).get("name")
        if name != "list":
            logger.debug("Unknown slash command: {}", name)
            return

        text = await self._player_list()
        await self._reply_interaction(payload, text)

    async def _player_list(self) -> str:
        if self.server_api is None:
            return "Server API is not configured."

        try:
            text = await self.server_api.list_players()
        except httpx.HTTPError as e:
            logger.warning("Player list request failed: {}", e)
            return "Could not reach the game server."

        logger.info("List response: {}", truncate(text, 200))
        return text or "(empty response)"

    async def _reply_interaction(self, payload: dict[str, Any], text: str) -> None:
        if not self._http:
            return

        url = f"{self.config.api_base}/interactions/{payload.get('id')}/{payload.get('token')}/callback"
        body = {
            "type": CHANNEL_MESSAGE_WITH_SOURCE,
            "data": {"content": truncate(text, MESSAGE_LIMIT)},
        }

        try:
            resp = await self._http.post(url, json=body)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("Interaction reply failed: {}", e)

    # ==========================================================
    # Outbound
    # ==========================================================

    async def send(self, msg: OutboundMessage) -> None:
        if not self._http:
            logger.warning("Discord HTTP client not ready")
            return

        url = f"{self.config.api_base}/channels/{msg.chat_id}/messages"
        payload = {"content": truncate(msg.content, MESSAGE_LIMIT)}

        resp = await self._http.post(url, headers=self._headers(), json=payload)
        resp.raise_for_status()

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bot {self.token}"}
