"""HTTP client for the game server's management API."""

from __future__ import annotations

from typing import Optional

import httpx
from loguru import logger


DEFAULT_TIMEOUT = 10.0


class ServerApiClient:
    """
    Thin async wrapper around the server API (the same base URL the chat
    stream is derived from).
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def list_players(self) -> str:
        """
        Fetch the server's player list as plain text.

        Raises:
            httpx.HTTPError: request failed or returned a non-2xx status.
        """
        url = f"{self.base_url}/list"
        resp = await self._http.get(url)
        resp.raise_for_status()

        logger.debug("Player list fetched | status={} len={}", resp.status_code, len(resp.text))
        return resp.text

    async def aclose(self) -> None:
        await self._http.aclose()
