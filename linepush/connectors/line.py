"""LINE Messaging API connector: push delivery."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from linepush.connectors.base import ServiceConnector, healthy, unhealthy
from linepush.errors import DeliveryError

logger = logging.getLogger(__name__)

PUSH_PATH = "/v2/bot/message/push"
BOT_INFO_PATH = "/v2/bot/info"


class LineClient(ServiceConnector):
    def __init__(
        self,
        channel_access_token: str,
        url: str = "https://api.line.me",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._token = channel_access_token
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _new_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._url,
            timeout=self._timeout,
            headers={"Authorization": f"Bearer {self._token}"},
            transport=self._transport,
        )

    async def connect(self) -> None:
        self._client = self._new_client()

    async def disconnect(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if not self._client:
            self._client = self._new_client()
        return self._client

    async def push(self, to: str, messages: list[dict[str, Any]]) -> None:
        """Push wire messages to one user. Raises DeliveryError on any failure."""
        client = self._get_client()
        try:
            resp = await client.post(PUSH_PATH, json={"to": to, "messages": messages})
        except httpx.HTTPError as e:
            logger.warning("LINE push failed: %s", type(e).__name__)
            raise DeliveryError("LINE API unreachable") from e

        if resp.status_code >= 400:
            logger.warning("LINE push rejected: HTTP %d for %d message(s)", resp.status_code, len(messages))
            raise DeliveryError(f"LINE API rejected push with HTTP {resp.status_code}")
        logger.info("Pushed %d message(s) to LINE", len(messages))

    async def health_check(self) -> dict:
        if not self._token:
            return {"status": "disabled"}
        try:
            resp = await self._get_client().get(BOT_INFO_PATH)
            if resp.status_code >= 400:
                return unhealthy(f"HTTP {resp.status_code}")
            return healthy(code=resp.status_code)
        except Exception as e:
            return unhealthy(e)

    def name(self) -> str:
        return "line"
