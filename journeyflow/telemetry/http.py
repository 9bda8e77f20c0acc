"""HTTP sink posting event batches as JSON."""

from __future__ import annotations

import logging
from typing import Dict, Optional, Sequence

import httpx

from ..contracts import AnalyticsEvent
from .base import BaseTelemetrySink

logger = logging.getLogger(__name__)


class HttpTelemetrySink(BaseTelemetrySink):
    """POST batches to a collector endpoint."""

    def __init__(
        self,
        url: str,
        timeout: float = 5.0,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.url = url
        self.timeout = timeout
        self.headers = headers or {}
        self._client = client
        self._owns_client = client is None

    async def connect(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, headers=self.headers)

    async def disconnect(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def deliver(self, events: Sequence[AnalyticsEvent]) -> bool:
        if self._client is None:
            await self.connect()
        body = {"events": [event.model_dump(mode="json") for event in events]}
        try:
            response = await self._client.post(self.url, json=body)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning(f"Telemetry delivery to {self.url} failed: {exc}")
            return False
        return True
