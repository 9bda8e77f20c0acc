"""Redis sink pushing events onto a list."""

from __future__ import annotations

from typing import Any, Optional, Sequence

try:
    import redis.asyncio as redis
except ImportError:
    redis = None

from ..contracts import AnalyticsEvent
from .base import BaseTelemetrySink


class RedisTelemetrySink(BaseTelemetrySink):
    """Redis-based sink for cross-process event collection."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        key: str = "journeyflow:events",
    ) -> None:
        if redis is None:
            raise ImportError("redis package is required for RedisTelemetrySink")

        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.key = key
        self._redis: Optional[Any] = None

    async def connect(self) -> None:
        """Connect to Redis."""
        self._redis = redis.Redis(
            host=self.host,
            port=self.port,
            db=self.db,
            password=self.password,
            decode_responses=True,
        )
        await self._redis.ping()

    async def disconnect(self) -> None:
        """Disconnect from Redis."""
        if self._redis:
            await self._redis.aclose()
            self._redis = None

    async def deliver(self, events: Sequence[AnalyticsEvent]) -> bool:
        """Push each event as JSON onto the configured list."""
        if not self._redis:
            await self.connect()
        if events:
            await self._redis.lpush(self.key, *(event.model_dump_json() for event in events))
        return True
