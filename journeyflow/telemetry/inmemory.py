"""In-memory and logging sinks."""

from __future__ import annotations

import asyncio
import logging
from typing import List, Sequence

from ..contracts import AnalyticsEvent
from .base import BaseTelemetrySink

logger = logging.getLogger(__name__)


class InMemoryTelemetrySink(BaseTelemetrySink):
    """Collect delivered batches in process, for unit tests."""

    def __init__(self) -> None:
        self.batches: List[List[AnalyticsEvent]] = []
        self._lock = asyncio.Lock()

    async def deliver(self, events: Sequence[AnalyticsEvent]) -> bool:
        async with self._lock:
            self.batches.append(list(events))
        return True

    @property
    def events(self) -> List[AnalyticsEvent]:
        return [event for batch in self.batches for event in batch]


class LoggingTelemetrySink(BaseTelemetrySink):
    """Write events to the log instead of shipping them anywhere."""

    def __init__(self, level: int = logging.INFO) -> None:
        self.level = level

    async def deliver(self, events: Sequence[AnalyticsEvent]) -> bool:
        if not events:
            return True
        logger.log(
            self.level,
            f"Analytics events sent: count={len(events)} session_id={events[0].session_id}",
        )
        for event in events:
            logger.debug(f"{event.type.value} - {event.step}: {event.data}")
        return True
