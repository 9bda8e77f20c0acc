"""Base sink interface for journeyflow telemetry."""

from __future__ import annotations

import abc
from typing import Sequence

from ..contracts import AnalyticsEvent


class BaseTelemetrySink(metaclass=abc.ABCMeta):
    """Abstract destination for batches of analytics events."""

    async def connect(self) -> None:
        """Open connection to the backend (no-op by default)."""
        pass

    async def disconnect(self) -> None:
        """Close connection to the backend (no-op by default)."""
        pass

    @abc.abstractmethod
    async def deliver(self, events: Sequence[AnalyticsEvent]) -> bool:
        """Send a batch of events. Return ``False`` if delivery failed."""
        raise NotImplementedError
