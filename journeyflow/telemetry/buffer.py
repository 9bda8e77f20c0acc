"""Asynchronous buffering and delivery of analytics events."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import deque
from typing import Deque, List, Optional

from ..config import AnalyticsConfig
from ..contracts import AnalyticsEvent
from ..utils.retry import schedule_retry
from .base import BaseTelemetrySink

logger = logging.getLogger(__name__)


class TelemetryBuffer:
    """Bounded event buffer with a fire-and-forget delivery worker.

    In real-time mode every event is handed to the worker on arrival; in
    batched mode events accumulate until ``batch_size`` and go out as one
    batch. When pending events reach ``max_buffer_size`` they are all
    flushed at once; events are never dropped for lack of room. Delivery
    failures are retried with backoff and, once retries run out, logged
    and dropped. Nothing here raises into the caller.

    Delivery needs the worker from :meth:`start`. Batches queued before it
    runs are held in memory, and a warning is logged once.
    """

    def __init__(
        self,
        sink: BaseTelemetrySink,
        real_time: bool = True,
        batch_size: int = 20,
        max_buffer_size: int = 100,
        max_retries: int = 3,
        retry_base: float = 1.5,
        retry_jitter: float = 0.5,
        enabled: bool = True,
    ) -> None:
        self.sink = sink
        self.real_time = real_time
        self.batch_size = max(1, batch_size)
        self.max_buffer_size = max(1, max_buffer_size)
        self.max_retries = max_retries
        self.retry_base = retry_base
        self.retry_jitter = retry_jitter
        self.enabled = enabled

        self.delivered = 0
        self.dropped = 0
        self._pending: List[AnalyticsEvent] = []
        self._outbox: Deque[List[AnalyticsEvent]] = deque()
        self._lock = threading.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._wakeup: Optional[asyncio.Event] = None
        self._worker: Optional[asyncio.Task] = None
        self._stopping = False
        self._warned_idle = False

    @classmethod
    def from_config(cls, sink: BaseTelemetrySink, config: AnalyticsConfig) -> "TelemetryBuffer":
        return cls(
            sink,
            real_time=config.real_time,
            batch_size=config.batch_size,
            max_buffer_size=config.buffer_size,
            max_retries=config.max_retries,
            retry_base=config.retry_base,
            retry_jitter=config.retry_jitter,
            enabled=config.enabled,
        )

    # ------------------------------------------------------------------
    # Producer side (synchronous, never blocks on I/O)
    def add(self, event: AnalyticsEvent) -> None:
        if not self.enabled:
            return
        with self._lock:
            if self.real_time:
                self._enqueue([event])
                return
            self._pending.append(event)
            if len(self._pending) >= self.batch_size:
                self._flush_locked()
            elif len(self._pending) >= self.max_buffer_size:
                logger.warning(
                    f"Telemetry buffer overflow ({self.max_buffer_size}); forcing flush"
                )
                self._flush_locked()

    __call__ = add

    def flush(self, session_id: Optional[str] = None) -> int:
        """Hand pending events to the worker, optionally only one session's."""
        with self._lock:
            return self._flush_locked(session_id)

    def flush_session(self, session_id: str) -> int:
        return self.flush(session_id)

    def discard_session(self, session_id: str) -> int:
        """Drop pending events of ``session_id`` without delivering them."""
        with self._lock:
            kept = [e for e in self._pending if e.session_id != session_id]
            discarded = len(self._pending) - len(kept)
            self._pending = kept
        return discarded

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def queued_count(self) -> int:
        with self._lock:
            return sum(len(batch) for batch in self._outbox)

    def _flush_locked(self, session_id: Optional[str] = None) -> int:
        if session_id is None:
            batch, self._pending = self._pending, []
        else:
            batch = [e for e in self._pending if e.session_id == session_id]
            self._pending = [e for e in self._pending if e.session_id != session_id]
        if batch:
            self._enqueue(batch)
        return len(batch)

    def _enqueue(self, batch: List[AnalyticsEvent]) -> None:
        self._outbox.append(batch)
        if self._loop is not None and self._wakeup is not None:
            self._loop.call_soon_threadsafe(self._wakeup.set)
        elif not self._warned_idle:
            self._warned_idle = True
            logger.warning(
                "Telemetry queued with no delivery worker; call start() to deliver it"
            )

    # ------------------------------------------------------------------
    # Worker side
    async def start(self) -> None:
        """Start the background delivery worker on the running loop."""
        if self._worker is not None and not self._worker.done():
            return
        await self.sink.connect()
        self._loop = asyncio.get_running_loop()
        self._wakeup = asyncio.Event()
        self._worker = self._loop.create_task(self._run())
        self._warned_idle = False
        if self._outbox:
            self._wakeup.set()

    async def stop(self) -> None:
        """Flush everything, deliver it, and stop the worker."""
        self.flush()
        if self._worker is not None:
            self._stopping = True
            if self._wakeup is not None:
                self._wakeup.set()
            await self._worker
            self._worker = None
            self._stopping = False
        await self.drain()
        self._loop = None
        self._wakeup = None
        await self.sink.disconnect()

    async def drain(self) -> None:
        """Deliver everything currently queued, in the calling task."""
        while True:
            with self._lock:
                if not self._outbox:
                    return
                batch = self._outbox.popleft()
            await self._deliver(batch)

    async def _run(self) -> None:
        assert self._wakeup is not None
        while True:
            await self._wakeup.wait()
            self._wakeup.clear()
            await self.drain()
            if self._stopping:
                return

    async def _deliver(self, batch: List[AnalyticsEvent]) -> bool:
        for attempt in range(self.max_retries + 1):
            try:
                ok = await self.sink.deliver(batch)
            except Exception as exc:
                logger.warning(f"Telemetry sink raised {exc!r} on attempt {attempt + 1}")
                ok = False
            if ok:
                self.delivered += len(batch)
                return True
            if attempt < self.max_retries:
                await schedule_retry(attempt + 1, base=self.retry_base, jitter=self.retry_jitter)
        self.dropped += len(batch)
        logger.error(
            f"Dropped {len(batch)} telemetry events for session_id={batch[0].session_id} "
            f"after {self.max_retries + 1} attempts"
        )
        return False
