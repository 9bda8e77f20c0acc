"""Injectable time sources with schedule/cancel primitives."""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    """Cancellable handle returned by :meth:`Clock.call_later`."""

    def cancel(self) -> None:
        """Prevent the callback from running."""

    def cancelled(self) -> bool:
        """Return ``True`` once cancelled."""


class Clock(Protocol):
    """Time provider used by the engine and its timers."""

    def now(self) -> datetime:
        """Return the current aware UTC time."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` after ``delay`` seconds."""


def _running_loop() -> Optional[asyncio.AbstractEventLoop]:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


class LoopTimerHandle:
    """Timer on an asyncio loop that may be armed and cancelled from any thread.

    A handle created before any loop is known stays pending until
    :meth:`attach` is called.
    """

    def __init__(self, delay: float, callback: Callable[[], None]) -> None:
        self.delay = delay
        self.callback = callback
        self._lock = threading.Lock()
        self._cancelled = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._handle: Optional[asyncio.TimerHandle] = None

    def attach(self, loop: asyncio.AbstractEventLoop) -> None:
        with self._lock:
            if self._cancelled or self._loop is not None:
                return
            if loop.is_closed():
                logger.warning(f"Event loop is closed; timer of {self.delay:g}s not armed")
                return
            self._loop = loop
        if _running_loop() is loop:
            self._schedule()
        else:
            loop.call_soon_threadsafe(self._schedule)

    def _schedule(self) -> None:
        with self._lock:
            if self._cancelled or self._loop is None:
                return
            self._handle = self._loop.call_later(self.delay, self._run)

    def _run(self) -> None:
        with self._lock:
            if self._cancelled:
                return
            self._handle = None
        self.callback()

    def cancel(self) -> None:
        with self._lock:
            self._cancelled = True
            handle, self._handle = self._handle, None
            loop = self._loop
        if handle is None or loop is None:
            return
        if _running_loop() is loop:
            handle.cancel()
        elif not loop.is_closed():
            loop.call_soon_threadsafe(handle.cancel)

    def cancelled(self) -> bool:
        with self._lock:
            return self._cancelled


class SystemClock:
    """Wall-clock time with scheduling on an asyncio event loop.

    Without a bound loop, timers go to the loop running in the calling
    thread. When there is none they are deferred until :meth:`bind`.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop
        self._deferred: List[LoopTimerHandle] = []
        self._lock = threading.Lock()

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        return self._loop

    @property
    def deferred(self) -> int:
        """Number of timers waiting for a loop."""
        with self._lock:
            return sum(1 for handle in self._deferred if not handle.cancelled())

    def bind(self, loop: Optional[asyncio.AbstractEventLoop]) -> None:
        """Schedule on ``loop`` from now on and arm any deferred timers."""
        with self._lock:
            self._loop = loop
            if loop is None:
                return
            deferred, self._deferred = self._deferred, []
        armed = 0
        for handle in deferred:
            if not handle.cancelled():
                handle.attach(loop)
                armed += 1
        if armed:
            logger.debug(f"Armed {armed} deferred timers")

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def call_later(self, delay: float, callback: Callable[[], None]) -> LoopTimerHandle:
        handle = LoopTimerHandle(delay, callback)
        with self._lock:
            loop = self._loop or _running_loop()
            if loop is None:
                self._deferred = [h for h in self._deferred if not h.cancelled()]
                self._deferred.append(handle)
                logger.debug(f"No event loop bound; deferred timer of {delay:g}s")
                return handle
        handle.attach(loop)
        return handle


class ManualTimerHandle:
    def __init__(self, when: datetime, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled


class ManualClock:
    """Deterministic clock for tests; time only moves via :meth:`advance`."""

    def __init__(self, start: Optional[datetime] = None) -> None:
        self._now = start or datetime(2025, 1, 1, tzinfo=timezone.utc)
        self._queue: List[Tuple[datetime, int, ManualTimerHandle]] = []
        self._counter = itertools.count()

    def now(self) -> datetime:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimerHandle:
        handle = ManualTimerHandle(self._now + timedelta(seconds=delay), callback)
        heapq.heappush(self._queue, (handle.when, next(self._counter), handle))
        return handle

    def advance(self, seconds: float) -> int:
        """Move time forward, firing due callbacks in order. Returns the count fired."""
        target = self._now + timedelta(seconds=seconds)
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            when, _, handle = heapq.heappop(self._queue)
            if handle.cancelled():
                continue
            self._now = when
            handle.callback()
            fired += 1
        self._now = target
        return fired

    @property
    def pending(self) -> int:
        """Number of scheduled, not-yet-cancelled callbacks."""
        return sum(1 for _, _, handle in self._queue if not handle.cancelled())
