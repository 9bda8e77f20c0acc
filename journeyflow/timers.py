"""Per-session background timers: autosave, session timeout, metrics heartbeat."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Dict, List, Optional

from .actions import Action, AutosaveTick, MetricsTick, SessionTimeout
from .clock import Clock, TimerHandle
from .config import JourneyConfig

logger = logging.getLogger(__name__)

AUTOSAVE = "autosave"
SESSION_TIMEOUT = "session_timeout"
METRICS = "metrics"


class SessionTimerManager:
    """Own the three timers of one live session.

    Timers never read journey state. Each tick is posted as an action to
    ``post``, which is expected to be the engine's serialized dispatch.
    """

    def __init__(
        self,
        clock: Clock,
        post: Callable[[Action], object],
        config: Optional[JourneyConfig] = None,
    ) -> None:
        self.clock = clock
        self.post = post
        self.config = config or JourneyConfig()
        self.session_id: Optional[str] = None
        self._handles: Dict[str, TimerHandle] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    def arm(self, session_id: str) -> None:
        """Cancel whatever is armed, then arm timers for ``session_id``."""
        with self._lock:
            self.cancel_all()
            self.session_id = session_id
            if self.config.autosave.enabled:
                self._schedule(AUTOSAVE, self.config.autosave.interval, session_id)
            if self.config.session.timeout:
                self._schedule(SESSION_TIMEOUT, self.config.session.timeout, session_id)
            if self.config.metrics.enabled:
                self._schedule(METRICS, self.config.metrics.interval, session_id)
            logger.debug(f"Armed timers {sorted(self._handles)} for session_id={session_id}")

    def cancel_all(self) -> None:
        with self._lock:
            for handle in self._handles.values():
                handle.cancel()
            if self._handles:
                logger.debug(f"Cancelled timers for session_id={self.session_id}")
            self._handles.clear()
            self.session_id = None

    def touch(self) -> None:
        """Restart the inactivity timeout after user activity."""
        with self._lock:
            if self.session_id is None or SESSION_TIMEOUT not in self._handles:
                return
            self._handles.pop(SESSION_TIMEOUT).cancel()
            self._schedule(SESSION_TIMEOUT, self.config.session.timeout, self.session_id)

    def active_timers(self) -> List[str]:
        with self._lock:
            return sorted(name for name, h in self._handles.items() if not h.cancelled())

    # ------------------------------------------------------------------
    def _schedule(self, name: str, delay: float, session_id: str) -> None:
        self._handles[name] = self.clock.call_later(
            delay, lambda: self._fire(name, session_id)
        )

    def _fire(self, name: str, session_id: str) -> None:
        with self._lock:
            if session_id != self.session_id:
                return
            if name == AUTOSAVE:
                self._schedule(AUTOSAVE, self.config.autosave.interval, session_id)
                action: Action = AutosaveTick(session_id=session_id)
            elif name == METRICS:
                self._schedule(METRICS, self.config.metrics.interval, session_id)
                action = MetricsTick(session_id=session_id)
            else:
                self._handles.pop(SESSION_TIMEOUT, None)
                action = SessionTimeout(session_id=session_id)
        try:
            self.post(action)
        except Exception:
            logger.exception(f"Timer {name} failed for session_id={session_id}")
