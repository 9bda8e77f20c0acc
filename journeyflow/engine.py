"""Journey engine: serialized dispatch, event emission and session lifecycle."""

from __future__ import annotations

import asyncio
import logging
import threading
import uuid
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Union

from . import actions as act
from .catalog import DEFAULT_CATALOG, StepCatalog
from .clock import Clock, SystemClock
from .config import JourneyConfig
from .contracts import (
    AnalyticsEvent,
    EventType,
    JourneyError,
    JourneyState,
    ProgressReport,
    Severity,
    ValidationResult,
)
from .errors import ConfigError, RecoveryExhaustedError, UnrecoverableError
from .machine import JourneyStateMachine, TransitionOutcome
from .navigation import NavigationResolver
from .persistence import JourneyStore
from .progress import ProgressCalculator
from .recovery import RecoveryDecision, RecoveryTracker
from .telemetry import BaseTelemetrySink, DropoffDetector, TelemetryBuffer, get_sink
from .timers import SessionTimerManager
from .validation import TransitionValidator

logger = logging.getLogger(__name__)

EventHandler = Callable[[AnalyticsEvent], None]
ErrorHandler = Callable[[JourneyError], None]


class JourneyEngine:
    """Caller-facing facade over the journey state machine.

    All mutations go through :meth:`dispatch`, which is serialized with a
    re-entrant lock and returns a private copy of the new state. Timers
    post their ticks through the same method. Analytics events are handed
    to subscribers; the telemetry buffer is subscribed by default and
    delivers on its own asyncio worker.
    """

    def __init__(
        self,
        catalog: Optional[StepCatalog] = None,
        clock: Optional[Clock] = None,
        sink: Optional[BaseTelemetrySink] = None,
        store: Optional[JourneyStore] = None,
        config: Optional[JourneyConfig] = None,
        on_error: Optional[ErrorHandler] = None,
        buffer: Optional[TelemetryBuffer] = None,
    ) -> None:
        self.catalog = catalog or DEFAULT_CATALOG
        self.config = config or JourneyConfig()
        self.clock: Clock = clock or SystemClock()
        self.store = store
        self.on_error = on_error

        self.machine = JourneyStateMachine(self.catalog)
        self.validator = TransitionValidator(self.catalog)
        self.navigator = NavigationResolver(self.catalog, self.validator)
        self.calculator = ProgressCalculator(self.catalog)
        self.recovery = RecoveryTracker(self.config.recovery)
        self.dropoff = DropoffDetector(self.catalog, self.config.performance)
        self.buffer = buffer or TelemetryBuffer.from_config(
            sink or get_sink(config=self.config), self.config.analytics
        )
        self.timers = SessionTimerManager(self.clock, self.dispatch, self.config)

        self._lock = threading.RLock()
        self._state = self.machine.initial_state(now=self.clock.now())
        self._subscribers: List[EventHandler] = [self.buffer.add]
        self._tasks: Set[asyncio.Future] = set()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._bound_clock = False

    # ------------------------------------------------------------------
    # Lifecycle
    async def start(self) -> None:
        """Bind to the running loop and start the telemetry worker.

        Timers armed before this call, for example by a synchronous
        ``Start`` dispatched with no loop, are scheduled here.
        """
        self._loop = asyncio.get_running_loop()
        if isinstance(self.clock, SystemClock) and self.clock.loop is None:
            self.clock.bind(self._loop)
            self._bound_clock = True
        await self.buffer.start()

    async def wait_idle(self) -> None:
        """Wait for background saves and deliver queued telemetry."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self.buffer.flush()
        await self.buffer.drain()

    async def close(self) -> None:
        self.timers.cancel_all()
        await self.wait_idle()
        await self.buffer.stop()
        if self._bound_clock and isinstance(self.clock, SystemClock):
            self.clock.bind(None)
            self._bound_clock = False
        self._loop = None

    # ------------------------------------------------------------------
    # Subscriptions
    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        """Register ``handler`` for analytics events; returns an unsubscribe callable."""
        with self._lock:
            self._subscribers.append(handler)

        def unsubscribe() -> None:
            with self._lock:
                if handler in self._subscribers:
                    self._subscribers.remove(handler)

        return unsubscribe

    def _emit(self, events: List[AnalyticsEvent]) -> None:
        for event in events:
            for handler in list(self._subscribers):
                try:
                    handler(event)
                except Exception:
                    logger.exception(f"Event handler failed for {event.type.value}")

    # ------------------------------------------------------------------
    # Dispatch
    @property
    def state(self) -> JourneyState:
        with self._lock:
            return self._state.model_copy(deep=True)

    def dispatch(self, action: act.Action) -> JourneyState:
        """Apply ``action`` and return a copy of the resulting state.

        Raises :class:`UnrecoverableError` or :class:`RecoveryExhaustedError`
        when a ``Recover`` action is refused. All other rejections leave
        the state unchanged and are only logged.
        """
        with self._lock:
            action = self._prepare(action)
            previous = self._state
            decision = None
            if isinstance(action, act.Recover):
                decision = self._authorize_recovery(previous, action)
            outcome = self.machine.transition(previous, action, self.clock.now())
            self._state = outcome.state
            events = self._events_for(previous, action, outcome, decision)
            try:
                self._after(previous, action, outcome)
            finally:
                self._emit(events)
            return self._state.model_copy(deep=True)

    def _prepare(self, action: act.Action) -> act.Action:
        if isinstance(action, (act.Start, act.Reset)) and not action.session_id:
            return action.model_copy(update={"session_id": uuid.uuid4().hex})
        return action

    def _authorize_recovery(
        self, state: JourneyState, action: act.Recover
    ) -> Optional[RecoveryDecision]:
        error = next((e for e in state.errors if e.id == action.error_id), None)
        if error is None:
            return None
        if not error.is_recoverable:
            logger.error(f"Recovery refused for critical error {error.code} on {error.step}")
            raise UnrecoverableError(error.code, error.step)
        decision = self.recovery.record_attempt(error)
        if not decision.allowed:
            raise RecoveryExhaustedError(
                error.code, decision.attempt, self.recovery.config.max_attempts
            )
        return decision

    def _after(self, previous: JourneyState, action: act.Action, outcome: TransitionOutcome) -> None:
        if not outcome.accepted:
            return
        state = outcome.state
        if isinstance(action, (act.Start, act.Reset)):
            self._begin_session(previous.session_id, state.session_id)
        elif isinstance(action, act.AutosaveTick):
            self._autosave(state)
        elif isinstance(action, act.SessionTimeout):
            logger.info(f"Session timed out: session_id={state.session_id}")
            self.timers.cancel_all()
        elif isinstance(action, act.Fail) and action.error.severity == Severity.CRITICAL:
            logger.error(
                f"Critical error {action.error.code} on step {action.step} "
                f"for session_id={state.session_id}: {action.error.message}"
            )
            if self.on_error is not None:
                self.on_error(action.error)

        if not isinstance(action, act.TICKS) and self.config.session.keep_alive:
            self.timers.touch()

    def _begin_session(self, old_session: str, new_session: str) -> None:
        self.timers.cancel_all()
        if old_session and old_session != new_session:
            flushed = self.buffer.flush_session(old_session)
            logger.debug(f"Flushed {flushed} events for finished session_id={old_session}")
        self.recovery.reset()
        self.timers.arm(new_session)

    # ------------------------------------------------------------------
    # Event mapping
    def _event(
        self, type_: EventType, state: JourneyState, step: str, **data: Any
    ) -> AnalyticsEvent:
        return AnalyticsEvent(
            type=type_,
            step=step,
            session_id=state.session_id,
            timestamp=self.clock.now(),
            user_id=state.user_id,
            data=data,
        )

    def _events_for(
        self,
        previous: JourneyState,
        action: act.Action,
        outcome: TransitionOutcome,
        decision: Optional[RecoveryDecision],
    ) -> List[AnalyticsEvent]:
        state = outcome.state
        if isinstance(action, act.Navigate):
            events = [
                self._event(
                    EventType.NAVIGATION_ATTEMPTED,
                    previous,
                    previous.current_step,
                    to_step=action.step,
                    force=action.force,
                    success=outcome.accepted,
                )
            ]
            if outcome.accepted:
                events.append(self._event(EventType.STEP_STARTED, state, action.step))
            elif action.step in self.catalog:
                result = self.validator.validate(previous.current_step, action.step, previous)
                events.append(
                    self._event(
                        EventType.VALIDATION_FAILED,
                        previous,
                        action.step,
                        reason=outcome.reason,
                        missing_data=result.missing_data,
                        blocking_errors=result.blocking_errors,
                    )
                )
            return events

        if not outcome.accepted:
            return []

        if isinstance(action, act.Start):
            return [self._event(EventType.STEP_STARTED, state, state.current_step)]
        if isinstance(action, act.Complete):
            record = state.step_progress[action.step]
            return [
                self._event(
                    EventType.STEP_COMPLETED, state, action.step, duration=record.duration
                )
            ]
        if isinstance(action, act.Fail):
            error = action.error
            return [
                self._event(
                    EventType.STEP_FAILED,
                    state,
                    action.step,
                    attempts=state.step_progress[action.step].attempts,
                ),
                self._event(
                    EventType.ERROR_OCCURRED,
                    state,
                    action.step,
                    error_id=error.id,
                    code=error.code,
                    severity=error.severity.value,
                    recoverable=error.is_recoverable,
                ),
            ]
        if isinstance(action, act.Skip):
            return [
                self._event(
                    EventType.STEP_SKIPPED, state, action.step, conditions=list(action.conditions)
                )
            ]
        if isinstance(action, act.PersistData):
            return [self._event(EventType.DATA_PERSISTED, state, state.current_step, key=action.key)]
        if isinstance(action, act.Recover):
            data: Dict[str, Any] = {"error_id": action.error_id, "strategy": action.strategy}
            if decision is not None:
                data.update(code=decision.code, attempt=decision.attempt, delay=decision.delay)
            return [self._event(EventType.RECOVERY_ATTEMPTED, state, state.current_step, **data)]
        if isinstance(action, act.MeasurePerformance):
            return [
                self._event(
                    EventType.PERFORMANCE_MEASURED,
                    state,
                    action.step or state.current_step,
                    metric=action.metric,
                    value=action.value,
                )
            ]
        if isinstance(action, act.MetricsTick):
            return [self._metrics_event(state)]
        if isinstance(action, act.SessionTimeout) and state is not previous:
            error = state.errors[-1]
            return [
                self._event(
                    EventType.ERROR_OCCURRED,
                    state,
                    state.current_step,
                    error_id=error.id,
                    code=error.code,
                    severity=error.severity.value,
                    recoverable=error.is_recoverable,
                )
            ]
        return []

    def _metrics_event(self, state: JourneyState) -> AnalyticsEvent:
        now = self.clock.now()
        dropoff = self.dropoff.analyze(state, now)
        for point in dropoff:
            if point.risk == "high":
                logger.warning(
                    f"High dropoff risk at {point.step} for session_id={state.session_id}: "
                    f"{point.reason}"
                )
        return self._event(
            EventType.PERFORMANCE_MEASURED,
            state,
            state.current_step,
            metric="heartbeat",
            progress=self.calculator.report(state).model_dump(),
            performance=self.calculator.performance_metrics(state, now),
            dropoff=[point.model_dump() for point in dropoff],
            budget_violations=[
                violation.model_dump()
                for violation in self.dropoff.check_performance_budgets(state)
            ],
        )

    # ------------------------------------------------------------------
    # Background work
    def _spawn(self, coro: Awaitable[Any], label: str) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None
        if loop is not None:
            task: asyncio.Future = loop.create_task(coro)
        elif self._loop is not None and self._loop.is_running():
            task = asyncio.wrap_future(
                asyncio.run_coroutine_threadsafe(coro, self._loop), loop=self._loop
            )
        else:
            logger.warning(f"No event loop available for {label}; skipped")
            coro.close()
            return
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._finish_task(t, label))

    def _finish_task(self, task: asyncio.Future, label: str) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"{label} failed: {exc!r}")

    def _autosave(self, state: JourneyState) -> None:
        if self.store is None:
            return
        snapshot = state.to_snapshot()
        self._spawn(
            self.store.save_snapshot(state.session_id, snapshot),
            f"Autosave for session_id={state.session_id}",
        )

    # ------------------------------------------------------------------
    # Queries
    def validate(
        self, from_step: str, to_step: str, state: Optional[JourneyState] = None
    ) -> ValidationResult:
        return self.validator.validate(from_step, to_step, state or self.state)

    def progress(self, state: Optional[JourneyState] = None) -> ProgressReport:
        return self.calculator.report(state or self.state)

    def next_allowed_step(self, state: Optional[JourneyState] = None) -> Optional[str]:
        state = state or self.state
        return self.navigator.next_allowed_step(state.current_step, state)

    def estimated_completion_time(self, state: Optional[JourneyState] = None) -> datetime:
        return self.calculator.estimated_completion_time(state or self.state, self.clock.now())

    def performance_metrics(self, state: Optional[JourneyState] = None) -> Dict[str, Any]:
        return self.calculator.performance_metrics(state or self.state, self.clock.now())

    # ------------------------------------------------------------------
    # Snapshots
    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            return self._state.to_snapshot()

    def restore(self, snapshot: Union[Dict[str, Any], JourneyState]) -> JourneyState:
        """Replace the live state with ``snapshot`` without replaying actions."""
        state = (
            snapshot.model_copy(deep=True)
            if isinstance(snapshot, JourneyState)
            else JourneyState.from_snapshot(snapshot)
        )
        with self._lock:
            previous = self._state
            self._state = state
            if state.session_id and not state.expired:
                self._begin_session(previous.session_id, state.session_id)
            else:
                self.timers.cancel_all()
                self.recovery.reset()
            logger.info(f"Restored session_id={state.session_id} at step {state.current_step}")
            return state.model_copy(deep=True)

    async def save(self) -> int:
        if self.store is None:
            raise ConfigError("No journey store configured")
        state = self.state
        version = await self.store.save_snapshot(state.session_id, state.to_snapshot())
        logger.debug(f"Saved session_id={state.session_id} as version {version}")
        return version

    async def resume(self, session_id: str) -> Optional[JourneyState]:
        """Load the latest stored snapshot of ``session_id`` and restore it."""
        if self.store is None:
            raise ConfigError("No journey store configured")
        snapshot = await self.store.load_snapshot(session_id)
        if snapshot is None:
            logger.info(f"No stored snapshot for session_id={session_id}")
            return None
        return self.restore(snapshot)
