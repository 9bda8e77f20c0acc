"""Pure journey reducer: ``(state, action, now) -> state``.

The machine never performs I/O and never emits telemetry. Rejected
actions return the input state object unchanged; accepted actions return
a fresh deep copy, so earlier snapshots are never mutated.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional

from . import actions as act
from .catalog import StepCatalog
from .contracts import (
    DATA_NAMESPACES,
    JourneyMetadata,
    JourneyState,
    Severity,
    StepProgressRecord,
    StepStatus,
    SubStepProgress,
    utcnow,
)
from .progress import percent
from .recovery import create_error
from .utils.paths import merge_data, set_path
from .validation import evaluate_guard

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionOutcome:
    """Result of applying one action."""

    state: JourneyState
    accepted: bool
    reason: Optional[str] = None


class JourneyStateMachine:
    """Single authority for producing new journey states."""

    def __init__(self, catalog: StepCatalog) -> None:
        self.catalog = catalog
        self._handlers: Dict[type, Callable[..., TransitionOutcome]] = {
            act.Start: self._start,
            act.Navigate: self._navigate,
            act.Complete: self._complete,
            act.Fail: self._fail,
            act.Skip: self._skip,
            act.UpdateProgress: self._update_progress,
            act.PersistData: self._persist_data,
            act.Recover: self._recover,
            act.Reset: self._reset,
            act.MeasurePerformance: self._measure_performance,
            act.RecordApiCall: self._record_api_call,
            act.AutosaveTick: self._tick,
            act.MetricsTick: self._tick,
            act.SessionTimeout: self._session_timeout,
        }

    def initial_state(self, session_id: str = "", now: Optional[datetime] = None) -> JourneyState:
        now = now or utcnow()
        return JourneyState(
            current_step=self.catalog.first.id,
            session_id=session_id,
            started_at=now,
            last_activity_at=now,
        )

    def apply(self, state: JourneyState, action: act.Action, now: Optional[datetime] = None) -> JourneyState:
        return self.transition(state, action, now).state

    def transition(
        self, state: JourneyState, action: act.Action, now: Optional[datetime] = None
    ) -> TransitionOutcome:
        handler = self._handlers.get(type(action))
        if handler is None:
            return self._reject(state, f"unsupported action {type(action).__name__}")
        stamp = now or utcnow()
        if stamp < state.last_activity_at:
            stamp = state.last_activity_at
        return handler(state, action, stamp)

    # ------------------------------------------------------------------
    @staticmethod
    def _reject(state: JourneyState, reason: str) -> TransitionOutcome:
        logger.debug(f"Rejected action for session_id={state.session_id}: {reason}")
        return TransitionOutcome(state=state, accepted=False, reason=reason)

    @staticmethod
    def _accept(state: JourneyState, now: datetime) -> TransitionOutcome:
        state.last_activity_at = now
        return TransitionOutcome(state=state, accepted=True)

    def _unknown(self, state: JourneyState, step: str) -> Optional[TransitionOutcome]:
        if step not in self.catalog:
            return self._reject(state, f"unknown step {step}")
        return None

    @staticmethod
    def _begin(record: StepProgressRecord, now: datetime) -> None:
        if record.started_at is None:
            record.started_at = now
        if record.status == StepStatus.NOT_STARTED:
            record.status = StepStatus.IN_PROGRESS

    @staticmethod
    def _finish(record: StepProgressRecord, now: datetime) -> None:
        record.status = StepStatus.COMPLETED
        record.completed_at = now
        record.progress = 100
        record.duration = (
            (now - record.started_at).total_seconds() if record.started_at else 0.0
        )

    # ------------------------------------------------------------------
    def _start(self, state: JourneyState, action: act.Start, now: datetime) -> TransitionOutcome:
        new = self.initial_state(session_id=action.session_id or state.session_id, now=now)
        new.persisted_data = state.model_copy(deep=True).persisted_data
        for namespace in DATA_NAMESPACES:
            new.persisted_data.setdefault(namespace, {})
        if action.user_id is not None:
            set_path(new.persisted_data, "auth.user_id", action.user_id)
        new.metadata = JourneyMetadata(client=action.client) if action.client else JourneyMetadata()
        record = StepProgressRecord()
        self._begin(record, now)
        new.step_progress[new.current_step] = record
        return self._accept(new, now)

    def _navigate(self, state: JourneyState, action: act.Navigate, now: datetime) -> TransitionOutcome:
        rejected = self._unknown(state, action.step)
        if rejected:
            return rejected
        if not action.force:
            guard = self.catalog.guard_for(state.current_step, action.step)
            if guard is not None and not evaluate_guard(guard, state):
                logger.warning(
                    f"Navigation blocked by guard from={state.current_step} "
                    f"to={action.step}: {guard.error_message}"
                )
                return self._reject(state, guard.error_message)
            if state.critical_errors_for(state.current_step) and self.catalog.moves_forward(
                state.current_step, action.step
            ):
                logger.warning(
                    f"Navigation blocked by critical error on {state.current_step} "
                    f"to={action.step}"
                )
                return self._reject(
                    state, f"step {state.current_step} has an unresolved critical error"
                )
        new = state.model_copy(deep=True)
        new.current_step = action.step
        record = new.step_progress.setdefault(action.step, StepProgressRecord())
        self._begin(record, now)
        return self._accept(new, now)

    def _complete(self, state: JourneyState, action: act.Complete, now: datetime) -> TransitionOutcome:
        rejected = self._unknown(state, action.step)
        if rejected:
            return rejected
        if state.critical_errors_for(action.step):
            return self._reject(state, f"step {action.step} has an unresolved critical error")
        new = state.model_copy(deep=True)
        if action.step not in new.completed_steps:
            new.completed_steps.append(action.step)
        record = new.step_progress.setdefault(action.step, StepProgressRecord())
        self._finish(record, now)
        if action.data:
            merge_data(new.persisted_data, action.data)
        return self._accept(new, now)

    def _fail(self, state: JourneyState, action: act.Fail, now: datetime) -> TransitionOutcome:
        rejected = self._unknown(state, action.step)
        if rejected:
            return rejected
        new = state.model_copy(deep=True)
        record = new.step_progress.setdefault(action.step, StepProgressRecord())
        if record.started_at is None:
            record.started_at = now
        record.status = StepStatus.FAILED
        record.attempts += 1
        new.errors.append(action.error.model_copy(deep=True))
        return self._accept(new, now)

    def _skip(self, state: JourneyState, action: act.Skip, now: datetime) -> TransitionOutcome:
        rejected = self._unknown(state, action.step)
        if rejected:
            return rejected
        if not self.catalog.get(action.step).can_skip:
            return self._reject(state, f"step {action.step} cannot be skipped")
        new = state.model_copy(deep=True)
        if action.step not in new.completed_steps:
            new.completed_steps.append(action.step)
        record = new.step_progress.setdefault(action.step, StepProgressRecord())
        record.status = StepStatus.SKIPPED
        record.completed_at = now
        record.duration = 0.0
        return self._accept(new, now)

    def _update_progress(
        self, state: JourneyState, action: act.UpdateProgress, now: datetime
    ) -> TransitionOutcome:
        rejected = self._unknown(state, action.step)
        if rejected:
            return rejected
        if not 0 <= action.progress <= 100:
            return self._reject(state, f"progress {action.progress} outside 0-100")
        new = state.model_copy(deep=True)
        record = new.step_progress.setdefault(action.step, StepProgressRecord())
        self._begin(record, now)
        if action.sub_step is not None:
            sub = next((s for s in record.sub_steps if s.name == action.sub_step), None)
            if sub is None:
                sub = SubStepProgress(name=action.sub_step)
                record.sub_steps.append(sub)
            sub.progress = action.progress
            record.progress = percent(
                sum(s.progress for s in record.sub_steps), 100 * len(record.sub_steps)
            )
        else:
            record.progress = action.progress
        if record.progress == 100:
            self._finish(record, now)
        elif record.status != StepStatus.COMPLETED:
            record.status = StepStatus.IN_PROGRESS
        return self._accept(new, now)

    def _persist_data(self, state: JourneyState, action: act.PersistData, now: datetime) -> TransitionOutcome:
        new = state.model_copy(deep=True)
        data = new.persisted_data
        if "." in action.key:
            set_path(data, action.key, action.value)
        elif action.value is None and action.key in DATA_NAMESPACES:
            data[action.key] = {}
        elif isinstance(action.value, Mapping):
            merge_data(data, {action.key: dict(action.value)})
        else:
            data[action.key] = action.value
        return self._accept(new, now)

    def _recover(self, state: JourneyState, action: act.Recover, now: datetime) -> TransitionOutcome:
        if not any(error.id == action.error_id for error in state.errors):
            return self._reject(state, f"no error with id {action.error_id}")
        new = state.model_copy(deep=True)
        new.errors = [error for error in new.errors if error.id != action.error_id]
        new.recovery_attempts += 1
        return self._accept(new, now)

    def _reset(self, state: JourneyState, action: act.Reset, now: datetime) -> TransitionOutcome:
        new = self.initial_state(session_id=action.session_id or "", now=now)
        if action.keep_data:
            new.persisted_data = state.model_copy(deep=True).persisted_data
        return self._accept(new, now)

    def _measure_performance(
        self, state: JourneyState, action: act.MeasurePerformance, now: datetime
    ) -> TransitionOutcome:
        if action.step is not None:
            rejected = self._unknown(state, action.step)
            if rejected:
                return rejected
        new = state.model_copy(deep=True)
        new.metadata.performance.load_times[action.metric] = action.value
        if action.step is not None:
            record = new.step_progress.setdefault(action.step, StepProgressRecord())
            record.custom_metrics[action.metric] = action.value
        return self._accept(new, now)

    def _record_api_call(
        self, state: JourneyState, action: act.RecordApiCall, now: datetime
    ) -> TransitionOutcome:
        phase = action.phase or self.catalog.get(state.current_step).phase.value
        new = state.model_copy(deep=True)
        counts = new.metadata.performance.api_call_counts
        counts[phase] = counts.get(phase, 0) + 1
        return self._accept(new, now)

    def _tick(self, state: JourneyState, action, now: datetime) -> TransitionOutcome:
        # Ticks carry no journey change; the engine reacts to them.
        if action.session_id != state.session_id:
            return self._reject(state, f"stale tick for session {action.session_id}")
        return TransitionOutcome(state=state, accepted=True)

    def _session_timeout(
        self, state: JourneyState, action: act.SessionTimeout, now: datetime
    ) -> TransitionOutcome:
        if action.session_id != state.session_id:
            return self._reject(state, f"stale timeout for session {action.session_id}")
        if state.expired:
            return TransitionOutcome(state=state, accepted=True)
        new = state.model_copy(deep=True)
        new.expired = True
        new.errors.append(
            create_error(
                step=new.current_step,
                code="SESSION_EXPIRED",
                message="The session timed out due to inactivity",
                severity=Severity.WARNING,
                timestamp=now,
            )
        )
        return TransitionOutcome(state=new, accepted=True)
