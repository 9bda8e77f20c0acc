"""Progress metrics: simple, weighted, per-phase and time estimates."""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, Optional

from .catalog import StepCatalog
from .contracts import JourneyState, ProgressReport, StepStatus


def percent(part: float, whole: float) -> int:
    """Half-up rounded percentage; 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0
    return int(math.floor(100 * part / whole + 0.5))


class ProgressCalculator:
    """Derive progress figures from a catalog and a state snapshot."""

    def __init__(self, catalog: StepCatalog) -> None:
        self.catalog = catalog

    def _completed(self, state: JourneyState) -> list[str]:
        return [step for step in state.completed_steps if step in self.catalog]

    def simple(self, state: JourneyState) -> int:
        return percent(len(self._completed(state)), len(self.catalog))

    def weighted(self, state: JourneyState) -> int:
        done = sum(self.catalog.get(step).weight for step in self._completed(state))
        return percent(done, self.catalog.total_weight)

    def per_phase(self, state: JourneyState) -> Dict[str, int]:
        completed = set(self._completed(state))
        result: Dict[str, int] = {}
        for phase in self.catalog.phases:
            phase_steps = self.catalog.steps_in_phase(phase)
            done = sum(1 for step in phase_steps if step.id in completed)
            result[phase.value] = percent(done, len(phase_steps))
        return result

    def phase_progress(self, state: JourneyState, phase: str) -> int:
        phase_steps = self.catalog.steps_in_phase(phase)
        completed = set(self._completed(state))
        return percent(sum(1 for s in phase_steps if s.id in completed), len(phase_steps))

    def eta_remaining(self, state: JourneyState) -> float:
        """Seconds of estimated work in the steps after the current one."""
        index = self.catalog.index_of(state.current_step)
        return sum(step.estimated_duration for step in self.catalog.steps()[index + 1 :])

    def estimated_completion_time(self, state: JourneyState, now: datetime) -> datetime:
        """Projected finish time, counting the current step as still to do."""
        index = self.catalog.index_of(state.current_step)
        remaining = sum(step.estimated_duration for step in self.catalog.steps()[index:])
        return now + timedelta(seconds=remaining)

    def report(self, state: JourneyState) -> ProgressReport:
        return ProgressReport(
            total_steps=len(self.catalog),
            completed_count=len(self._completed(state)),
            current_step_index=self.catalog.index_of(state.current_step),
            simple=self.simple(state),
            weighted=self.weighted(state),
            per_phase=self.per_phase(state),
            eta_remaining=self.eta_remaining(state),
        )

    # ------------------------------------------------------------------
    def performance_metrics(self, state: JourneyState, now: datetime) -> Dict[str, Any]:
        """Summarise step durations, error rate and retry rate."""
        completed = [
            (step, record)
            for step, record in state.step_progress.items()
            if record.status == StepStatus.COMPLETED
        ]
        metrics: Dict[str, Any] = {
            "total_duration": (now - state.started_at).total_seconds(),
            "average_step_duration": 0.0,
            "slowest_step": None,
            "fastest_step": None,
            "error_rate": 0.0,
            "retry_rate": 0.0,
        }
        if completed:
            durations = [(record.duration or 0.0, step) for step, record in completed]
            metrics["average_step_duration"] = sum(d for d, _ in durations) / len(durations)
            metrics["slowest_step"] = max(durations, key=lambda item: item[0])[1]
            metrics["fastest_step"] = min(durations, key=lambda item: item[0])[1]

        total_attempts = sum(record.attempts for record in state.step_progress.values())
        if total_attempts > 0:
            retries = sum(
                max(0, record.attempts - 1) for record in state.step_progress.values()
            )
            metrics["error_rate"] = len(state.errors) / total_attempts * 100
            metrics["retry_rate"] = retries / total_attempts * 100
        return metrics

    def journey_stats(
        self, states: Iterable[JourneyState], now: Optional[datetime] = None
    ) -> Dict[str, Any]:
        """Aggregate completion figures across several journeys."""
        states = list(states)
        final_step = self.catalog.last.id
        finished = [s for s in states if final_step in s.completed_steps]
        durations = [
            ((now or s.last_activity_at) - s.started_at).total_seconds() for s in finished
        ]
        return {
            "total_journeys": len(states),
            "completed_journeys": len(finished),
            "completion_rate": (len(finished) / len(states) * 100) if states else 0.0,
            "average_duration": (sum(durations) / len(durations)) if durations else 0.0,
        }
