"""Dropoff heuristics and performance budget checks."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from ..catalog import StepCatalog
from ..config import PerformanceConfig
from ..contracts import JourneyState


class DropoffPoint(BaseModel):
    step: str
    risk: str
    reason: str
    error_count: Optional[int] = None
    duration: Optional[float] = None


class BudgetViolation(BaseModel):
    type: str
    actual: float
    budget: float
    violation: float
    step: Optional[str] = None
    phase: Optional[str] = None


class DropoffDetector:
    """Flag steps where a user is likely to abandon the journey."""

    def __init__(self, catalog: StepCatalog, config: Optional[PerformanceConfig] = None) -> None:
        self.catalog = catalog
        self.config = config or PerformanceConfig()

    def max_duration(self, step_id: str) -> float:
        configured = self.config.max_step_duration.get(step_id)
        if configured is not None:
            return configured
        step = self.catalog.by_id(step_id)
        if step is not None and step.max_duration is not None:
            return step.max_duration
        return self.config.default_max_step_duration

    def analyze(self, state: JourneyState, now: datetime) -> List[DropoffPoint]:
        points: List[DropoffPoint] = []
        step = state.current_step

        error_count = len(state.errors_for(step))
        if error_count > self.config.dropoff_error_threshold:
            points.append(
                DropoffPoint(
                    step=step, risk="high", reason="multiple_errors", error_count=error_count
                )
            )

        record = state.step_progress.get(step)
        if record is not None and record.started_at is not None:
            elapsed = (now - record.started_at).total_seconds()
            if elapsed > 2 * self.max_duration(step):
                points.append(
                    DropoffPoint(step=step, risk="high", reason="excessive_time", duration=elapsed)
                )
        return points

    def check_performance_budgets(self, state: JourneyState) -> List[BudgetViolation]:
        violations: List[BudgetViolation] = []
        for step_id, record in state.step_progress.items():
            if not record.duration or step_id not in self.catalog:
                continue
            budget = self.max_duration(step_id)
            if record.duration > budget:
                violations.append(
                    BudgetViolation(
                        type="duration",
                        step=step_id,
                        actual=record.duration,
                        budget=budget,
                        violation=record.duration - budget,
                    )
                )

        for phase, count in state.metadata.performance.api_call_counts.items():
            budget = self.config.max_api_calls.get(phase)
            if budget is not None and count > budget:
                violations.append(
                    BudgetViolation(
                        type="api_calls",
                        phase=phase,
                        actual=count,
                        budget=budget,
                        violation=count - budget,
                    )
                )
        return violations
