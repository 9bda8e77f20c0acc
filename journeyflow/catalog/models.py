"""Immutable definitions that make up a step catalog."""

from __future__ import annotations

from typing import Any, Callable, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..contracts import JourneyPhase

RulePredicate = Callable[[Any], bool]
GuardPredicate = Callable[[Dict[str, Any]], bool]


class ValidationRule(BaseModel):
    """Predicate evaluated against one data-bag path."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    field: str
    predicate: RulePredicate
    message: str
    kind: str = "custom"


class StepDefinition(BaseModel):
    """One catalog entry. Durations are in seconds."""

    model_config = ConfigDict(frozen=True)

    id: str
    phase: JourneyPhase
    required_data: Tuple[str, ...] = ()
    optional_data: Tuple[str, ...] = ()
    validations: Tuple[ValidationRule, ...] = ()
    dependencies: Tuple[str, ...] = ()
    estimated_duration: float
    can_skip: bool = False
    skip_conditions: Tuple[str, ...] = ()
    weight: int = Field(default=1, gt=0)
    max_duration: Optional[float] = None
    error_threshold: Optional[float] = None


class NavigationGuard(BaseModel):
    """Gate for one specific ``from_step -> to_step`` transition.

    ``predicate`` receives only the values at the ``reads`` paths, keyed by
    path, so guards cannot couple to unrelated parts of the state.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    from_step: str
    to_step: str
    reads: Tuple[str, ...] = ()
    predicate: GuardPredicate
    error_message: str
    redirect_step: Optional[str] = None
    allow_skip_override: bool = True

    @property
    def key(self) -> Tuple[str, str]:
        return (self.from_step, self.to_step)
