"""Ordered, validated step catalog."""

from __future__ import annotations

from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from ..contracts import JourneyPhase
from ..errors import CatalogError, UnknownStepError
from .models import NavigationGuard, StepDefinition


class StepCatalog:
    """Immutable ordered list of steps plus derived indices.

    All invariants are checked at construction time; a catalog that builds
    successfully is guaranteed to have unique ids and dependencies that
    precede their dependents.
    """

    def __init__(
        self,
        steps: Sequence[StepDefinition],
        guards: Iterable[NavigationGuard] = (),
        skip_conditions: Optional[Dict[str, str]] = None,
    ) -> None:
        if not steps:
            raise CatalogError("A catalog needs at least one step")

        self._steps: Tuple[StepDefinition, ...] = tuple(steps)
        self._index: Dict[str, int] = {}
        for position, step in enumerate(self._steps):
            if step.id in self._index:
                raise CatalogError(f"Duplicate step id: {step.id}")
            for dependency in step.dependencies:
                if dependency == step.id:
                    raise CatalogError(f"Step {step.id} depends on itself")
                if dependency not in self._index:
                    raise CatalogError(
                        f"Dependency {dependency} of {step.id} must appear "
                        "earlier in the catalog"
                    )
            self._index[step.id] = position

        self._by_phase: Dict[JourneyPhase, Tuple[StepDefinition, ...]] = {}
        for phase in JourneyPhase:
            self._by_phase[phase] = tuple(s for s in self._steps if s.phase == phase)

        self._guards: Dict[Tuple[str, str], NavigationGuard] = {}
        for guard in guards:
            for step_id in (guard.from_step, guard.to_step):
                if step_id not in self._index:
                    raise CatalogError(f"Guard references unknown step: {step_id}")
            if guard.redirect_step and guard.redirect_step not in self._index:
                raise CatalogError(
                    f"Guard redirects to unknown step: {guard.redirect_step}"
                )
            if guard.key in self._guards:
                raise CatalogError(
                    f"Duplicate guard for {guard.from_step} -> {guard.to_step}"
                )
            self._guards[guard.key] = guard

        self._skip_conditions = dict(skip_conditions or {})

    # ------------------------------------------------------------------
    def steps(self) -> Tuple[StepDefinition, ...]:
        return self._steps

    def by_id(self, step_id: str) -> Optional[StepDefinition]:
        position = self._index.get(step_id)
        return None if position is None else self._steps[position]

    def get(self, step_id: str) -> StepDefinition:
        """Like :meth:`by_id` but raises ``UnknownStepError``."""
        step = self.by_id(step_id)
        if step is None:
            raise UnknownStepError(step_id)
        return step

    def steps_in_phase(self, phase: JourneyPhase | str) -> Tuple[StepDefinition, ...]:
        try:
            key = JourneyPhase(phase)
        except ValueError:
            return ()
        return self._by_phase.get(key, ())

    def index_of(self, step_id: str) -> int:
        try:
            return self._index[step_id]
        except KeyError:
            raise UnknownStepError(step_id) from None

    def moves_forward(self, from_step: str, to_step: str) -> bool:
        """``True`` when ``to_step`` comes after ``from_step`` in catalog order."""
        if from_step not in self._index or to_step not in self._index:
            return False
        return self._index[to_step] > self._index[from_step]

    def ids(self) -> List[str]:
        return [step.id for step in self._steps]

    @property
    def first(self) -> StepDefinition:
        return self._steps[0]

    @property
    def last(self) -> StepDefinition:
        return self._steps[-1]

    @property
    def phases(self) -> List[JourneyPhase]:
        return [phase for phase in JourneyPhase if self._by_phase[phase]]

    def guard_for(self, from_step: str, to_step: str) -> Optional[NavigationGuard]:
        return self._guards.get((from_step, to_step))

    def guards(self) -> List[NavigationGuard]:
        return list(self._guards.values())

    def describe_skip_condition(self, token: str) -> Optional[str]:
        return self._skip_conditions.get(token)

    @property
    def skip_conditions(self) -> Dict[str, str]:
        return dict(self._skip_conditions)

    @property
    def total_weight(self) -> int:
        return sum(step.weight for step in self._steps)

    @property
    def total_duration(self) -> float:
        return sum(step.estimated_duration for step in self._steps)

    def phase_duration(self, phase: JourneyPhase | str) -> float:
        return sum(step.estimated_duration for step in self.steps_in_phase(phase))

    def __contains__(self, step_id: object) -> bool:
        return step_id in self._index

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[StepDefinition]:
        return iter(self._steps)
