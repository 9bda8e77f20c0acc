"""Forward navigation over the catalog under skip and dependency rules."""

from __future__ import annotations

from typing import Iterable, List, Optional

from .catalog import StepCatalog
from .contracts import JourneyState
from .validation import TransitionValidator


class NavigationResolver:
    """Find the next actionable step without jumping a mandatory gate."""

    def __init__(self, catalog: StepCatalog, validator: Optional[TransitionValidator] = None) -> None:
        self.catalog = catalog
        self.validator = validator or TransitionValidator(catalog)

    def next_allowed_step(self, current_step: str, state: JourneyState) -> Optional[str]:
        """Return the first step after ``current_step`` that may be entered.

        Blocked skippable steps are scanned past; a blocked mandatory step
        ends the scan with ``None``.
        """
        index = self.catalog.index_of(current_step)
        steps = self.catalog.steps()
        if index >= len(steps) - 1:
            return None

        for candidate in steps[index + 1 :]:
            result = self.validator.validate(current_step, candidate.id, state)
            if result.can_proceed:
                return candidate.id
            if not candidate.can_skip:
                return None
        return None

    def previous_step(self, current_step: str) -> Optional[str]:
        index = self.catalog.index_of(current_step)
        return self.catalog.steps()[index - 1].id if index > 0 else None

    def upcoming_skippable_steps(self, current_step: str) -> List[str]:
        index = self.catalog.index_of(current_step)
        return [step.id for step in self.catalog.steps()[index + 1 :] if step.can_skip]

    def upcoming_required_steps(self, current_step: str) -> List[str]:
        index = self.catalog.index_of(current_step)
        return [step.id for step in self.catalog.steps()[index + 1 :] if not step.can_skip]

    def check_skip_conditions(self, step_id: str, conditions: Iterable[str]) -> bool:
        """True when ``step_id`` is skippable and one of its conditions is supplied."""
        step = self.catalog.get(step_id)
        if not step.can_skip or not step.skip_conditions:
            return False
        supplied = set(conditions)
        return any(token in supplied for token in step.skip_conditions)
