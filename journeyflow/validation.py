"""Transition validation against the step catalog."""

from __future__ import annotations

import logging
import re
from typing import Any, List, Optional

from .catalog import StepCatalog
from .catalog.models import NavigationGuard, StepDefinition
from .contracts import GuardViolation, JourneyState, RuleFailure, ValidationResult
from .errors import UnknownStepError
from .utils.paths import get_path, is_missing

logger = logging.getLogger(__name__)


def execute_rule(rule: Any, value: Any) -> bool:
    """Evaluate a rule that may be a callable, a compiled regex or a literal."""
    if callable(rule):
        try:
            return bool(rule(value))
        except Exception as exc:
            logger.warning(f"Validation rule raised {exc!r}; treating as failed")
            return False
    if isinstance(rule, re.Pattern):
        return bool(rule.search(str(value)))
    if isinstance(rule, str):
        return str(value) == rule
    return True


def evaluate_guard(guard: NavigationGuard, state: JourneyState) -> bool:
    """Run ``guard`` over only the data-bag paths it declares."""
    values = {path: get_path(state.persisted_data, path) for path in guard.reads}
    try:
        return bool(guard.predicate(values))
    except Exception as exc:
        logger.warning(
            f"Guard {guard.from_step} -> {guard.to_step} raised {exc!r}; blocking"
        )
        return False


class TransitionValidator:
    """Decide whether ``from -> to`` is permitted for a given state."""

    def __init__(self, catalog: StepCatalog) -> None:
        self.catalog = catalog

    def validate(self, from_step: str, to_step: str, state: JourneyState) -> ValidationResult:
        target = self.catalog.by_id(to_step)
        if target is None:
            raise UnknownStepError(to_step)
        data = state.persisted_data

        missing_data = [
            path for path in target.required_data if is_missing(get_path(data, path))
        ]

        dependency_errors = [
            f"Step {dependency} must be completed first"
            for dependency in target.dependencies
            if dependency not in state.completed_steps
        ]

        guard_violation: Optional[GuardViolation] = None
        guard = self.catalog.guard_for(from_step, to_step)
        if guard is not None and not evaluate_guard(guard, state):
            guard_violation = GuardViolation(
                from_step=from_step,
                to_step=to_step,
                message=guard.error_message or "Navigation blocked",
                redirect_step=guard.redirect_step,
                allow_skip_override=guard.allow_skip_override,
            )

        critical_errors: List[str] = []
        if self.catalog.moves_forward(from_step, to_step):
            critical_errors = [
                f"Step {from_step} has an unresolved critical error: {error.code}"
                for error in state.critical_errors_for(from_step)
            ]

        rule_failures = [
            RuleFailure(field=rule.field, message=rule.message)
            for rule in target.validations
            if not execute_rule(rule.predicate, get_path(data, rule.field))
        ]

        blocking_errors: List[str] = list(dependency_errors)
        if guard_violation is not None:
            blocking_errors.append(guard_violation.message)
        blocking_errors.extend(critical_errors)

        errors = blocking_errors + [failure.message for failure in rule_failures]

        warnings: List[str] = []
        if missing_data and target.can_skip:
            conditions = ", ".join(target.skip_conditions) or "none declared"
            warnings.append(f"This step can be skipped (conditions: {conditions})")

        is_valid = not missing_data and not errors
        can_proceed = is_valid or (target.can_skip and not blocking_errors)

        return ValidationResult(
            from_step=from_step,
            to_step=to_step,
            is_valid=is_valid,
            can_proceed=can_proceed,
            required_data=list(target.required_data),
            missing_data=missing_data,
            warnings=warnings,
            errors=errors,
            blocking_errors=blocking_errors,
            dependency_errors=dependency_errors,
            guard_violation=guard_violation,
            rule_failures=rule_failures,
            recommended_action=self._recommend(target, blocking_errors, rule_failures, missing_data),
        )

    @staticmethod
    def _recommend(
        target: StepDefinition,
        blocking_errors: List[str],
        rule_failures: List[RuleFailure],
        missing_data: List[str],
    ) -> Optional[str]:
        if blocking_errors:
            return f"Resolve the following first: {blocking_errors[0]}"
        if rule_failures:
            return f"Fix {rule_failures[0].field}: {rule_failures[0].message}"
        if missing_data:
            fields = ", ".join(missing_data)
            if target.can_skip:
                return f"Required data is missing but this step can be skipped: {fields}"
            return f"Provide the following data: {fields}"
        return None
