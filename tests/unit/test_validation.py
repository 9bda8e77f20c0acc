"""Tests for transition validation."""

import re

import pytest

from journeyflow.catalog import DEFAULT_CATALOG, NavigationGuard
from journeyflow.contracts import JourneyState, Severity
from journeyflow.errors import UnknownStepError
from journeyflow.recovery import create_error
from journeyflow.validation import TransitionValidator, evaluate_guard, execute_rule


def test_skippable_step_with_missing_data_can_proceed(abc_catalog):
    validator = TransitionValidator(abc_catalog)
    state = JourneyState(current_step="b", completed_steps=["a", "b"])

    result = validator.validate("b", "c", state)
    assert result.missing_data == ["scenario.title"]
    assert not result.is_valid
    assert result.can_proceed
    assert result.warnings
    assert "can be skipped" in result.recommended_action


def test_skippable_step_with_failed_dependency_cannot_proceed(abc_catalog):
    validator = TransitionValidator(abc_catalog)
    state = JourneyState(current_step="b", completed_steps=["a"])

    result = validator.validate("b", "c", state)
    assert not result.can_proceed
    assert result.dependency_errors == ["Step b must be completed first"]
    assert result.blocking_errors == result.dependency_errors
    assert result.recommended_action.startswith("Resolve the following first")


def test_valid_transition(abc_catalog):
    validator = TransitionValidator(abc_catalog)
    state = JourneyState(current_step="b", completed_steps=["a", "b"])
    state.persisted_data["scenario"]["title"] = "A long title"

    result = validator.validate("b", "c", state)
    assert result.is_valid
    assert result.can_proceed
    assert result.errors == []
    assert result.recommended_action is None
    assert result.required_data == ["scenario.title"]


def test_unknown_target_raises(abc_catalog):
    validator = TransitionValidator(abc_catalog)
    with pytest.raises(UnknownStepError):
        validator.validate("a", "nope", JourneyState(current_step="a"))


def test_rule_failure_reports_field():
    validator = TransitionValidator(DEFAULT_CATALOG)
    state = JourneyState(current_step="scenario-input", completed_steps=["scenario-input"])
    state.persisted_data["scenario"].update(title="abc", description="a story")

    result = validator.validate("scenario-input", "scenario-story-generation", state)
    assert result.missing_data == []
    assert [f.field for f in result.rule_failures] == ["scenario.title"]
    assert not result.can_proceed
    assert result.blocking_errors == []
    assert result.recommended_action.startswith("Fix scenario.title")


def test_guard_violation_carries_redirect():
    validator = TransitionValidator(DEFAULT_CATALOG)
    state = JourneyState(current_step="auth-login")

    result = validator.validate("auth-login", "scenario-input", state)
    assert result.guard_violation is not None
    assert result.guard_violation.redirect_step == "auth-login"
    assert result.guard_violation.allow_skip_override
    assert "Login must be completed first" in result.blocking_errors


def test_unresolved_critical_error_blocks_leaving_step(abc_catalog):
    validator = TransitionValidator(abc_catalog)
    state = JourneyState(current_step="a", completed_steps=["a"])
    state.errors.append(create_error("a", "DISK_FULL", "boom", severity=Severity.CRITICAL))

    result = validator.validate("a", "b", state)
    assert not result.can_proceed
    assert any("DISK_FULL" in message for message in result.blocking_errors)


def test_critical_error_does_not_block_going_back(abc_catalog):
    validator = TransitionValidator(abc_catalog)
    state = JourneyState(current_step="b", completed_steps=["a"])
    state.errors.append(create_error("b", "DISK_FULL", "boom", severity=Severity.CRITICAL))

    assert validator.validate("b", "a", state).can_proceed
    assert not validator.validate("b", "c", state).can_proceed


def test_execute_rule_variants():
    assert execute_rule(lambda v: v > 1, 2)
    assert not execute_rule(lambda v: v > 1, None)
    assert execute_rule(re.compile(r"^\d+$"), "123")
    assert not execute_rule(re.compile(r"^\d+$"), "12a")
    assert execute_rule("ready", "ready")
    assert not execute_rule("ready", "pending")


def test_guard_only_sees_declared_paths():
    seen = {}

    def predicate(values):
        seen.update(values)
        return True

    guard = NavigationGuard(
        from_step="a", to_step="b", reads=("auth.user_id",), predicate=predicate, error_message="x"
    )
    state = JourneyState(current_step="a")
    state.persisted_data["auth"]["user_id"] = "u1"
    state.persisted_data["video"]["secret"] = "hidden"

    assert evaluate_guard(guard, state)
    assert seen == {"auth.user_id": "u1"}


def test_raising_guard_blocks():
    guard = NavigationGuard(
        from_step="a", to_step="b", predicate=lambda values: values["nope"], error_message="x"
    )
    assert not evaluate_guard(guard, JourneyState(current_step="a"))
