"""Tests for the step catalog."""

import pytest

from journeyflow.catalog import (
    DEFAULT_CATALOG,
    NavigationGuard,
    StepCatalog,
    StepDefinition,
    build_default_catalog,
)
from journeyflow.contracts import JourneyPhase
from journeyflow.errors import CatalogError, UnknownStepError


def _step(step_id, *deps, phase=JourneyPhase.AUTH):
    return StepDefinition(id=step_id, phase=phase, dependencies=deps, estimated_duration=1)


def test_default_catalog_shape():
    catalog = build_default_catalog()
    assert len(catalog) == 24
    assert catalog.first.id == "auth-login"
    assert catalog.last.id == "project-completion"
    assert catalog.phases == list(JourneyPhase)
    assert [s.id for s in catalog.steps_in_phase("auth")] == ["auth-login", "auth-verification"]


def test_default_catalog_dependencies_precede_dependents():
    for step in DEFAULT_CATALOG:
        for dependency in step.dependencies:
            assert DEFAULT_CATALOG.index_of(dependency) < DEFAULT_CATALOG.index_of(step.id)


def test_default_catalog_skip_conditions_are_described():
    for step in DEFAULT_CATALOG:
        if step.skip_conditions:
            assert step.can_skip
        for token in step.skip_conditions:
            assert DEFAULT_CATALOG.describe_skip_condition(token)


def test_lookup_helpers():
    catalog = StepCatalog([_step("a"), _step("b", "a", phase=JourneyPhase.VIDEO)])
    assert "a" in catalog
    assert "zzz" not in catalog
    assert catalog.by_id("zzz") is None
    assert catalog.get("b").phase == JourneyPhase.VIDEO
    assert catalog.index_of("b") == 1
    assert catalog.ids() == ["a", "b"]
    assert catalog.steps_in_phase("nonsense") == ()
    assert catalog.phases == [JourneyPhase.AUTH, JourneyPhase.VIDEO]
    assert catalog.total_weight == 2
    assert catalog.phase_duration(JourneyPhase.VIDEO) == 1

    with pytest.raises(UnknownStepError):
        catalog.get("zzz")
    with pytest.raises(UnknownStepError):
        catalog.index_of("zzz")


def test_unknown_step_error_is_a_key_error():
    with pytest.raises(KeyError):
        DEFAULT_CATALOG.get("missing")


@pytest.mark.parametrize(
    "steps",
    [
        [],
        [_step("a"), _step("a")],
        [_step("a", "a")],
        [_step("a", "b"), _step("b")],
        [_step("a", "ghost")],
    ],
)
def test_invalid_catalogs_are_rejected(steps):
    with pytest.raises(CatalogError):
        StepCatalog(steps)


def test_guard_table_validation():
    steps = [_step("a"), _step("b", "a")]
    guard = NavigationGuard(
        from_step="a", to_step="b", predicate=lambda values: True, error_message="no"
    )
    catalog = StepCatalog(steps, guards=[guard])
    assert catalog.guard_for("a", "b") is guard
    assert catalog.guard_for("b", "a") is None

    with pytest.raises(CatalogError):
        StepCatalog(steps, guards=[guard, guard])
    with pytest.raises(CatalogError):
        StepCatalog(
            steps,
            guards=[
                NavigationGuard(
                    from_step="a", to_step="ghost", predicate=lambda v: True, error_message="x"
                )
            ],
        )
    with pytest.raises(CatalogError):
        StepCatalog(
            steps,
            guards=[
                NavigationGuard(
                    from_step="a",
                    to_step="b",
                    predicate=lambda v: True,
                    error_message="x",
                    redirect_step="ghost",
                )
            ],
        )


def test_step_definitions_are_frozen():
    step = _step("a")
    with pytest.raises(Exception):
        step.weight = 5
