import pytest

from journeyflow.catalog import NavigationGuard, StepCatalog, StepDefinition
from journeyflow.clock import ManualClock
from journeyflow.contracts import JourneyPhase


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def abc_catalog():
    """Three steps: ``a`` -> ``b`` -> ``c`` (skippable, needs scenario.title)."""
    return StepCatalog(
        [
            StepDefinition(id="a", phase=JourneyPhase.AUTH, estimated_duration=10, weight=1),
            StepDefinition(
                id="b",
                phase=JourneyPhase.SCENARIO,
                dependencies=("a",),
                estimated_duration=20,
                weight=2,
            ),
            StepDefinition(
                id="c",
                phase=JourneyPhase.SCENARIO,
                dependencies=("b",),
                required_data=("scenario.title",),
                can_skip=True,
                skip_conditions=("time_pressure",),
                estimated_duration=30,
                weight=7,
                max_duration=60,
            ),
        ],
        skip_conditions={"time_pressure": "The user is short on time"},
    )


@pytest.fixture
def guarded_catalog():
    """Two independent steps with a guard that always refuses ``x -> y``."""
    return StepCatalog(
        [
            StepDefinition(id="x", phase=JourneyPhase.AUTH, estimated_duration=5),
            StepDefinition(id="y", phase=JourneyPhase.SCENARIO, estimated_duration=5),
        ],
        guards=[
            NavigationGuard(
                from_step="x",
                to_step="y",
                predicate=lambda values: False,
                error_message="y is closed",
                redirect_step="x",
            )
        ],
    )
