"""Tests for progress metrics."""

from datetime import datetime, timedelta, timezone

from journeyflow.catalog import DEFAULT_CATALOG
from journeyflow.contracts import JourneyState, StepProgressRecord, StepStatus
from journeyflow.progress import ProgressCalculator, percent

NOW = datetime(2025, 1, 1, 12, tzinfo=timezone.utc)


def test_percent_rounds_half_up():
    assert percent(1, 8) == 13
    assert percent(2, 3) == 67
    assert percent(1, 3) == 33
    assert percent(5, 0) == 0


def test_weighted_progress(abc_catalog):
    calculator = ProgressCalculator(abc_catalog)
    state = JourneyState(current_step="b", completed_steps=["a", "b"])
    assert calculator.weighted(state) == 30
    assert calculator.simple(state) == 67


def test_weighted_progress_is_monotonic():
    calculator = ProgressCalculator(DEFAULT_CATALOG)
    completed = []
    last = 0
    for step in DEFAULT_CATALOG.ids():
        completed.append(step)
        value = calculator.weighted(JourneyState(current_step=step, completed_steps=completed))
        assert value >= last
        last = value
    assert last == 100


def test_unknown_completed_steps_are_ignored(abc_catalog):
    calculator = ProgressCalculator(abc_catalog)
    state = JourneyState(current_step="a", completed_steps=["a", "legacy-step"])
    assert calculator.report(state).completed_count == 1


def test_per_phase_and_eta(abc_catalog):
    calculator = ProgressCalculator(abc_catalog)
    state = JourneyState(current_step="a", completed_steps=["a", "b"])

    assert calculator.per_phase(state) == {"auth": 100, "scenario": 50}
    assert calculator.phase_progress(state, "scenario") == 50
    assert calculator.eta_remaining(state) == 50
    assert calculator.estimated_completion_time(state, NOW) == NOW + timedelta(seconds=60)

    report = calculator.report(state)
    assert report.total_steps == 3
    assert report.current_step_index == 0
    assert report.weighted == 30


def test_performance_metrics(abc_catalog):
    calculator = ProgressCalculator(abc_catalog)
    state = JourneyState(
        current_step="c",
        completed_steps=["a", "b"],
        started_at=NOW - timedelta(minutes=10),
        step_progress={
            "a": StepProgressRecord(status=StepStatus.COMPLETED, duration=10, attempts=1),
            "b": StepProgressRecord(status=StepStatus.COMPLETED, duration=50, attempts=3),
        },
    )

    metrics = calculator.performance_metrics(state, NOW)
    assert metrics["total_duration"] == 600
    assert metrics["average_step_duration"] == 30
    assert metrics["slowest_step"] == "b"
    assert metrics["fastest_step"] == "a"
    assert metrics["retry_rate"] == 50


def test_journey_stats(abc_catalog):
    calculator = ProgressCalculator(abc_catalog)
    done = JourneyState(
        current_step="c",
        completed_steps=["a", "b", "c"],
        started_at=NOW - timedelta(seconds=100),
        last_activity_at=NOW,
    )
    open_ = JourneyState(current_step="a")

    stats = calculator.journey_stats([done, open_])
    assert stats["total_journeys"] == 2
    assert stats["completed_journeys"] == 1
    assert stats["completion_rate"] == 50
    assert stats["average_duration"] == 100
