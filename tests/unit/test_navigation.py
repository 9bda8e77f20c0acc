"""Tests for forward navigation."""

from journeyflow.catalog import DEFAULT_CATALOG
from journeyflow.contracts import JourneyState
from journeyflow.navigation import NavigationResolver
from journeyflow.validation import TransitionValidator


def test_skippable_step_returned_once_dependency_completed(abc_catalog):
    resolver = NavigationResolver(abc_catalog)
    state = JourneyState(current_step="b", completed_steps=["a", "b"])
    assert resolver.next_allowed_step("b", state) == "c"


def test_nothing_allowed_while_dependency_pending(abc_catalog):
    resolver = NavigationResolver(abc_catalog)
    state = JourneyState(current_step="b", completed_steps=["a"])
    assert resolver.next_allowed_step("b", state) is None


def test_mandatory_blocked_step_stops_the_scan(abc_catalog):
    resolver = NavigationResolver(abc_catalog)
    state = JourneyState(current_step="a")
    assert resolver.next_allowed_step("a", state) is None


def test_last_step_has_no_successor(abc_catalog):
    resolver = NavigationResolver(abc_catalog)
    state = JourneyState(current_step="c", completed_steps=["a", "b", "c"])
    assert resolver.next_allowed_step("c", state) is None


def test_next_step_is_never_a_blocked_mandatory_step():
    validator = TransitionValidator(DEFAULT_CATALOG)
    resolver = NavigationResolver(DEFAULT_CATALOG, validator)
    ids = DEFAULT_CATALOG.ids()
    for cut in range(len(ids)):
        state = JourneyState(current_step=ids[cut], completed_steps=ids[: cut + 1])
        state.persisted_data["auth"].update(user_id="u1", access_token="t")
        following = resolver.next_allowed_step(ids[cut], state)
        if following is None:
            continue
        step = DEFAULT_CATALOG.get(following)
        if not step.can_skip:
            assert validator.validate(ids[cut], following, state).can_proceed


def test_listing_helpers(abc_catalog):
    resolver = NavigationResolver(abc_catalog)
    assert resolver.previous_step("a") is None
    assert resolver.previous_step("c") == "b"
    assert resolver.upcoming_skippable_steps("a") == ["c"]
    assert resolver.upcoming_required_steps("a") == ["b"]


def test_check_skip_conditions(abc_catalog):
    resolver = NavigationResolver(abc_catalog)
    assert resolver.check_skip_conditions("c", ["time_pressure"])
    assert not resolver.check_skip_conditions("c", ["other"])
    assert not resolver.check_skip_conditions("b", ["time_pressure"])
