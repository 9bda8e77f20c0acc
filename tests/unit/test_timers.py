"""Tests for the manual clock and the session timers."""

from journeyflow.actions import AutosaveTick, MetricsTick, SessionTimeout
from journeyflow.config import JourneyConfig
from journeyflow.timers import AUTOSAVE, METRICS, SESSION_TIMEOUT, SessionTimerManager


def _config():
    return JourneyConfig(
        autosave={"interval": 30}, metrics={"interval": 60}, session={"timeout": 120}
    )


def test_manual_clock_fires_in_order(clock):
    fired = []
    clock.call_later(10, lambda: fired.append("late"))
    clock.call_later(5, lambda: fired.append("early"))
    cancelled = clock.call_later(7, lambda: fired.append("cancelled"))
    cancelled.cancel()

    assert clock.pending == 2
    assert clock.advance(10) == 2
    assert fired == ["early", "late"]
    assert clock.pending == 0


def test_ticks_are_posted(clock):
    posted = []
    timers = SessionTimerManager(clock, posted.append, _config())
    timers.arm("s1")
    assert timers.active_timers() == sorted([AUTOSAVE, METRICS, SESSION_TIMEOUT])

    clock.advance(60)
    assert posted == [
        AutosaveTick(session_id="s1"),
        MetricsTick(session_id="s1"),
        AutosaveTick(session_id="s1"),
    ]

    clock.advance(60)
    assert SessionTimeout(session_id="s1") in posted
    assert SESSION_TIMEOUT not in timers.active_timers()


def test_rearming_cancels_previous_session(clock):
    posted = []
    timers = SessionTimerManager(clock, posted.append, _config())
    timers.arm("old")
    timers.arm("new")

    assert clock.pending == 3
    clock.advance(300)
    assert posted
    assert {action.session_id for action in posted} == {"new"}


def test_cancel_all(clock):
    posted = []
    timers = SessionTimerManager(clock, posted.append, _config())
    timers.arm("s1")
    timers.cancel_all()

    assert timers.active_timers() == []
    assert timers.session_id is None
    clock.advance(1000)
    assert posted == []


def test_touch_restarts_timeout(clock):
    posted = []
    timers = SessionTimerManager(clock, posted.append, _config())
    timers.arm("s1")

    clock.advance(100)
    timers.touch()
    clock.advance(100)
    assert SessionTimeout(session_id="s1") not in posted
    clock.advance(30)
    assert SessionTimeout(session_id="s1") in posted


def test_failing_post_does_not_stop_periodic_timers(clock):
    calls = []

    def post(action):
        calls.append(action)
        raise RuntimeError("dispatch failed")

    timers = SessionTimerManager(clock, post, _config())
    timers.arm("s1")
    clock.advance(60)
    assert len([a for a in calls if isinstance(a, AutosaveTick)]) == 2
