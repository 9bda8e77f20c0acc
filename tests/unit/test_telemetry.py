"""Tests for telemetry sinks, buffering and dropoff analysis."""

import asyncio
import json
from datetime import timedelta

import httpx
import pytest

from journeyflow.catalog import DEFAULT_CATALOG
from journeyflow.config import AnalyticsConfig, JourneyConfig, PerformanceConfig
from journeyflow.contracts import (
    AnalyticsEvent,
    EventType,
    JourneyState,
    StepProgressRecord,
    utcnow,
)
from journeyflow.recovery import create_error
from journeyflow.telemetry import (
    BaseTelemetrySink,
    DropoffDetector,
    InMemoryTelemetrySink,
    LoggingTelemetrySink,
    TelemetryBuffer,
    get_sink,
)
from journeyflow.telemetry.http import HttpTelemetrySink


def _event(session_id="s1", step="auth-login"):
    return AnalyticsEvent(type=EventType.STEP_STARTED, step=step, session_id=session_id)


class FlakySink(BaseTelemetrySink):
    def __init__(self, failures):
        self.failures = failures
        self.calls = 0
        self.delivered = []

    async def deliver(self, events):
        self.calls += 1
        if self.calls <= self.failures:
            raise ConnectionError("collector down")
        self.delivered.extend(events)
        return True


def _buffer(sink, **kwargs):
    kwargs.setdefault("retry_base", 0.0)
    kwargs.setdefault("retry_jitter", 0.0)
    return TelemetryBuffer(sink, **kwargs)


@pytest.mark.asyncio
async def test_real_time_mode_delivers_each_event():
    sink = InMemoryTelemetrySink()
    buffer = _buffer(sink, real_time=True)
    await buffer.start()

    buffer.add(_event())
    buffer.add(_event())
    await buffer.stop()

    assert [len(batch) for batch in sink.batches] == [1, 1]
    assert buffer.delivered == 2


@pytest.mark.asyncio
async def test_batched_mode_waits_for_batch_size():
    sink = InMemoryTelemetrySink()
    buffer = _buffer(sink, real_time=False, batch_size=3)

    buffer.add(_event())
    buffer.add(_event())
    assert buffer.pending_count == 2
    await buffer.drain()
    assert sink.batches == []

    buffer.add(_event())
    assert buffer.pending_count == 0
    assert buffer.queued_count == 3
    await buffer.drain()
    assert [len(batch) for batch in sink.batches] == [3]


@pytest.mark.asyncio
async def test_overflow_forces_flush_without_dropping():
    sink = InMemoryTelemetrySink()
    buffer = _buffer(sink, real_time=False, batch_size=50, max_buffer_size=4)

    for _ in range(4):
        buffer.add(_event())
    assert buffer.pending_count == 0
    await buffer.drain()
    assert len(sink.events) == 4
    assert buffer.dropped == 0


@pytest.mark.asyncio
async def test_overflow_without_worker_keeps_full_batches(caplog):
    sink = InMemoryTelemetrySink()
    buffer = _buffer(sink, real_time=False, batch_size=50, max_buffer_size=2)

    with caplog.at_level("WARNING", logger="journeyflow.telemetry.buffer"):
        for _ in range(5):
            buffer.add(_event())

    assert buffer.pending_count == 1
    assert buffer.queued_count == 4
    idle = [r for r in caplog.records if "no delivery worker" in r.getMessage()]
    assert len(idle) == 1

    await buffer.drain()
    assert [len(batch) for batch in sink.batches] == [2, 2]


@pytest.mark.asyncio
async def test_failed_delivery_is_retried():
    sink = FlakySink(failures=2)
    buffer = _buffer(sink, max_retries=3)
    buffer.add(_event())
    await buffer.drain()

    assert sink.calls == 3
    assert len(sink.delivered) == 1
    assert buffer.dropped == 0


@pytest.mark.asyncio
async def test_exhausted_retries_drop_the_batch():
    sink = FlakySink(failures=10)
    buffer = _buffer(sink, max_retries=2)
    buffer.add(_event())
    await buffer.drain()

    assert sink.calls == 3
    assert buffer.dropped == 1
    assert buffer.delivered == 0


@pytest.mark.asyncio
async def test_flush_session_keeps_sessions_apart():
    sink = InMemoryTelemetrySink()
    buffer = _buffer(sink, real_time=False, batch_size=10)
    buffer.add(_event("old"))
    buffer.add(_event("new"))
    buffer.add(_event("old"))

    assert buffer.flush_session("old") == 2
    assert buffer.discard_session("new") == 1
    await buffer.drain()

    assert len(sink.batches) == 1
    assert {event.session_id for event in sink.batches[0]} == {"old"}


@pytest.mark.asyncio
async def test_disabled_buffer_ignores_events():
    sink = InMemoryTelemetrySink()
    buffer = TelemetryBuffer.from_config(sink, AnalyticsConfig(enabled=False))
    buffer(_event())
    await buffer.drain()
    assert sink.batches == []


@pytest.mark.asyncio
async def test_logging_sink(caplog):
    sink = LoggingTelemetrySink()
    with caplog.at_level("INFO", logger="journeyflow.telemetry.inmemory"):
        assert await sink.deliver([_event()])
    assert "count=1" in caplog.text


@pytest.mark.asyncio
async def test_http_sink_posts_json():
    received = []

    def handler(request):
        received.append(json.loads(request.content))
        return httpx.Response(202)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    sink = HttpTelemetrySink("http://collector/events", client=client)
    assert await sink.deliver([_event()])
    assert received[0]["events"][0]["type"] == "step_started"
    await client.aclose()


@pytest.mark.asyncio
async def test_http_sink_reports_failure():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(503)))
    sink = HttpTelemetrySink("http://collector/events", client=client)
    assert not await sink.deliver([_event()])
    await client.aclose()


def test_get_sink_backends(monkeypatch):
    monkeypatch.delenv("JOURNEYFLOW_TELEMETRY", raising=False)
    config = JourneyConfig()
    assert isinstance(get_sink(config=config), LoggingTelemetrySink)
    assert isinstance(get_sink("inmemory", config=config), InMemoryTelemetrySink)
    http_sink = get_sink("http", config=config)
    assert isinstance(http_sink, HttpTelemetrySink)
    assert http_sink.url == config.telemetry.http.url

    monkeypatch.setenv("JOURNEYFLOW_TELEMETRY", "inmemory")
    assert isinstance(get_sink(config=config), InMemoryTelemetrySink)

    with pytest.raises(ValueError):
        get_sink("carrier-pigeon", config=config)


def test_redis_sink_import():
    """The redis sink imports even when redis is not installed."""
    from journeyflow.telemetry.redis import RedisTelemetrySink

    try:
        sink = RedisTelemetrySink(key="events")
        assert sink.key == "events"
    except ImportError:
        pass


def test_dropoff_flags_repeated_errors():
    detector = DropoffDetector(DEFAULT_CATALOG)
    state = JourneyState(current_step="scenario-input")
    state.errors = [create_error("scenario-input", "NETWORK_ERROR", "x") for _ in range(3)]

    points = detector.analyze(state, utcnow())
    assert [(p.risk, p.reason, p.error_count) for p in points] == [
        ("high", "multiple_errors", 3)
    ]


def test_dropoff_flags_excessive_time():
    detector = DropoffDetector(DEFAULT_CATALOG)
    now = utcnow()
    state = JourneyState(
        current_step="scenario-input",
        step_progress={
            "scenario-input": StepProgressRecord(started_at=now - timedelta(seconds=601))
        },
    )
    points = detector.analyze(state, now)
    assert [(p.reason, p.risk) for p in points] == [("excessive_time", "high")]

    state.step_progress["scenario-input"].started_at = now - timedelta(seconds=599)
    assert detector.analyze(state, now) == []


def test_dropoff_honours_configured_duration():
    config = PerformanceConfig(max_step_duration={"scenario-input": 10})
    detector = DropoffDetector(DEFAULT_CATALOG, config)
    assert detector.max_duration("scenario-input") == 10
    assert detector.max_duration("auth-verification") == 10
    assert DropoffDetector(DEFAULT_CATALOG).max_duration("scenario-input") == 300


def test_performance_budgets():
    detector = DropoffDetector(DEFAULT_CATALOG)
    state = JourneyState(
        current_step="auth-verification",
        step_progress={"auth-login": StepProgressRecord(duration=90)},
    )
    state.metadata.performance.api_call_counts = {"auth": 12, "scenario": 3}

    violations = detector.check_performance_budgets(state)
    assert {(v.type, v.step or v.phase, v.violation) for v in violations} == {
        ("duration", "auth-login", 30),
        ("api_calls", "auth", 2),
    }
