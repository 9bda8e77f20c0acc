"""Telemetry sinks, buffering and dropoff analysis."""

from __future__ import annotations

import os
from typing import Optional

from ..config import JourneyConfig, load_config
from .base import BaseTelemetrySink
from .buffer import TelemetryBuffer
from .dropoff import BudgetViolation, DropoffDetector, DropoffPoint
from .inmemory import InMemoryTelemetrySink, LoggingTelemetrySink


def get_sink(
    backend: Optional[str] = None, config: Optional[JourneyConfig] = None
) -> BaseTelemetrySink:
    """Factory function to get the configured telemetry sink."""

    config = config or load_config()
    backend = (
        backend
        or os.getenv("JOURNEYFLOW_TELEMETRY")
        or config.telemetry.backend
    ).lower()

    if backend == "inmemory":
        return InMemoryTelemetrySink()
    elif backend == "logging":
        return LoggingTelemetrySink()
    elif backend == "http":
        from .http import HttpTelemetrySink

        http_conf = config.telemetry.http
        return HttpTelemetrySink(
            url=http_conf.url, timeout=http_conf.timeout, headers=http_conf.headers
        )
    elif backend == "redis":
        from .redis import RedisTelemetrySink

        redis_conf = config.telemetry.redis
        return RedisTelemetrySink(
            host=redis_conf.host,
            port=redis_conf.port,
            db=redis_conf.db,
            password=redis_conf.password,
            key=redis_conf.key,
        )
    else:
        raise ValueError(f"Unsupported telemetry backend: {backend}")


__all__ = [
    "BaseTelemetrySink",
    "BudgetViolation",
    "DropoffDetector",
    "DropoffPoint",
    "InMemoryTelemetrySink",
    "LoggingTelemetrySink",
    "TelemetryBuffer",
    "get_sink",
]
