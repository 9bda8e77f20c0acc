from __future__ import annotations

import os
from typing import Dict, Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigError
from .utils.retry import BackoffStrategy


class AutoSaveConfig(BaseModel):
    """Periodic snapshot saving."""

    enabled: bool = True
    interval: float = 30.0
    max_versions: int = 10


class SessionConfig(BaseModel):
    """Session lifetime settings."""

    timeout: float = 7200.0
    keep_alive: bool = True
    persist_between_sessions: bool = True


class RecoveryConfig(BaseModel):
    """Bounded retry policy for error recovery."""

    max_attempts: int = 3
    backoff_strategy: BackoffStrategy = BackoffStrategy.EXPONENTIAL
    base_delay: float = 2.0
    max_delay: float = 60.0


class AnalyticsConfig(BaseModel):
    """Telemetry buffering behaviour."""

    enabled: bool = True
    real_time: bool = True
    batch_size: int = 20
    buffer_size: int = 100
    max_retries: int = 3
    retry_base: float = 1.5
    retry_jitter: float = 0.5


class MetricsConfig(BaseModel):
    """Periodic metrics heartbeat."""

    enabled: bool = True
    interval: float = 60.0


class PerformanceConfig(BaseModel):
    """Budgets used by dropoff detection and budget checks."""

    default_max_step_duration: float = 300.0
    dropoff_error_threshold: int = 2
    max_step_duration: Dict[str, float] = Field(default_factory=dict)
    max_api_calls: Dict[str, int] = Field(
        default_factory=lambda: {
            "auth": 10,
            "scenario": 50,
            "planning": 100,
            "video": 200,
            "feedback": 300,
        }
    )


class HttpSinkConfig(BaseModel):
    """Configuration for the HTTP telemetry sink."""

    url: str = "http://localhost:8080/events"
    timeout: float = 5.0
    headers: Dict[str, str] = Field(default_factory=dict)


class RedisSinkConfig(BaseModel):
    """Configuration for the Redis telemetry sink."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None
    key: str = "journeyflow:events"


class TelemetryConfig(BaseModel):
    """Telemetry sink configuration settings."""

    backend: Literal["inmemory", "logging", "http", "redis"] = "logging"
    http: HttpSinkConfig = HttpSinkConfig()
    redis: RedisSinkConfig = RedisSinkConfig()


class JourneyConfig(BaseModel):
    """Top-level configuration model."""

    autosave: AutoSaveConfig = AutoSaveConfig()
    session: SessionConfig = SessionConfig()
    recovery: RecoveryConfig = RecoveryConfig()
    analytics: AnalyticsConfig = AnalyticsConfig()
    metrics: MetricsConfig = MetricsConfig()
    performance: PerformanceConfig = PerformanceConfig()
    telemetry: TelemetryConfig = TelemetryConfig()
    database_url: Optional[str] = None


def load_config(path: Optional[str] = None) -> JourneyConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to JOURNEYFLOW_CONFIG env
            variable or 'journeyflow.yaml' in the current directory.
    """

    config_path = path or os.getenv("JOURNEYFLOW_CONFIG", "journeyflow.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        try:
            config = JourneyConfig(**data)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration in {config_path}: {exc}") from exc
    else:
        config = JourneyConfig()

    env_db_url = os.getenv("JOURNEYFLOW_DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_telemetry = os.getenv("JOURNEYFLOW_TELEMETRY")
    if env_telemetry:
        try:
            config.telemetry = TelemetryConfig.model_validate(
                {**config.telemetry.model_dump(), "backend": env_telemetry.lower()}
            )
        except ValidationError as exc:
            raise ConfigError(f"Unsupported telemetry backend: {env_telemetry}") from exc
    return config
