"""Core state, error and event contracts for journeyflow."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, computed_field

DATA_NAMESPACES = ("auth", "scenario", "planning", "video", "feedback", "project")

STATE_VERSION = "1.0.0"


def utcnow() -> datetime:
    """Return the current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


def default_data_bag() -> Dict[str, Any]:
    """Return an empty data bag with every domain namespace present."""
    return {namespace: {} for namespace in DATA_NAMESPACES}


class JourneyPhase(str, Enum):
    AUTH = "auth"
    SCENARIO = "scenario"
    PLANNING = "planning"
    VIDEO = "video"
    FEEDBACK = "feedback"


class StepStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"


class Severity(str, Enum):
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class EventType(str, Enum):
    STEP_STARTED = "step_started"
    STEP_COMPLETED = "step_completed"
    STEP_FAILED = "step_failed"
    STEP_SKIPPED = "step_skipped"
    NAVIGATION_ATTEMPTED = "navigation_attempted"
    VALIDATION_FAILED = "validation_failed"
    ERROR_OCCURRED = "error_occurred"
    RECOVERY_ATTEMPTED = "recovery_attempted"
    DATA_PERSISTED = "data_persisted"
    PERFORMANCE_MEASURED = "performance_measured"


class SubStepProgress(BaseModel):
    """Progress of a named sub-step inside a journey step."""

    name: str
    progress: int = Field(default=0, ge=0, le=100)


class StepProgressRecord(BaseModel):
    """Execution record for a single catalog step."""

    status: StepStatus = StepStatus.NOT_STARTED
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration: Optional[float] = None
    attempts: int = 0
    progress: int = 0
    sub_steps: List[SubStepProgress] = Field(default_factory=list)
    custom_metrics: Dict[str, float] = Field(default_factory=dict)


class JourneyError(BaseModel):
    """Error recorded against a step, with suggested remediations."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    step: str
    code: str
    message: str
    timestamp: datetime = Field(default_factory=utcnow)
    severity: Severity = Severity.ERROR
    recovery_actions: List[str] = Field(default_factory=list)
    context: Dict[str, Any] = Field(default_factory=dict)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def is_recoverable(self) -> bool:
        return self.severity != Severity.CRITICAL


class ClientInfo(BaseModel):
    user_agent: str = ""
    device_type: str = "desktop"
    os: str = "unknown"
    browser: str = "unknown"


class PerformanceCounters(BaseModel):
    load_times: Dict[str, float] = Field(default_factory=dict)
    api_call_counts: Dict[str, int] = Field(default_factory=dict)
    error_rates: Dict[str, float] = Field(default_factory=dict)


class JourneyMetadata(BaseModel):
    version: str = STATE_VERSION
    client: ClientInfo = Field(default_factory=ClientInfo)
    experiments: Dict[str, Any] = Field(default_factory=dict)
    performance: PerformanceCounters = Field(default_factory=PerformanceCounters)


class JourneyState(BaseModel):
    """Snapshot of one journey session.

    Instances are only ever produced by the state machine; callers receive
    copies and must treat them as read-only.
    """

    current_step: str
    completed_steps: List[str] = Field(default_factory=list)
    step_progress: Dict[str, StepProgressRecord] = Field(default_factory=dict)
    persisted_data: Dict[str, Any] = Field(default_factory=default_data_bag)
    errors: List[JourneyError] = Field(default_factory=list)
    recovery_attempts: int = 0
    session_id: str = ""
    started_at: datetime = Field(default_factory=utcnow)
    last_activity_at: datetime = Field(default_factory=utcnow)
    expired: bool = False
    metadata: JourneyMetadata = Field(default_factory=JourneyMetadata)

    def record_for(self, step: str) -> StepProgressRecord:
        """Return the progress record for ``step`` or an empty one."""
        return self.step_progress.get(step) or StepProgressRecord()

    def errors_for(self, step: str) -> List[JourneyError]:
        return [error for error in self.errors if error.step == step]

    def critical_errors_for(self, step: str) -> List[JourneyError]:
        return [
            error
            for error in self.errors
            if error.step == step and error.severity == Severity.CRITICAL
        ]

    @property
    def user_id(self) -> Optional[str]:
        auth = self.persisted_data.get("auth") or {}
        return auth.get("user_id") if isinstance(auth, dict) else None

    def to_snapshot(self) -> Dict[str, Any]:
        """Serialize to a JSON-compatible dictionary."""
        return self.model_dump(mode="json")

    @classmethod
    def from_snapshot(cls, data: Dict[str, Any]) -> "JourneyState":
        """Rebuild a state from :meth:`to_snapshot` output."""
        return cls.model_validate(data)


class AnalyticsEvent(BaseModel):
    """Structured telemetry describing engine activity."""

    type: EventType
    step: str
    session_id: str
    timestamp: datetime = Field(default_factory=utcnow)
    user_id: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


class GuardViolation(BaseModel):
    from_step: str
    to_step: str
    message: str
    redirect_step: Optional[str] = None
    allow_skip_override: bool = True


class RuleFailure(BaseModel):
    field: str
    message: str


class ValidationResult(BaseModel):
    """Outcome of validating one ``from -> to`` transition."""

    from_step: str
    to_step: str
    is_valid: bool
    can_proceed: bool
    required_data: List[str] = Field(default_factory=list)
    missing_data: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    errors: List[str] = Field(default_factory=list)
    blocking_errors: List[str] = Field(default_factory=list)
    dependency_errors: List[str] = Field(default_factory=list)
    guard_violation: Optional[GuardViolation] = None
    rule_failures: List[RuleFailure] = Field(default_factory=list)
    recommended_action: Optional[str] = None


class ProgressReport(BaseModel):
    """Progress metrics derived from a journey state."""

    total_steps: int
    completed_count: int
    current_step_index: int
    simple: int
    weighted: int
    per_phase: Dict[str, int] = Field(default_factory=dict)
    eta_remaining: float = 0.0
