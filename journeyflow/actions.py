"""Typed actions accepted by the journey state machine."""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from .contracts import ClientInfo, JourneyError


class Start(BaseModel):
    type: Literal["start"] = "start"
    user_id: Optional[str] = None
    session_id: Optional[str] = None
    client: Optional[ClientInfo] = None


class Navigate(BaseModel):
    type: Literal["navigate"] = "navigate"
    step: str
    force: bool = False


class Complete(BaseModel):
    type: Literal["complete"] = "complete"
    step: str
    data: Optional[Dict[str, Any]] = None


class Fail(BaseModel):
    type: Literal["fail"] = "fail"
    step: str
    error: JourneyError


class Skip(BaseModel):
    type: Literal["skip"] = "skip"
    step: str
    conditions: List[str] = Field(default_factory=list)


class UpdateProgress(BaseModel):
    type: Literal["update_progress"] = "update_progress"
    step: str
    progress: int
    sub_step: Optional[str] = None


class PersistData(BaseModel):
    type: Literal["persist_data"] = "persist_data"
    key: str
    value: Any = None


class Recover(BaseModel):
    type: Literal["recover"] = "recover"
    error_id: str
    strategy: str = "retry"


class Reset(BaseModel):
    type: Literal["reset"] = "reset"
    keep_data: bool = False
    session_id: Optional[str] = None


class MeasurePerformance(BaseModel):
    type: Literal["measure_performance"] = "measure_performance"
    metric: str
    value: float
    step: Optional[str] = None


class RecordApiCall(BaseModel):
    type: Literal["record_api_call"] = "record_api_call"
    endpoint: str
    phase: Optional[str] = None


class AutosaveTick(BaseModel):
    type: Literal["autosave_tick"] = "autosave_tick"
    session_id: str


class MetricsTick(BaseModel):
    type: Literal["metrics_tick"] = "metrics_tick"
    session_id: str


class SessionTimeout(BaseModel):
    type: Literal["session_timeout"] = "session_timeout"
    session_id: str


Action = Annotated[
    Union[
        Start,
        Navigate,
        Complete,
        Fail,
        Skip,
        UpdateProgress,
        PersistData,
        Recover,
        Reset,
        MeasurePerformance,
        RecordApiCall,
        AutosaveTick,
        MetricsTick,
        SessionTimeout,
    ],
    Field(discriminator="type"),
]

TICKS = (AutosaveTick, MetricsTick, SessionTimeout)

_action_adapter: TypeAdapter[Action] = TypeAdapter(Action)


def parse_action(data: Dict[str, Any]) -> Action:
    """Build an action from its dictionary form, e.g. ``{"type": "navigate", ...}``."""
    return _action_adapter.validate_python(data)
