"""journeyflow: a catalog-driven user-journey workflow engine."""

from .actions import (
    Complete,
    Fail,
    MeasurePerformance,
    Navigate,
    PersistData,
    RecordApiCall,
    Recover,
    Reset,
    Skip,
    Start,
    UpdateProgress,
    parse_action,
)
from .catalog import DEFAULT_CATALOG, StepCatalog, StepDefinition, build_default_catalog
from .clock import ManualClock, SystemClock
from .config import JourneyConfig, load_config
from .contracts import AnalyticsEvent, JourneyError, JourneyState, ValidationResult
from .engine import JourneyEngine
from .errors import JourneyFlowError
from .persistence import get_store
from .recovery import create_error
from .telemetry import get_sink

__version__ = "0.1.0"
__all__ = [
    "AnalyticsEvent",
    "Complete",
    "DEFAULT_CATALOG",
    "Fail",
    "JourneyConfig",
    "JourneyEngine",
    "JourneyError",
    "JourneyFlowError",
    "JourneyState",
    "ManualClock",
    "MeasurePerformance",
    "Navigate",
    "PersistData",
    "RecordApiCall",
    "Recover",
    "Reset",
    "Skip",
    "Start",
    "StepCatalog",
    "StepDefinition",
    "SystemClock",
    "UpdateProgress",
    "ValidationResult",
    "build_default_catalog",
    "create_error",
    "get_sink",
    "get_store",
    "load_config",
    "parse_action",
]
