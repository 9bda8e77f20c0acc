"""Step catalog: definitions, guards and the fixed production catalog."""

from __future__ import annotations

from .catalog import StepCatalog
from .models import NavigationGuard, StepDefinition, ValidationRule
from .steps import GUARDS, SKIP_CONDITIONS, STEPS


def build_default_catalog() -> StepCatalog:
    """Build the fixed production catalog."""
    return StepCatalog(STEPS, guards=GUARDS, skip_conditions=SKIP_CONDITIONS)


DEFAULT_CATALOG = build_default_catalog()

__all__ = [
    "DEFAULT_CATALOG",
    "NavigationGuard",
    "StepCatalog",
    "StepDefinition",
    "ValidationRule",
    "build_default_catalog",
]
