"""Exception hierarchy for journeyflow.

Expected domain conditions (missing data, blocked navigation) are never
raised; they are returned as typed results. These exceptions cover
configuration defects and terminal failures the caller must surface.
"""

from __future__ import annotations


class JourneyFlowError(Exception):
    """Base class for all journeyflow errors."""


class CatalogError(JourneyFlowError):
    """Raised when a step catalog violates its construction invariants."""


class UnknownStepError(JourneyFlowError, KeyError):
    """Raised when a step id is not part of the catalog."""

    def __init__(self, step_id: str) -> None:
        self.step_id = step_id
        super().__init__(step_id)

    def __str__(self) -> str:
        return f"Unknown step: {self.step_id}"


class ConfigError(JourneyFlowError):
    """Raised when configuration cannot be loaded or is inconsistent."""


class RecoveryExhaustedError(JourneyFlowError):
    """Raised when a recovery is refused because the retry cap was reached."""

    def __init__(self, code: str, attempts: int, max_attempts: int) -> None:
        self.code = code
        self.attempts = attempts
        self.max_attempts = max_attempts
        super().__init__(
            f"Recovery for {code} refused after {attempts} of {max_attempts} attempts"
        )


class UnrecoverableError(JourneyFlowError):
    """Raised when recovery is requested for a critical error."""

    def __init__(self, code: str, step: str) -> None:
        self.code = code
        self.step = step
        super().__init__(f"Error {code} on step {step} is not recoverable")
