"""Error classification and bounded recovery with backoff."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from .config import RecoveryConfig
from .contracts import JourneyError, Severity, utcnow
from .utils.retry import BackoffStrategy, compute_backoff

logger = logging.getLogger(__name__)

GENERIC_ACTIONS = ["reload", "retry"]

SPECIFIC_ACTIONS: Dict[str, List[str]] = {
    "NETWORK_ERROR": ["check_connection", "retry_later"],
    "AUTH_EXPIRED": ["login_again", "refresh_token"],
    "VALIDATION_FAILED": ["check_input", "complete_required_fields"],
    "API_LIMIT_EXCEEDED": ["wait", "reduce_request_rate"],
    "FILE_TOO_LARGE": ["reduce_file_size", "choose_another_file"],
    "SESSION_EXPIRED": ["resume_session", "start_new_session"],
}


def suggest_recovery_actions(code: str) -> List[str]:
    """Specific remediations for ``code`` followed by the generic fallbacks."""
    return [*SPECIFIC_ACTIONS.get(code, []), *GENERIC_ACTIONS]


def is_recoverable(severity: Severity | str) -> bool:
    return Severity(severity) != Severity.CRITICAL


def create_error(
    step: str,
    code: str,
    message: str,
    severity: Severity | str = Severity.ERROR,
    context: Optional[Dict[str, Any]] = None,
    timestamp: Optional[datetime] = None,
) -> JourneyError:
    """Build a :class:`JourneyError` with its suggested recovery actions."""
    return JourneyError(
        step=step,
        code=code,
        message=message,
        severity=Severity(severity),
        timestamp=timestamp or utcnow(),
        recovery_actions=suggest_recovery_actions(code),
        context=context or {},
    )


class RecoveryDecision(BaseModel):
    allowed: bool
    code: str
    attempt: int
    delay: float = 0.0
    reason: Optional[str] = None


class RecoveryTracker:
    """Count recovery attempts per error code and enforce the retry cap."""

    def __init__(self, config: Optional[RecoveryConfig] = None) -> None:
        self.config = config or RecoveryConfig()
        self._attempts: Dict[str, int] = defaultdict(int)

    def classify(self, code: str) -> List[str]:
        return suggest_recovery_actions(code)

    def is_recoverable(self, severity: Severity | str) -> bool:
        return is_recoverable(severity)

    def attempts(self, code: str) -> int:
        return self._attempts.get(code, 0)

    def can_attempt(self, code: str) -> bool:
        return self.attempts(code) < self.config.max_attempts

    def next_delay(self, code: str) -> float:
        """Backoff before the next attempt for ``code``."""
        return self._delay(self.attempts(code) + 1)

    def _delay(self, attempt: int) -> float:
        return compute_backoff(
            attempt,
            base=self.config.base_delay,
            strategy=self.config.backoff_strategy,
            max_delay=self.config.max_delay,
            jitter=0.0,
        )

    def record_attempt(self, error: JourneyError) -> RecoveryDecision:
        """Register an attempt to recover ``error`` and say whether it may go ahead."""
        if not error.is_recoverable:
            return RecoveryDecision(
                allowed=False,
                code=error.code,
                attempt=self.attempts(error.code),
                reason="critical errors are not recoverable",
            )
        if not self.can_attempt(error.code):
            logger.warning(
                f"Recovery for {error.code} refused after {self.attempts(error.code)} attempts"
            )
            return RecoveryDecision(
                allowed=False,
                code=error.code,
                attempt=self.attempts(error.code),
                reason="maximum recovery attempts reached",
            )
        self._attempts[error.code] += 1
        attempt = self._attempts[error.code]
        return RecoveryDecision(
            allowed=True, code=error.code, attempt=attempt, delay=self._delay(attempt)
        )

    def reset(self) -> None:
        self._attempts.clear()

    @property
    def strategy(self) -> BackoffStrategy:
        return self.config.backoff_strategy
