from __future__ import annotations

import asyncio
import random
from enum import Enum
from typing import Optional


class BackoffStrategy(str, Enum):
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


def compute_backoff(
    attempt: int,
    base: float = 1.5,
    jitter: float = 0.5,
    strategy: BackoffStrategy | str = BackoffStrategy.EXPONENTIAL,
    max_delay: Optional[float] = None,
) -> float:
    """Compute linear or exponential backoff with jitter."""
    if BackoffStrategy(strategy) == BackoffStrategy.LINEAR:
        delay = base * attempt
    else:
        delay = base ** attempt
    if max_delay is not None:
        delay = min(delay, max_delay)
    if jitter:
        delay += random.uniform(0, jitter)
    return delay


async def schedule_retry(
    attempt: int,
    base: float = 1.5,
    strategy: BackoffStrategy | str = BackoffStrategy.EXPONENTIAL,
    max_delay: Optional[float] = None,
    jitter: float = 0.5,
) -> None:
    """Sleep for computed backoff delay before retrying."""
    delay = compute_backoff(
        attempt, base=base, jitter=jitter, strategy=strategy, max_delay=max_delay
    )
    await asyncio.sleep(delay)
