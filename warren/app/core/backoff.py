"""Backoff utilities.

`exponential_backoff` is an async generator: it yields ``(attempt, delay)`` so the
caller can try an operation, then sleeps before handing out the next attempt.
Nothing is slept after the final attempt.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, AsyncIterator


@dataclass(frozen=True)
class BackoffPolicy:
    initial_delay: float
    max_delay: float
    multiplier: float
    max_attempts: int

    @classmethod
    def from_settings(cls, settings: Any) -> "BackoffPolicy":
        return cls(
            initial_delay=settings.initial_backoff_seconds,
            max_delay=settings.max_backoff_seconds,
            multiplier=settings.backoff_multiplier,
            max_attempts=settings.max_connection_attempts,
        )


async def exponential_backoff(policy: BackoffPolicy) -> AsyncIterator[tuple[int, float]]:
    delay = min(policy.initial_delay, policy.max_delay)
    for attempt in range(1, policy.max_attempts + 1):
        yield attempt, delay
        if attempt < policy.max_attempts:
            await asyncio.sleep(delay)
            delay = min(delay * policy.multiplier, policy.max_delay)
