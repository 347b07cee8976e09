"""
Bounded retry with exponential backoff.

The indexer reports chain reorganizations as rollback results. Every retry
loop in the sync engines runs under a RetryPolicy.

Schedule for ``base_delay=0.5, max_delay=30``:
    attempt 1 -> immediate
    attempt 2 -> 0.5s
    attempt 3 -> 1.0s
    attempt 4 -> 2.0s
    ...capped at 30s
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

if TYPE_CHECKING:
    from synccore.settings import UtxoSyncSettings


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget and backoff schedule for rollback recovery."""

    max_attempts: int = 10
    base_delay: float = 0.5
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays must not be negative")

    @classmethod
    def from_settings(cls, settings: UtxoSyncSettings) -> RetryPolicy:
        return cls(
            max_attempts=settings.rollback_max_attempts,
            base_delay=settings.rollback_base_delay,
            max_delay=settings.rollback_max_delay,
        )

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait before the given (1-based) attempt."""
        if attempt <= 1:
            return 0.0
        return min(self.base_delay * 2 ** (attempt - 2), self.max_delay)

    async def wait(self, attempt: int, name: str) -> None:
        """Sleep according to the backoff schedule before ``attempt``."""
        delay = self.delay_for(attempt)
        if delay > 0:
            logger.debug(
                f"{name}: waiting {delay:.2f}s before attempt {attempt}/{self.max_attempts}"
            )
            await asyncio.sleep(delay)
