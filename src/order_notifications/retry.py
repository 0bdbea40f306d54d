"""RetryPolicy — exponential backoff, max retries, bounded jitter."""

from __future__ import annotations

import asyncio
import random


class RetryPolicy:
    """Configurable retry with exponential backoff and proportional jitter."""

    def __init__(
        self,
        *,
        max_retries: int = 5,
        base_delay: float = 1.0,
        max_delay: float = 300.0,
        jitter: float = 0.2,
        rng: random.Random | None = None,
    ) -> None:
        """Configure retry behavior.

        Args:
            max_retries: Maximum number of dispatch attempts (including the first).
            base_delay: Delay in seconds before the first retry.
            max_delay: Cap on delay in seconds, applied after jitter.
            jitter: Fraction in [0, 1); the delay is scaled by a random factor
                in ``[1 - jitter, 1 + jitter]``.
            rng: Random source (tests pass a seeded one).
        """
        if max_retries < 1:
            raise ValueError("max_retries must be >= 1")
        if base_delay < 0 or max_delay < 0:
            raise ValueError("base_delay and max_delay must be >= 0")
        if base_delay > max_delay:
            raise ValueError("base_delay must be <= max_delay")
        if not 0 <= jitter < 1:
            raise ValueError("jitter must be in [0, 1)")
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.jitter = jitter
        self._rng = rng or random.Random()  # noqa: S311

    def should_retry(self, attempt_count: int) -> bool:
        """Return True if another attempt is allowed after *attempt_count* failures."""
        return 1 <= attempt_count < self.max_retries

    def base_delay_for_attempt(self, attempt: int) -> float:
        """Un-jittered delay: ``base_delay * 2^(attempt-1)`` capped by max_delay."""
        if attempt < 1:
            return 0.0
        # Cap the exponent so huge attempt numbers cannot overflow
        exponent = min(attempt - 1, 64)
        return float(min(self.base_delay * (2**exponent), self.max_delay))

    def delay_for_attempt(self, attempt: int) -> float:
        """Return the jittered delay in seconds after the given 1-based attempt."""
        delay = self.base_delay_for_attempt(attempt)
        if self.jitter and delay > 0:
            factor = self._rng.uniform(1.0 - self.jitter, 1.0 + self.jitter)
            delay = delay * factor
        return float(min(max(0.0, delay), self.max_delay))

    async def wait_before_retry(self, attempt: int) -> None:
        """Async sleep for the delay of the given attempt."""
        d = self.delay_for_attempt(attempt)
        if d > 0:
            await asyncio.sleep(d)
