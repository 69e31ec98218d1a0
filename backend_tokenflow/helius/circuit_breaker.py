"""
Rate-limit circuit breaker for the Helius search API.

Counts 429 responses; once `threshold` of them occurred with the latest inside
`window_sec`, the next request first sleeps `cooldown_sec` and the counter
resets. Each successful response decrements the counter. One instance per
query; never shared between concurrent queries.
"""

from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

from backend_tokenflow.tokenflow_logging import get_logger

logger = get_logger(__name__)

DEFAULT_THRESHOLD = 3
DEFAULT_WINDOW_SEC = 30.0
DEFAULT_COOLDOWN_SEC = 30.0


class RateLimitCircuitBreaker:
    def __init__(
        self,
        *,
        threshold: int = DEFAULT_THRESHOLD,
        window_sec: float = DEFAULT_WINDOW_SEC,
        cooldown_sec: float = DEFAULT_COOLDOWN_SEC,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ) -> None:
        self.threshold = threshold
        self.window_sec = window_sec
        self.cooldown_sec = cooldown_sec
        self._clock = clock
        self._sleep = sleep or asyncio.sleep
        self.rate_limit_count = 0
        self.last_rate_limit_at: float | None = None
        self.trips = 0

    @property
    def is_open(self) -> bool:
        if self.rate_limit_count < self.threshold or self.last_rate_limit_at is None:
            return False
        return (self._clock() - self.last_rate_limit_at) < self.window_sec

    async def before_request(self) -> None:
        """Wait out the cooldown when the breaker is open."""
        if not self.is_open:
            return
        self.trips += 1
        logger.warning(
            "helius_circuit_breaker_open",
            rate_limit_count=self.rate_limit_count,
            cooldown_sec=self.cooldown_sec,
        )
        await self._sleep(self.cooldown_sec)
        self.rate_limit_count = 0

    def record_rate_limit(self) -> None:
        self.rate_limit_count += 1
        self.last_rate_limit_at = self._clock()

    def record_success(self) -> None:
        self.rate_limit_count = max(0, self.rate_limit_count - 1)
