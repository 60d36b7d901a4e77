"""Shared pacing for remote generation calls."""

import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class RateLimiter:
    """Enforce a minimum interval between call starts across all workers.

    One instance is shared by every worker of a batch (it lives on the
    generation client), so concurrent workers queue on the lock instead of
    each keeping its own clock.
    """

    def __init__(
        self,
        min_interval: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable] = asyncio.sleep,
    ):
        self.min_interval = max(0.0, min_interval)
        self.clock = clock
        self.sleep = sleep

        self.last_call_time: float | None = None
        self.total_calls = 0
        self.total_wait_time = 0.0
        self.lock = asyncio.Lock()

    async def acquire(self) -> float:
        """Wait for the next free slot. Returns the time spent waiting."""
        async with self.lock:
            waited = 0.0
            now = self.clock()
            if self.last_call_time is not None:
                waited = self.last_call_time + self.min_interval - now
                if waited > 0:
                    logger.debug(f"Rate limiter: waiting {waited:.2f}s")
                    await self.sleep(waited)
                    now = self.clock()
                else:
                    waited = 0.0

            self.last_call_time = now
            self.total_calls += 1
            self.total_wait_time += waited
            return waited

    def get_stats(self) -> dict:
        """Get limiter statistics."""
        return {
            "min_interval": self.min_interval,
            "total_calls": self.total_calls,
            "total_wait_time": self.total_wait_time,
            "last_call_time": self.last_call_time,
        }
