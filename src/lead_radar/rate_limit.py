from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

WINDOW_SECONDS = 60.0

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


class RateLimiter:
    def __init__(
        self,
        limit_per_minute: int,
        *,
        name: str = "source",
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        if limit_per_minute < 1:
            raise ValueError("limit_per_minute must be >= 1")
        self.limit_per_minute = limit_per_minute
        self.name = name
        self._clock = clock
        self._sleep = sleep
        self._count = 0
        self._window_start = clock()

    @property
    def used(self) -> int:
        return self._count

    def _roll_window(self, now: float) -> None:
        if now - self._window_start >= WINDOW_SECONDS:
            self._count = 0
            self._window_start = now

    async def acquire(self) -> None:
        while True:
            now = self._clock()
            self._roll_window(now)
            if self._count < self.limit_per_minute:
                self._count += 1
                return
            wait_seconds = max(WINDOW_SECONDS - (now - self._window_start), 0.0)
            logger.info(
                "%s rate limit reached (%d/min), waiting %.1fs",
                self.name,
                self.limit_per_minute,
                wait_seconds,
            )
            await self._sleep(wait_seconds)
