from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_GROUP_SIZE = 3
DEFAULT_DELAY_SECONDS = 0.2


class FixedWindowScheduler:
    def __init__(
        self,
        group_size: int = DEFAULT_GROUP_SIZE,
        delay_seconds: float = DEFAULT_DELAY_SECONDS,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if group_size < 1:
            raise ValueError("group_size must be >= 1")
        if delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")
        self.group_size = group_size
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    def with_group_size(self, group_size: int) -> FixedWindowScheduler:
        return FixedWindowScheduler(group_size, self.delay_seconds, sleep=self._sleep)

    async def map(self, items: Sequence[T], func: Callable[[T], Awaitable[R]]) -> list[R]:
        results: list[R] = []
        for start in range(0, len(items), self.group_size):
            group = items[start : start + self.group_size]
            results.extend(await asyncio.gather(*(func(item) for item in group)))
            if start + self.group_size < len(items) and self.delay_seconds > 0:
                await self._sleep(self.delay_seconds)
        return results
