import asyncio

import pytest

from lead_radar.pacing import FixedWindowScheduler
from lead_radar.rate_limit import RateLimiter


class _FakeTime:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


def test_rate_limiter_waits_for_window_reset_instead_of_failing() -> None:
    fake = _FakeTime()
    limiter = RateLimiter(2, clock=fake.clock, sleep=fake.sleep)

    async def run() -> None:
        await limiter.acquire()
        fake.now = 15.0
        await limiter.acquire()
        await limiter.acquire()

    asyncio.run(run())

    assert fake.sleeps == [45.0]
    assert limiter.used == 1


def test_rate_limiter_window_rolls_over_without_waiting() -> None:
    fake = _FakeTime()
    limiter = RateLimiter(1, clock=fake.clock, sleep=fake.sleep)

    async def run() -> None:
        await limiter.acquire()
        fake.now = 61.0
        await limiter.acquire()

    asyncio.run(run())

    assert fake.sleeps == []
    assert limiter.used == 1


def test_rate_limiter_rejects_non_positive_budget() -> None:
    with pytest.raises(ValueError):
        RateLimiter(0)


def test_scheduler_runs_groups_sequentially_and_keeps_order() -> None:
    fake = _FakeTime()
    scheduler = FixedWindowScheduler(3, 0.2, sleep=fake.sleep)
    in_flight = {"now": 0, "peak": 0}
    started: list[int] = []

    async def work(item: int) -> int:
        started.append(item)
        in_flight["now"] += 1
        in_flight["peak"] = max(in_flight["peak"], in_flight["now"])
        await asyncio.sleep(0)
        in_flight["now"] -= 1
        return item * 10

    results = asyncio.run(scheduler.map(list(range(7)), work))

    assert results == [0, 10, 20, 30, 40, 50, 60]
    assert in_flight["peak"] == 3
    assert fake.sleeps == [0.2, 0.2]
    assert started == list(range(7))


def test_scheduler_with_group_size_keeps_delay() -> None:
    fake = _FakeTime()
    scheduler = FixedWindowScheduler(3, 0.5, sleep=fake.sleep).with_group_size(1)

    async def work(item: str) -> str:
        return item.upper()

    assert asyncio.run(scheduler.map(["a", "b"], work)) == ["A", "B"]
    assert fake.sleeps == [0.5]


def test_scheduler_on_empty_input_is_a_noop() -> None:
    fake = _FakeTime()
    scheduler = FixedWindowScheduler(sleep=fake.sleep)

    async def work(item: int) -> int:
        raise AssertionError("should not be called")

    assert asyncio.run(scheduler.map([], work)) == []
    assert fake.sleeps == []
