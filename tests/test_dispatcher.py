"""Tests for the rate-limited dispatcher."""

import asyncio
from dataclasses import dataclass, field

import pytest

from product_resolver.services.dispatcher import ProviderLimits, RateLimitedDispatcher
from product_resolver.services.providers import ProviderRateLimitedError


@dataclass
class ManualClock:
    """Monotonic clock advanced only by the dispatcher's sleeps."""

    now: float = 100.0
    sleeps: list[float] = field(default_factory=list)

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


def _dispatcher(clock: ManualClock, **limits: float) -> RateLimitedDispatcher:
    return RateLimitedDispatcher(
        limits={"p": ProviderLimits(**limits)},
        clock=clock,
        sleep=clock.sleep,
    )


async def _throttled() -> None:
    raise ProviderRateLimitedError("p", "slow down")


def test_calls_are_spaced_by_rate() -> None:
    clock = ManualClock()
    dispatcher = _dispatcher(clock, requests_per_second=2.0, max_concurrent=1)
    started: list[float] = []

    async def request() -> float:
        started.append(clock.now)
        return clock.now

    async def scenario() -> list[float]:
        return await asyncio.gather(
            *(dispatcher.dispatch("p", request) for _ in range(3))
        )

    results = asyncio.run(scenario())

    assert started == [100.0, 100.5, 101.0]
    assert results == started


def test_concurrency_cap_is_respected() -> None:
    dispatcher = RateLimitedDispatcher(
        limits={"p": ProviderLimits(requests_per_second=0, max_concurrent=2)}
    )
    active = 0
    peak = 0

    async def scenario() -> tuple[int, int, list[bool]]:
        nonlocal active, peak
        release = asyncio.Event()

        async def request() -> bool:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await release.wait()
            active -= 1
            return True

        tasks = [
            asyncio.create_task(dispatcher.dispatch("p", request)) for _ in range(3)
        ]
        for _ in range(10):
            await asyncio.sleep(0)
        in_flight = dispatcher.in_flight("p")
        started = peak
        release.set()
        results = await asyncio.gather(*tasks)
        return started, in_flight, results

    started, in_flight, results = asyncio.run(scenario())

    assert started == 2
    assert in_flight == 2
    assert results == [True, True, True]
    assert peak == 2


def test_backoff_grows_to_ceiling_and_resets() -> None:
    clock = ManualClock()
    dispatcher = _dispatcher(clock, backoff_multiplier=2.0, backoff_ceiling_seconds=60.0)

    async def ok() -> str:
        return "ok"

    async def scenario() -> list[float]:
        remaining: list[float] = []
        for _ in range(4):
            with pytest.raises(ProviderRateLimitedError):
                await dispatcher.dispatch("p", _throttled)
            remaining.append(dispatcher.backoff_remaining("p"))
        assert await dispatcher.dispatch("p", ok) == "ok"
        remaining.append(dispatcher.backoff_remaining("p"))
        return remaining

    remaining = asyncio.run(scenario())

    assert remaining == [15.0, 30.0, 60.0, 60.0, 0.0]
    assert clock.sleeps[:4] == [15.0, 30.0, 60.0, 60.0]


def test_other_errors_leave_backoff_untouched() -> None:
    clock = ManualClock()
    dispatcher = _dispatcher(clock, backoff_ceiling_seconds=40.0)

    async def broken() -> None:
        raise ValueError("bad payload")

    async def scenario() -> float:
        with pytest.raises(ProviderRateLimitedError):
            await dispatcher.dispatch("p", _throttled)
        with pytest.raises(ValueError):
            await dispatcher.dispatch("p", broken)
        with pytest.raises(ProviderRateLimitedError):
            await dispatcher.dispatch("p", _throttled)
        return dispatcher.backoff_remaining("p")

    # 10s after the first throttle, doubled to 20s after the second.
    assert asyncio.run(scenario()) == pytest.approx(20.0)


def test_backoff_is_isolated_per_provider() -> None:
    clock = ManualClock()
    dispatcher = RateLimitedDispatcher(clock=clock, sleep=clock.sleep)

    async def ok() -> str:
        return "ok"

    async def scenario() -> str:
        with pytest.raises(ProviderRateLimitedError):
            await dispatcher.dispatch("slow", _throttled)
        return await dispatcher.dispatch("fast", ok)

    assert asyncio.run(scenario()) == "ok"
    assert clock.sleeps == []
    assert dispatcher.backoff_remaining("slow") > 0
    assert dispatcher.backoff_remaining("fast") == 0.0


def test_unknown_provider_uses_default_limits() -> None:
    dispatcher = RateLimitedDispatcher()

    async def ok() -> int:
        return 1

    assert asyncio.run(dispatcher.dispatch("never-configured", ok)) == 1
    assert dispatcher.in_flight("never-configured") == 0
