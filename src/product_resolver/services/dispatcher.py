"""Per-provider rate limiting with FIFO queues and exponential backoff."""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

from product_resolver.services.providers import ProviderRateLimitedError

T = TypeVar("T")

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderLimits:
    """Throttling configuration for a single provider."""

    requests_per_second: float = 5.0
    max_concurrent: int = 4
    backoff_multiplier: float = 2.0
    backoff_ceiling_seconds: float = 60.0

    @property
    def min_interval_seconds(self) -> float:
        if self.requests_per_second <= 0:
            return 0.0
        return 1.0 / self.requests_per_second


DEFAULT_PROVIDER_LIMITS: dict[str, ProviderLimits] = {
    # Open Facts asks for at most 100 product reads per minute.
    "openfoodfacts": ProviderLimits(requests_per_second=1.5, max_concurrent=4),
    "openbeautyfacts": ProviderLimits(requests_per_second=1.5, max_concurrent=2),
    "openpetfoodfacts": ProviderLimits(requests_per_second=1.5, max_concurrent=2),
    "openproductsfacts": ProviderLimits(requests_per_second=1.5, max_concurrent=2),
    "usda_fooddata": ProviderLimits(requests_per_second=2.0, max_concurrent=2),
    "upcitemdb": ProviderLimits(
        requests_per_second=0.5, max_concurrent=1, backoff_ceiling_seconds=120.0
    ),
    "web_search": ProviderLimits(requests_per_second=1.0, max_concurrent=2),
}


@dataclass
class _ProviderState:
    limits: ProviderLimits
    queue: deque[object] = field(default_factory=deque)
    in_flight: int = 0
    last_call_at: float | None = None
    backoff_until: float = 0.0
    current_backoff: float = 0.0
    condition: asyncio.Condition = field(default_factory=asyncio.Condition)


@dataclass
class RateLimitedDispatcher:
    """Admits provider calls under per-provider rate, concurrency and backoff.

    State is keyed by provider id, so a throttled or slow provider only ever
    delays its own queue. ``clock`` and ``sleep`` are injectable for tests.
    """

    limits: dict[str, ProviderLimits] = field(
        default_factory=lambda: dict(DEFAULT_PROVIDER_LIMITS)
    )
    default_limits: ProviderLimits = field(default_factory=ProviderLimits)
    clock: Callable[[], float] = time.monotonic
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    _states: dict[str, _ProviderState] = field(default_factory=dict, init=False)

    async def dispatch(
        self, provider_id: str, request_fn: Callable[[], Awaitable[T]]
    ) -> T:
        """Run ``request_fn`` once the provider's limits admit it."""
        state = self._state_for(provider_id)
        ticket = object()
        state.queue.append(ticket)
        try:
            await self._wait_for_turn(state, ticket)
        finally:
            if ticket in state.queue:
                state.queue.remove(ticket)
                await self._notify(state)

        state.in_flight += 1
        state.last_call_at = self.clock()
        await self._notify(state)
        try:
            result = await request_fn()
        except ProviderRateLimitedError:
            self._apply_backoff(provider_id, state)
            raise
        else:
            state.current_backoff = 0.0
            state.backoff_until = 0.0
            return result
        finally:
            state.in_flight -= 1
            await self._notify(state)

    def backoff_remaining(self, provider_id: str) -> float:
        """Seconds until the provider's backoff window closes."""
        state = self._states.get(provider_id)
        if state is None:
            return 0.0
        return max(0.0, state.backoff_until - self.clock())

    def in_flight(self, provider_id: str) -> int:
        state = self._states.get(provider_id)
        return state.in_flight if state else 0

    def _state_for(self, provider_id: str) -> _ProviderState:
        state = self._states.get(provider_id)
        if state is None:
            limits = self.limits.get(provider_id, self.default_limits)
            state = _ProviderState(limits=limits)
            self._states[provider_id] = state
        return state

    async def _wait_for_turn(self, state: _ProviderState, ticket: object) -> None:
        while True:
            async with state.condition:
                while not (
                    state.queue
                    and state.queue[0] is ticket
                    and state.in_flight < state.limits.max_concurrent
                ):
                    await state.condition.wait()
            delay = self._admission_delay(state)
            if delay <= 0:
                state.queue.popleft()
                return
            await self.sleep(delay)

    def _admission_delay(self, state: _ProviderState) -> float:
        now = self.clock()
        delay = state.backoff_until - now
        if state.last_call_at is not None:
            interval_wait = state.last_call_at + state.limits.min_interval_seconds
            delay = max(delay, interval_wait - now)
        return delay

    def _apply_backoff(self, provider_id: str, state: _ProviderState) -> None:
        limits = state.limits
        if state.current_backoff <= 0:
            backoff = limits.backoff_ceiling_seconds / 4
        else:
            backoff = min(
                state.current_backoff * limits.backoff_multiplier,
                limits.backoff_ceiling_seconds,
            )
        state.current_backoff = backoff
        state.backoff_until = self.clock() + backoff
        _logger.warning(
            "Provider %s rate limited, backing off for %.1fs", provider_id, backoff
        )

    @staticmethod
    async def _notify(state: _ProviderState) -> None:
        async with state.condition:
            state.condition.notify_all()
