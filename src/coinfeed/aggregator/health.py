"""Per-provider health state machine with rate-limit cooldowns.

Each configured provider is either AVAILABLE or COOLING_DOWN until a
deadline. A rate-limit failure moves a provider into COOLING_DOWN for its
fixed cooldown; the move back to AVAILABLE is lazy and happens the first
time a read observes ``now > cooldown_until``. No timer task is involved.

Every read and write of a provider's record happens under that provider's
asyncio.Lock, so concurrent requests never interleave a check with an update.
"""

import asyncio
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import Enum

from coinfeed.logging import get_logger

logger = get_logger(__name__)


class ProviderState(str, Enum):
    """Provider availability."""

    AVAILABLE = "available"
    COOLING_DOWN = "cooling_down"


@dataclass
class ProviderHealth:
    """Mutable health record for one provider. Lives for the whole process."""

    name: str
    cooldown_seconds: float
    state: ProviderState = ProviderState.AVAILABLE
    cooldown_until: float | None = None  # clock() value
    last_failure: str | None = None
    failure_count: int = 0
    rate_limit_count: int = 0
    success_count: int = 0


class ProviderHealthTracker:
    """Tracks provider availability and picks the provider to try first.

    Construct one instance per aggregator and inject it; tests build isolated
    instances with a fake clock.

    Args:
        cooldowns: Provider name -> cooldown seconds after a rate limit.
            Insertion order is the provider priority order.
        clock: Monotonic time source in seconds.
    """

    def __init__(
        self,
        cooldowns: dict[str, float],
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if not cooldowns:
            raise ValueError("at least one provider is required")
        self._clock = clock
        self._health = {
            name: ProviderHealth(name=name, cooldown_seconds=seconds)
            for name, seconds in cooldowns.items()
        }
        self._locks = {name: asyncio.Lock() for name in cooldowns}
        self._last_served: str | None = None

    @property
    def providers(self) -> list[str]:
        return list(self._health)

    @property
    def current_provider(self) -> str:
        """Provider that served the most recent successful request.

        Falls back to the highest-priority provider not cooling down when
        nothing has been served yet or the last source has since been rate
        limited.
        """
        now = self._clock()

        def cooling(health: ProviderHealth) -> bool:
            return health.cooldown_until is not None and now <= health.cooldown_until

        if self._last_served is not None and not cooling(self._health[self._last_served]):
            return self._last_served
        for health in self._health.values():
            if not cooling(health):
                return health.name
        return self.providers[-1]

    # ──────────────────────────────────────────────
    # Queries
    # ──────────────────────────────────────────────

    async def is_available(self, provider: str) -> bool:
        """Return True if ``provider`` may be called now."""
        health = self._health[provider]
        async with self._locks[provider]:
            self._expire_cooldown(health)
            return health.state is ProviderState.AVAILABLE

    async def select_provider(self, providers: Sequence[str]) -> str:
        """Return the first AVAILABLE provider in priority order.

        When every provider is cooling down, the last (lowest-priority)
        provider is returned as a forced last resort; the call may still fail.
        """
        if not providers:
            raise ValueError("provider list is empty")
        for name in providers:
            if await self.is_available(name):
                return name
        logger.warning("all_providers_cooling_down", forced_provider=providers[-1])
        return providers[-1]

    async def snapshot(self) -> list[dict]:
        """Return a JSON-friendly view of every provider's state, in priority order."""
        result = []
        for name, health in self._health.items():
            async with self._locks[name]:
                self._expire_cooldown(health)
                remaining = (
                    max(0.0, health.cooldown_until - self._clock())
                    if health.cooldown_until is not None
                    else 0.0
                )
                result.append({
                    "name": name,
                    "state": health.state.value,
                    "cooldown_remaining_seconds": round(remaining, 1),
                    "failure_count": health.failure_count,
                    "rate_limit_count": health.rate_limit_count,
                    "success_count": health.success_count,
                    "last_failure": health.last_failure,
                })
        return result

    # ──────────────────────────────────────────────
    # Updates
    # ──────────────────────────────────────────────

    async def report_failure(self, provider: str, is_rate_limit: bool, reason: str = "") -> None:
        """Record a failed call.

        Only rate-limit failures start a cooldown; other failures are counted
        but leave the provider AVAILABLE.
        """
        health = self._health[provider]
        async with self._locks[provider]:
            health.failure_count += 1
            health.last_failure = reason or None
            if not is_rate_limit:
                return
            health.rate_limit_count += 1
            health.state = ProviderState.COOLING_DOWN
            health.cooldown_until = self._clock() + health.cooldown_seconds
        logger.warning(
            "provider_cooldown_started",
            provider=provider,
            cooldown_seconds=health.cooldown_seconds,
        )

    async def report_success(self, provider: str) -> None:
        """Record a successful call and mark ``provider`` as the current source."""
        health = self._health[provider]
        async with self._locks[provider]:
            self._expire_cooldown(health)
            health.success_count += 1
            self._last_served = provider

    def _expire_cooldown(self, health: ProviderHealth) -> None:
        """Lazy COOLING_DOWN -> AVAILABLE transition. Caller holds the lock."""
        if health.state is not ProviderState.COOLING_DOWN:
            return
        if health.cooldown_until is not None and self._clock() > health.cooldown_until:
            health.state = ProviderState.AVAILABLE
            health.cooldown_until = None
            logger.info("provider_cooldown_expired", provider=health.name)
