"""Minimum-interval request throttle shared by all callers of one provider."""

import asyncio
import time
from collections.abc import Awaitable, Callable

from coinfeed.logging import get_logger

logger = get_logger(__name__)


class RequestThrottle:
    """Enforces a minimum interval between consecutive outbound requests.

    The time of the last request is process-wide shared state: every
    coroutine calling ``wait()`` on the same instance is serialized behind an
    asyncio.Lock, so two concurrent requests can never both observe a stale
    "last call" value and fire back to back.

    Args:
        min_interval: Seconds that must separate two requests.
        clock: Monotonic time source (injectable for tests).
        sleep: Awaitable sleep function (injectable for tests).
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_call: float | None = None
        self._lock = asyncio.Lock()

    async def wait(self) -> float:
        """Block until a request may be sent, then record it.

        Returns:
            Seconds spent waiting (0.0 when no wait was needed).
        """
        async with self._lock:
            waited = 0.0
            if self._last_call is not None:
                remaining = self._last_call + self._min_interval - self._clock()
                if remaining > 0:
                    logger.debug("request_throttled", wait_seconds=round(remaining, 3))
                    await self._sleep(remaining)
                    waited = remaining
            self._last_call = self._clock()
            return waited
