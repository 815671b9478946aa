"""Abstract market data provider interface and shared HTTP plumbing.

Defines the contract for all provider implementations. The aggregator
depends only on this interface and on the normalized models, keeping each
provider's native schema isolated in its concrete client.
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation
from typing import Any

import aiohttp

from coinfeed.exceptions import ProviderError, ProviderRateLimited, ProviderUnavailable
from coinfeed.logging import get_logger
from coinfeed.models import CoinDetail, CoinSummary, PriceSeries
from coinfeed.providers.throttle import RequestThrottle

logger = get_logger(__name__)


class MarketDataProvider(ABC):
    """Abstract base class for market data provider clients.

    Every fetch either returns normalized data or raises
    ``ProviderRateLimited`` / ``ProviderUnavailable``.
    """

    name: str

    @abstractmethod
    async def fetch_top_coins(self, limit: int) -> list[CoinSummary]:
        """Fetch the top ``limit`` coins by market cap."""
        ...

    @abstractmethod
    async def fetch_coin_detail(self, coin_id: str) -> CoinDetail:
        """Fetch descriptive and market data for one coin."""
        ...

    @abstractmethod
    async def fetch_price_history(self, coin_id: str, days: int) -> PriceSeries:
        """Fetch USD price history covering the last ``days`` days."""
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release network resources."""
        ...


def to_decimal(value: Any) -> Decimal | None:
    """Parse an upstream number (JSON number or numeric string) into Decimal.

    Returns None for missing or non-numeric values.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return result if result.is_finite() else None


def decimal_or_zero(value: Any) -> Decimal:
    """Like ``to_decimal`` but maps missing values to zero."""
    parsed = to_decimal(value)
    return parsed if parsed is not None else Decimal("0")


def to_int(value: Any) -> int | None:
    parsed = to_decimal(value)
    return int(parsed) if parsed is not None else None


class HttpProvider(MarketDataProvider):
    """Base for providers speaking JSON over HTTP via a lazily created aiohttp session.

    Args:
        base_url: Provider API root, without trailing slash.
        timeout: Total timeout per request in seconds.
        user_agent: User-Agent header value.
        throttle: Optional minimum-interval throttle applied before every request.
        session: Optional pre-built session (tests); not closed by ``close()``.
    """

    name = "http"

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        user_agent: str = "coinfeed/0.1",
        throttle: RequestThrottle | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._user_agent = user_agent
        self._throttle = throttle
        self._session = session
        self._owns_session = session is None

    async def _ensure_session(self) -> aiohttp.ClientSession:
        """Create the HTTP session on first use."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout),
                headers={"Accept": "application/json", "User-Agent": self._user_agent},
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _default_params(self) -> dict[str, str]:
        return {}

    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET ``path`` and decode the JSON body.

        Raises:
            ProviderRateLimited: on HTTP 429.
            ProviderUnavailable: on any other non-200 status, connection
                error, timeout or undecodable body.
        """
        if self._throttle is not None:
            await self._throttle.wait()

        session = await self._ensure_session()
        url = f"{self._base_url}/{path.lstrip('/')}"
        query = {**self._default_params(), **(params or {})}
        query = {k: str(v).lower() if isinstance(v, bool) else str(v) for k, v in query.items()}

        try:
            async with session.get(url, params=query) as response:
                if response.status == 429:
                    logger.warning("provider_http_429", provider=self.name, path=path)
                    raise ProviderRateLimited(self.name, f"HTTP 429 for {path}")
                if response.status != 200:
                    raise ProviderUnavailable(self.name, f"HTTP {response.status} for {path}")
                return await response.json(content_type=None)
        except ProviderError:
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise ProviderUnavailable(self.name, f"{type(e).__name__}: {e}") from e

    @contextmanager
    def _parsing(self, what: str) -> Iterator[None]:
        """Convert schema surprises in a provider payload into ProviderUnavailable."""
        try:
            yield
        except ProviderError:
            raise
        except (KeyError, IndexError, TypeError, ValueError, ArithmeticError) as e:
            raise ProviderUnavailable(
                self.name, f"malformed {what} payload: {type(e).__name__}: {e}"
            ) from e
