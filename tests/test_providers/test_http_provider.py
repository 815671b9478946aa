"""Tests for the shared HTTP plumbing: status classification and sessions."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from coinfeed.exceptions import ProviderRateLimited, ProviderUnavailable
from coinfeed.providers.base import decimal_or_zero, to_decimal, to_int
from coinfeed.providers.coingecko import CoinGeckoProvider


def _session(status: int = 200, payload=None, error: BaseException | None = None) -> MagicMock:
    """Build a mock aiohttp session whose get() yields one response."""
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=payload)

    ctx = MagicMock()
    ctx.__aenter__ = AsyncMock(return_value=response)
    ctx.__aexit__ = AsyncMock(return_value=False)

    session = MagicMock()
    session.closed = False
    if error is not None:
        session.get = MagicMock(side_effect=error)
    else:
        session.get = MagicMock(return_value=ctx)
    session.close = AsyncMock()
    return session


class TestGetJson:
    @pytest.mark.asyncio
    async def test_success_returns_payload_and_builds_query(self) -> None:
        session = _session(payload=[{"id": "bitcoin"}])
        provider = CoinGeckoProvider(session=session, api_key="demo-key")

        data = await provider._get_json("coins/markets", {"per_page": 5, "sparkline": False})

        assert data == [{"id": "bitcoin"}]
        url = session.get.call_args.args[0]
        params = session.get.call_args.kwargs["params"]
        assert url == "https://api.coingecko.com/api/v3/coins/markets"
        assert params == {"x_cg_demo_api_key": "demo-key", "per_page": "5", "sparkline": "false"}

    @pytest.mark.asyncio
    async def test_429_is_rate_limited(self) -> None:
        provider = CoinGeckoProvider(session=_session(status=429))
        with pytest.raises(ProviderRateLimited) as exc_info:
            await provider._get_json("coins/markets")
        assert exc_info.value.provider == "coingecko"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [404, 500, 503])
    async def test_other_status_is_unavailable(self, status: int) -> None:
        provider = CoinGeckoProvider(session=_session(status=status))
        with pytest.raises(ProviderUnavailable, match=str(status)):
            await provider._get_json("coins/markets")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [aiohttp.ClientConnectionError("refused"), asyncio.TimeoutError()],
    )
    async def test_network_errors_are_unavailable(self, error: BaseException) -> None:
        provider = CoinGeckoProvider(session=_session(error=error))
        with pytest.raises(ProviderUnavailable):
            await provider._get_json("coins/markets")

    @pytest.mark.asyncio
    async def test_cancellation_is_not_converted(self) -> None:
        provider = CoinGeckoProvider(session=_session(error=asyncio.CancelledError()))
        with pytest.raises(asyncio.CancelledError):
            await provider._get_json("coins/markets")

    @pytest.mark.asyncio
    async def test_throttle_applied_before_request(self) -> None:
        throttle = MagicMock()
        throttle.wait = AsyncMock(return_value=0.0)
        provider = CoinGeckoProvider(session=_session(payload=[]), throttle=throttle)

        await provider._get_json("coins/markets")

        throttle.wait.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_injected_session_not_closed(self) -> None:
        session = _session()
        provider = CoinGeckoProvider(session=session)
        await provider.close()
        session.close.assert_not_awaited()


class TestNumberParsing:
    def test_to_decimal(self) -> None:
        assert to_decimal("123.45") == to_decimal(123.45)
        assert to_decimal(None) is None
        assert to_decimal("n/a") is None
        assert to_decimal("NaN") is None
        assert to_decimal(True) is None

    def test_decimal_or_zero_and_int(self) -> None:
        assert decimal_or_zero(None) == 0
        assert to_int("7") == 7
        assert to_int(None) is None
