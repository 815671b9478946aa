"""Tests for provider payload normalization.

Each provider's ``_get_json`` is replaced with an AsyncMock returning a
trimmed real-world payload, so only the mapping to CoinSummary, CoinDetail
and PriceSeries is exercised.
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from coinfeed.exceptions import ProviderUnavailable
from coinfeed.indicators.planner import plan_lookback
from coinfeed.indicators.specs import SmaSpec
from coinfeed.providers.coincap import CoinCapProvider, history_interval
from coinfeed.providers.coingecko import CoinGeckoProvider
from coinfeed.providers.yahoo import YahooFinanceProvider, chart_interval, chart_range, to_yahoo_symbol


class TestCoinGecko:
    @pytest.mark.asyncio
    async def test_top_coins(self) -> None:
        provider = CoinGeckoProvider()
        provider._get_json = AsyncMock(return_value=[
            {
                "id": "bitcoin",
                "symbol": "btc",
                "name": "Bitcoin",
                "image": "https://img/btc.png",
                "current_price": 64250.5,
                "market_cap": 1265000000000,
                "market_cap_rank": 1,
                "total_volume": 28000000000,
                "price_change_percentage_24h": -1.25,
            },
            {"id": "newcoin", "symbol": "new", "name": "New", "current_price": None},
        ])

        coins = await provider.fetch_top_coins(2)

        assert coins[0].symbol == "BTC"
        assert coins[0].current_price == Decimal("64250.5")
        assert coins[0].price_change_percentage_24h == Decimal("-1.25")
        assert coins[0].market_cap_rank == 1
        assert coins[1].current_price == Decimal("0")
        assert coins[1].price_change_percentage_24h is None
        params = provider._get_json.call_args.args[1]
        assert params["per_page"] == 2
        assert params["order"] == "market_cap_desc"

    @pytest.mark.asyncio
    async def test_coin_detail(self) -> None:
        provider = CoinGeckoProvider()
        provider._get_json = AsyncMock(return_value={
            "id": "ethereum",
            "symbol": "eth",
            "name": "Ethereum",
            "market_cap_rank": 2,
            "image": {"large": "https://img/eth.png"},
            "description": {"en": "Smart contracts."},
            "links": {"homepage": ["", "https://ethereum.org"]},
            "market_data": {
                "current_price": {"usd": 3100.12},
                "market_cap": {"usd": 372000000000},
                "total_volume": {"usd": 15000000000},
                "price_change_percentage_24h": 2.5,
                "circulating_supply": 120000000.5,
                "total_supply": 120000000.5,
                "max_supply": None,
            },
        })

        coin = await provider.fetch_coin_detail("ethereum")

        assert coin.id == "ethereum"
        assert coin.current_price == Decimal("3100.12")
        assert coin.homepage == "https://ethereum.org"
        assert coin.description == "Smart contracts."
        assert coin.max_supply is None
        assert coin.image_url == "https://img/eth.png"

    @pytest.mark.asyncio
    async def test_price_history_is_sorted_and_deduplicated(self) -> None:
        provider = CoinGeckoProvider()
        provider._get_json = AsyncMock(return_value={
            "prices": [[2000, 11.0], [1000, 10.0], [2000, 12.0], [3000, None]],
            "market_caps": [],
            "total_volumes": [],
        })

        series = await provider.fetch_price_history("bitcoin", 30)

        assert series.timestamps == [1000, 2000]
        assert series.prices == [Decimal("10.0"), Decimal("12.0")]
        provider._get_json.assert_awaited_once_with(
            "coins/bitcoin/market_chart", {"vs_currency": "usd", "days": 30}
        )

    @pytest.mark.asyncio
    async def test_malformed_payload_is_unavailable(self) -> None:
        provider = CoinGeckoProvider()
        provider._get_json = AsyncMock(return_value={"error": "coin not found"})
        with pytest.raises(ProviderUnavailable):
            await provider.fetch_price_history("nope", 30)


class TestCoinCap:
    @pytest.mark.parametrize(
        ("days", "interval"), [(1, "m5"), (7, "h1"), (8, "h6"), (30, "h6"), (31, "d1"), (365, "d1")]
    )
    def test_history_interval(self, days: int, interval: str) -> None:
        assert history_interval(days) == interval

    @pytest.mark.asyncio
    async def test_top_coins_parses_string_numbers(self) -> None:
        provider = CoinCapProvider()
        provider._get_json = AsyncMock(return_value={
            "data": [{
                "id": "bitcoin",
                "rank": "1",
                "symbol": "BTC",
                "name": "Bitcoin",
                "supply": "19700000.0",
                "maxSupply": "21000000.0",
                "marketCapUsd": "1265000000000.12",
                "volumeUsd24Hr": "9000000000.5",
                "priceUsd": "64250.1234",
                "changePercent24Hr": "-0.8123",
            }],
            "timestamp": 1700000000000,
        })

        coins = await provider.fetch_top_coins(1)

        assert coins[0].current_price == Decimal("64250.1234")
        assert coins[0].market_cap_rank == 1
        assert coins[0].image_url == "https://assets.coincap.io/assets/icons/btc@2x.png"

    @pytest.mark.asyncio
    async def test_coin_detail_supply(self) -> None:
        provider = CoinCapProvider()
        provider._get_json = AsyncMock(return_value={
            "data": {
                "id": "bitcoin",
                "rank": "1",
                "symbol": "BTC",
                "name": "Bitcoin",
                "supply": "19700000",
                "maxSupply": "21000000",
                "priceUsd": "64000",
                "explorer": "https://blockchain.info/",
            },
        })

        coin = await provider.fetch_coin_detail("bitcoin")

        assert coin.circulating_supply == Decimal("19700000")
        assert coin.max_supply == Decimal("21000000")
        assert coin.homepage == "https://blockchain.info/"

    @pytest.mark.asyncio
    async def test_price_history(self) -> None:
        provider = CoinCapProvider()
        provider._get_json = AsyncMock(return_value={
            "data": [
                {"priceUsd": "100.5", "time": 1000},
                {"priceUsd": "101.5", "time": 2000},
            ],
        })

        series = await provider.fetch_price_history("bitcoin", 7)

        assert series.prices == [Decimal("100.5"), Decimal("101.5")]
        path, params = provider._get_json.call_args.args
        assert path == "assets/bitcoin/history"
        assert params["interval"] == "h1"
        assert params["end"] - params["start"] == 7 * 86_400_000


class TestYahoo:
    def test_symbol_mapping(self) -> None:
        assert to_yahoo_symbol("bitcoin") == "BTC-USD"
        assert to_yahoo_symbol("avalanche-2") == "AVAX-USD"
        assert to_yahoo_symbol("pepe") == "PEPE-USD"

    @pytest.mark.parametrize(
        ("days", "interval", "range_"),
        [(1, "1h", "1d"), (5, "1h", "5d"), (7, "1h", "7d"), (30, "1d", "1mo"),
         (90, "1d", "3mo"), (180, "1d", "6mo"), (365, "1d", "1y"), (1000, "1d", "5y"),
         (4000, "1d", "max")],
    )
    def test_chart_parameters(self, days: int, interval: str, range_: str) -> None:
        assert chart_interval(days) == interval
        assert chart_range(days) == range_

    @pytest.mark.asyncio
    async def test_price_history_converts_seconds_and_skips_nulls(self) -> None:
        provider = YahooFinanceProvider()
        provider._get_json = AsyncMock(return_value={
            "chart": {"result": [{
                "timestamp": [1700000000, 1700003600, 1700007200],
                "indicators": {"quote": [{"close": [36000.5, None, 36100.25]}]},
            }]},
        })

        series = await provider.fetch_price_history("bitcoin", 7)

        assert series.timestamps == [1700000000000, 1700007200000]
        assert series.prices == [Decimal("36000.5"), Decimal("36100.25")]
        assert series.symbol == "BTC"
        assert provider._get_json.call_args.args[0] == "v8/finance/chart/BTC-USD"

    @pytest.mark.asyncio
    async def test_long_window_requests_daily_bars(self) -> None:
        """A 100-day SMA50 request plans 150 days; weekly bars would leave ~21 samples."""
        provider = YahooFinanceProvider()
        provider._get_json = AsyncMock(return_value={
            "chart": {"result": [{"timestamp": [1700000000], "indicators": {"quote": [{"close": [1.0]}]}}]},
        })
        fetch_days = plan_lookback(100, [SmaSpec(50)])

        await provider.fetch_price_history("bitcoin", fetch_days)

        assert fetch_days == 150
        assert provider._get_json.call_args.args[1] == {"range": "6mo", "interval": "1d"}

    @pytest.mark.asyncio
    async def test_top_coins_ranked_by_market_cap(self) -> None:
        provider = YahooFinanceProvider()
        provider._get_json = AsyncMock(return_value={"quoteResponse": {"result": [
            {"symbol": "ETH-USD", "shortName": "Ethereum USD", "regularMarketPrice": 3100,
             "marketCap": 372000000000, "regularMarketVolume": 1, "regularMarketChangePercent": 1.1},
            {"symbol": "BTC-USD", "shortName": "Bitcoin USD", "regularMarketPrice": 64000,
             "marketCap": 1265000000000, "regularMarketVolume": 2, "regularMarketChangePercent": -0.4},
        ]}})

        coins = await provider.fetch_top_coins(2)

        assert [c.id for c in coins] == ["bitcoin", "ethereum"]
        assert [c.market_cap_rank for c in coins] == [1, 2]
        assert provider._get_json.call_args.args[1] == {"symbols": "BTC-USD,ETH-USD"}

    @pytest.mark.asyncio
    async def test_unknown_coin_detail_is_unavailable(self) -> None:
        provider = YahooFinanceProvider()
        provider._get_json = AsyncMock(return_value={"quoteResponse": {"result": []}})
        with pytest.raises(ProviderUnavailable):
            await provider.fetch_coin_detail("nope")
