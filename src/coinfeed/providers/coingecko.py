"""CoinGecko market data client (primary provider).

Uses the free public API. Requests are throttled to one every
``min_interval`` seconds across all callers; the free tier answers bursts
with HTTP 429, which the aggregator turns into a cooldown.
"""

from typing import Any

from coinfeed.logging import get_logger
from coinfeed.models import CoinDetail, CoinSummary, PriceSeries
from coinfeed.providers.base import HttpProvider, decimal_or_zero, to_decimal, to_int

logger = get_logger(__name__)


class CoinGeckoProvider(HttpProvider):
    """Fetches coins, coin details and price charts from CoinGecko.

    Args:
        api_key: Optional demo API key, sent as ``x_cg_demo_api_key``.
        **kwargs: Forwarded to HttpProvider (base_url, timeout, throttle, ...).
    """

    name = "coingecko"

    def __init__(self, api_key: str = "", **kwargs: Any) -> None:
        kwargs.setdefault("base_url", "https://api.coingecko.com/api/v3")
        super().__init__(**kwargs)
        self._api_key = api_key

    def _default_params(self) -> dict[str, str]:
        return {"x_cg_demo_api_key": self._api_key} if self._api_key else {}

    async def fetch_top_coins(self, limit: int) -> list[CoinSummary]:
        data = await self._get_json(
            "coins/markets",
            {
                "vs_currency": "usd",
                "order": "market_cap_desc",
                "per_page": limit,
                "page": 1,
                "sparkline": False,
            },
        )
        with self._parsing("coins/markets"):
            coins = [self._map_market(item) for item in data]
        logger.debug("coingecko_top_coins", count=len(coins))
        return coins

    async def fetch_coin_detail(self, coin_id: str) -> CoinDetail:
        data = await self._get_json(
            f"coins/{coin_id}",
            {
                "localization": False,
                "tickers": False,
                "market_data": True,
                "community_data": True,
                "developer_data": False,
                "sparkline": False,
            },
        )
        with self._parsing("coins/{id}"):
            return self._map_detail(data)

    async def fetch_price_history(self, coin_id: str, days: int) -> PriceSeries:
        data = await self._get_json(
            f"coins/{coin_id}/market_chart",
            {"vs_currency": "usd", "days": days},
        )
        with self._parsing("market_chart"):
            pairs = [
                (int(ts), price)
                for ts, raw in data["prices"]
                if (price := to_decimal(raw)) is not None
            ]
            return PriceSeries.from_pairs(coin_id, coin_id, pairs)

    # ──────────────────────────────────────────────
    # Mapping
    # ──────────────────────────────────────────────

    @staticmethod
    def _map_market(item: dict[str, Any]) -> CoinSummary:
        return CoinSummary(
            id=item["id"],
            symbol=(item.get("symbol") or "").upper(),
            name=item.get("name") or "",
            current_price=decimal_or_zero(item.get("current_price")),
            market_cap=decimal_or_zero(item.get("market_cap")),
            volume_24h=decimal_or_zero(item.get("total_volume")),
            price_change_percentage_24h=to_decimal(item.get("price_change_percentage_24h")),
            market_cap_rank=to_int(item.get("market_cap_rank")),
            image_url=item.get("image") or "",
        )

    @staticmethod
    def _map_detail(data: dict[str, Any]) -> CoinDetail:
        market = data.get("market_data") or {}

        def usd(key: str) -> Any:
            return (market.get(key) or {}).get("usd")

        homepages = [url for url in (data.get("links") or {}).get("homepage") or [] if url]
        return CoinDetail(
            id=data["id"],
            symbol=(data.get("symbol") or "").upper(),
            name=data.get("name") or "",
            current_price=decimal_or_zero(usd("current_price")),
            market_cap=decimal_or_zero(usd("market_cap")),
            volume_24h=decimal_or_zero(usd("total_volume")),
            price_change_percentage_24h=to_decimal(market.get("price_change_percentage_24h")),
            market_cap_rank=to_int(data.get("market_cap_rank")),
            image_url=(data.get("image") or {}).get("large") or "",
            description=(data.get("description") or {}).get("en") or "",
            homepage=homepages[0] if homepages else "",
            circulating_supply=decimal_or_zero(market.get("circulating_supply")),
            total_supply=to_decimal(market.get("total_supply")),
            max_supply=to_decimal(market.get("max_supply")),
        )
