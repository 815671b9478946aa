"""CoinCap market data client (first fallback provider).

Every CoinCap response wraps its payload as ``{"data": ..., "timestamp": ...}``
and encodes numbers as strings. Asset ids follow the same slug convention as
CoinGecko for the major coins (``bitcoin``, ``ethereum``).
"""

import time
from typing import Any

from coinfeed.logging import get_logger
from coinfeed.models import CoinDetail, CoinSummary, PriceSeries
from coinfeed.providers.base import HttpProvider, decimal_or_zero, to_decimal, to_int

logger = get_logger(__name__)

_DAY_MS = 86_400_000

ICON_URL = "https://assets.coincap.io/assets/icons/{symbol}@2x.png"


def history_interval(days: int) -> str:
    """Pick the coarsest CoinCap candle interval that still resolves ``days``."""
    if days <= 1:
        return "m5"
    if days <= 7:
        return "h1"
    if days <= 30:
        return "h6"
    return "d1"


class CoinCapProvider(HttpProvider):
    """Fetches assets and asset history from CoinCap v2."""

    name = "coincap"

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("base_url", "https://api.coincap.io/v2")
        super().__init__(**kwargs)

    async def fetch_top_coins(self, limit: int) -> list[CoinSummary]:
        payload = await self._get_json("assets", {"limit": limit})
        with self._parsing("assets"):
            return [self._map_asset(item) for item in payload["data"]]

    async def fetch_coin_detail(self, coin_id: str) -> CoinDetail:
        payload = await self._get_json(f"assets/{coin_id}")
        with self._parsing("assets/{id}"):
            asset = payload["data"]
            summary = self._map_asset(asset)
            return CoinDetail(
                **vars(summary),
                circulating_supply=decimal_or_zero(asset.get("supply")),
                total_supply=to_decimal(asset.get("supply")),
                max_supply=to_decimal(asset.get("maxSupply")),
                homepage=asset.get("explorer") or "",
            )

    async def fetch_price_history(self, coin_id: str, days: int) -> PriceSeries:
        end_ms = int(time.time() * 1000)
        start_ms = end_ms - days * _DAY_MS
        payload = await self._get_json(
            f"assets/{coin_id}/history",
            {"interval": history_interval(days), "start": start_ms, "end": end_ms},
        )
        with self._parsing("history"):
            pairs = [
                (int(item["time"]), price)
                for item in payload["data"]
                if (price := to_decimal(item.get("priceUsd"))) is not None
            ]
            return PriceSeries.from_pairs(coin_id, coin_id, pairs)

    @staticmethod
    def _map_asset(asset: dict[str, Any]) -> CoinSummary:
        symbol = (asset.get("symbol") or "").upper()
        return CoinSummary(
            id=asset["id"],
            symbol=symbol,
            name=asset.get("name") or "",
            current_price=decimal_or_zero(asset.get("priceUsd")),
            market_cap=decimal_or_zero(asset.get("marketCapUsd")),
            volume_24h=decimal_or_zero(asset.get("volumeUsd24Hr")),
            price_change_percentage_24h=to_decimal(asset.get("changePercent24Hr")),
            market_cap_rank=to_int(asset.get("rank")),
            image_url=ICON_URL.format(symbol=symbol.lower()) if symbol else "",
        )
