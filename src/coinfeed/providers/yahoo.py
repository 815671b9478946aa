"""Yahoo Finance market data client (last-resort fallback provider).

Yahoo has no crypto ranking endpoint, so "top coins" is a quote for a
fixed list of major tickers. Coin ids are mapped to ``{TICKER}-USD``
symbols, and Yahoo tickers are mapped back to the slug ids used by the
other providers so results stay interchangeable.
"""

from typing import Any

from coinfeed.logging import get_logger
from coinfeed.models import CoinDetail, CoinSummary, PriceSeries
from coinfeed.providers.base import HttpProvider, decimal_or_zero, to_decimal

logger = get_logger(__name__)

# Static mapping from slug coin ids to Yahoo base tickers, in market cap order
COIN_ID_TO_TICKER: dict[str, str] = {
    "bitcoin": "BTC",
    "ethereum": "ETH",
    "binancecoin": "BNB",
    "solana": "SOL",
    "ripple": "XRP",
    "cardano": "ADA",
    "dogecoin": "DOGE",
    "avalanche-2": "AVAX",
    "polkadot": "DOT",
    "tron": "TRX",
    "chainlink": "LINK",
    "litecoin": "LTC",
}

TICKER_TO_COIN_ID: dict[str, str] = {v: k for k, v in COIN_ID_TO_TICKER.items()}

ICON_URL = "https://assets.coincap.io/assets/icons/{symbol}@2x.png"

_SECONDS_TO_MS = 1000

# (max days, range token), ascending
_RANGES = (
    (1, "1d"), (5, "5d"), (7, "7d"), (30, "1mo"), (90, "3mo"), (180, "6mo"),
    (365, "1y"), (730, "2y"), (1825, "5y"), (3650, "10y"),
)


def to_yahoo_symbol(coin_id: str) -> str:
    """Map a coin id (``bitcoin``) or bare ticker (``btc``) to a Yahoo symbol (``BTC-USD``)."""
    ticker = COIN_ID_TO_TICKER.get(coin_id.lower(), coin_id.upper())
    return f"{ticker}-USD"


def chart_interval(days: int) -> str:
    """Bar size for a fetch window.

    Daily bars past a week: the lookback plan counts days, so one sample per
    day is what indicator warm-up needs.
    """
    if days <= 7:
        return "1h"
    return "1d"


def chart_range(days: int) -> str:
    """Smallest Yahoo range token covering ``days``."""
    for limit, token in _RANGES:
        if days <= limit:
            return token
    return "max"


class YahooFinanceProvider(HttpProvider):
    """Fetches quotes and charts from the public Yahoo Finance endpoints."""

    name = "yahoo"

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault("base_url", "https://query1.finance.yahoo.com")
        super().__init__(**kwargs)

    async def fetch_top_coins(self, limit: int) -> list[CoinSummary]:
        symbols = [f"{ticker}-USD" for ticker in list(COIN_ID_TO_TICKER.values())[:limit]]
        quotes = await self._quotes(symbols)
        with self._parsing("quote"):
            coins = [self._map_quote(q) for q in quotes]
        # Yahoo reports no rank; rank by market cap within the fixed list
        coins.sort(key=lambda c: c.market_cap, reverse=True)
        return [
            CoinSummary(**{**vars(coin), "market_cap_rank": rank})
            for rank, coin in enumerate(coins, 1)
        ]

    async def fetch_coin_detail(self, coin_id: str) -> CoinDetail:
        symbol = to_yahoo_symbol(coin_id)
        quotes = await self._quotes([symbol])
        with self._parsing("quote"):
            if not quotes:
                raise KeyError(f"no quote for {symbol}")
            summary = self._map_quote(quotes[0])
            return CoinDetail(**vars(summary))

    async def fetch_price_history(self, coin_id: str, days: int) -> PriceSeries:
        symbol = to_yahoo_symbol(coin_id)
        payload = await self._get_json(
            f"v8/finance/chart/{symbol}",
            {"range": chart_range(days), "interval": chart_interval(days)},
        )
        with self._parsing("chart"):
            result = payload["chart"]["result"][0]
            timestamps = result.get("timestamp") or []
            closes = result["indicators"]["quote"][0].get("close") or []
            pairs = [
                (int(ts) * _SECONDS_TO_MS, price)
                for ts, raw in zip(timestamps, closes)
                if (price := to_decimal(raw)) is not None
            ]
            return PriceSeries.from_pairs(coin_id, symbol.split("-")[0], pairs)

    async def _quotes(self, symbols: list[str]) -> list[dict[str, Any]]:
        payload = await self._get_json("v7/finance/quote", {"symbols": ",".join(symbols)})
        with self._parsing("quote"):
            return list(payload["quoteResponse"]["result"] or [])

    @staticmethod
    def _map_quote(quote: dict[str, Any]) -> CoinSummary:
        ticker = quote["symbol"].split("-")[0].upper()
        return CoinSummary(
            id=TICKER_TO_COIN_ID.get(ticker, ticker.lower()),
            symbol=ticker,
            name=quote.get("shortName") or quote["symbol"],
            current_price=decimal_or_zero(quote.get("regularMarketPrice")),
            market_cap=decimal_or_zero(quote.get("marketCap")),
            volume_24h=decimal_or_zero(quote.get("regularMarketVolume")),
            price_change_percentage_24h=to_decimal(quote.get("regularMarketChangePercent")),
            image_url=ICON_URL.format(symbol=ticker.lower()),
        )
