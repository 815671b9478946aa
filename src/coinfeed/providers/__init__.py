"""Market data provider clients -- CoinGecko, CoinCap and Yahoo Finance via aiohttp."""

from coinfeed.providers.base import HttpProvider, MarketDataProvider
from coinfeed.providers.coincap import CoinCapProvider
from coinfeed.providers.coingecko import CoinGeckoProvider
from coinfeed.providers.throttle import RequestThrottle
from coinfeed.providers.yahoo import YahooFinanceProvider

__all__ = [
    "CoinCapProvider",
    "CoinGeckoProvider",
    "HttpProvider",
    "MarketDataProvider",
    "RequestThrottle",
    "YahooFinanceProvider",
]
