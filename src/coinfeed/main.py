"""Entry point for the coinfeed market data service.

Wires all components together and serves the FastAPI app through uvicorn's
programmatic API, with FastAPI's lifespan context manager closing the
provider HTTP sessions on shutdown.

Component wiring order (in _build_components):
1. Provider clients, in configured priority order (CoinGecko gets the shared
   request throttle)
2. ProviderHealthTracker (cooldown per provider)
3. TTLCache (get-or-compute memoization)
4. IndicatorEngine
5. MultiSourceAggregator
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from fastapi import FastAPI

from coinfeed.aggregator.health import ProviderHealthTracker
from coinfeed.aggregator.service import MultiSourceAggregator
from coinfeed.api.app import create_app
from coinfeed.cache import TTLCache
from coinfeed.config import AppSettings, ProviderSettings
from coinfeed.indicators.engine import IndicatorEngine
from coinfeed.logging import get_logger, setup_logging
from coinfeed.providers.base import MarketDataProvider
from coinfeed.providers.coincap import CoinCapProvider
from coinfeed.providers.coingecko import CoinGeckoProvider
from coinfeed.providers.throttle import RequestThrottle
from coinfeed.providers.yahoo import YahooFinanceProvider


def _build_provider(name: str, settings: ProviderSettings) -> MarketDataProvider:
    """Create the client for one configured provider name."""
    common = {"timeout": settings.request_timeout, "user_agent": settings.user_agent}
    if name == "coingecko":
        return CoinGeckoProvider(
            api_key=settings.coingecko_api_key,
            base_url=settings.coingecko_base_url,
            throttle=RequestThrottle(settings.coingecko_min_interval),
            **common,
        )
    if name == "coincap":
        return CoinCapProvider(base_url=settings.coincap_base_url, **common)
    if name == "yahoo":
        return YahooFinanceProvider(base_url=settings.yahoo_base_url, **common)
    raise ValueError(f"unknown provider in priority list: {name!r}")


def _build_components(settings: AppSettings) -> dict[str, Any]:
    """Build all service components from settings.

    Creates the provider clients, the shared health tracker, cache and
    indicator engine, and the aggregator that ties them together.
    Network sessions are opened lazily on first request.
    """
    providers = [_build_provider(name, settings.providers) for name in settings.providers.priority]
    cooldowns = settings.providers.cooldowns()
    tracker = ProviderHealthTracker({p.name: cooldowns[p.name] for p in providers})
    cache = TTLCache(enabled=settings.cache.enabled, max_entries=settings.cache.max_entries)
    engine = IndicatorEngine()
    aggregator = MultiSourceAggregator(
        providers,
        tracker,
        engine=engine,
        cache=cache,
        indicator_settings=settings.indicators,
        cache_settings=settings.cache,
    )
    return {
        "providers": providers,
        "tracker": tracker,
        "cache": cache,
        "engine": engine,
        "aggregator": aggregator,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Log startup and close every provider session on shutdown."""
    logger = get_logger("coinfeed.main")
    aggregator: MultiSourceAggregator = app.state.aggregator
    logger.info("coinfeed_started", providers=aggregator.priority)

    yield

    await aggregator.close()
    logger.info("coinfeed_stopped")


async def run() -> None:
    """Run the API server until interrupted."""
    # 1. Load settings
    settings = AppSettings()

    # 2. Setup logging
    setup_logging(settings.log_level)
    logger = get_logger("coinfeed.main")

    # 3. Build components
    components = _build_components(settings)

    app = create_app(components["aggregator"], lifespan=lifespan)
    app.state.settings = settings

    logger.info(
        "starting_api",
        host=settings.api.host,
        port=settings.api.port,
        priority=settings.providers.priority,
    )

    config = uvicorn.Config(
        app,
        host=settings.api.host,
        port=settings.api.port,
        log_level="warning",  # Suppress uvicorn access logs
    )
    server = uvicorn.Server(config)
    await server.serve()


def main() -> None:
    """Synchronous entry point."""
    asyncio.run(run())


if __name__ == "__main__":
    main()
