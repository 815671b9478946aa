"""Multi-source aggregator: provider fallback, indicator pipeline and caching.

The MultiSourceAggregator is the public query surface. For every logical
query it:
1. Asks the ProviderHealthTracker which provider to try first
2. Walks the fixed priority list downward from there, one attempt per provider
3. Classifies each failure (rate limit vs other) and reports it to the tracker
4. Returns a well-formed result annotated with ``source_used``

Provider exceptions never escape this module. When every provider fails, the
caller gets an empty result with ``source_used == "none"``. Cancellation is
not a provider failure: ``asyncio.CancelledError`` propagates untouched and
leaves provider health as it was.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Sequence
from decimal import ROUND_HALF_UP, Decimal
from typing import TypeVar

from coinfeed.aggregator.health import ProviderHealthTracker
from coinfeed.cache import TTLCache
from coinfeed.config import CacheSettings, IndicatorSettings
from coinfeed.exceptions import AllProvidersExhausted, ProviderRateLimited, ProviderUnavailable
from coinfeed.indicators.analysis import ANALYSIS_SPECS, analyze
from coinfeed.indicators.downsample import downsample
from coinfeed.indicators.engine import IndicatorEngine
from coinfeed.indicators.planner import plan_lookback
from coinfeed.indicators.specs import IndicatorSpec
from coinfeed.logging import get_logger
from coinfeed.models import (
    NO_SOURCE,
    CoinDetailResult,
    CoinSummary,
    MarketHistoryResult,
    MarketOverview,
    PriceSeries,
    TechnicalAnalysis,
    TopCoinsResult,
)
from coinfeed.providers.base import MarketDataProvider

logger = get_logger(__name__)

T = TypeVar("T")

DAY_MS = 86_400_000

#: Number of coins the market overview is derived from.
OVERVIEW_UNIVERSE = 100

#: Entries per overview list (gainers, losers, volume).
OVERVIEW_LIST_SIZE = 10

#: Average 24h change (percent) beyond which the market is called bullish/bearish.
SENTIMENT_THRESHOLD = Decimal("2")

_PERCENT_QUANTUM = Decimal("0.01")


def _is_served(result: object) -> bool:
    return getattr(result, "source_used", NO_SOURCE) != NO_SOURCE


class MultiSourceAggregator:
    """Orchestrates provider selection, fallback and indicator computation.

    Args:
        providers: Provider clients in priority order (primary first).
        tracker: Shared health tracker; must know every provider name.
        engine: Indicator engine (a default instance is created if omitted).
        cache: Optional get-or-compute cache; None disables caching.
        indicator_settings: Display point bound and lookback margin.
        cache_settings: TTL per query type.

    Usage:
        aggregator = MultiSourceAggregator([gecko, coincap, yahoo], tracker)
        result = await aggregator.market_history("bitcoin", 30, [RsiSpec(14)])
        result.source_used  # "coingecko", "coincap", "yahoo" or "none"
    """

    def __init__(
        self,
        providers: Sequence[MarketDataProvider],
        tracker: ProviderHealthTracker,
        engine: IndicatorEngine | None = None,
        cache: TTLCache | None = None,
        indicator_settings: IndicatorSettings | None = None,
        cache_settings: CacheSettings | None = None,
    ) -> None:
        if not providers:
            raise ValueError("at least one provider is required")
        self._providers = {p.name: p for p in providers}
        self._priority = [p.name for p in providers]
        unknown = [name for name in self._priority if name not in tracker.providers]
        if unknown:
            raise ValueError(f"providers missing from health tracker: {unknown}")
        self._tracker = tracker
        self._engine = engine or IndicatorEngine()
        self._cache = cache
        self._indicator_settings = indicator_settings or IndicatorSettings()
        self._cache_settings = cache_settings or CacheSettings()

    @property
    def priority(self) -> list[str]:
        return list(self._priority)

    # ──────────────────────────────────────────────
    # Public queries
    # ──────────────────────────────────────────────

    async def top_coins(self, limit: int = 10) -> TopCoinsResult:
        """Top ``limit`` coins by market cap from the first provider that answers."""

        async def compute() -> TopCoinsResult:
            try:
                coins, source = await self._execute(
                    "top_coins", lambda provider: provider.fetch_top_coins(limit)
                )
            except AllProvidersExhausted:
                return TopCoinsResult()
            return TopCoinsResult(coins=tuple(coins[:limit]), source_used=source)

        return await self._cached(f"top_coins:{limit}", self._cache_settings.top_coins_ttl, compute)

    async def coin_detail(self, coin_id: str) -> CoinDetailResult:
        """Descriptive and market data for one coin; ``coin`` is None if no provider has it."""
        coin_id = coin_id.strip().lower()

        async def compute() -> CoinDetailResult:
            try:
                coin, source = await self._execute(
                    "coin_detail", lambda provider: provider.fetch_coin_detail(coin_id)
                )
            except AllProvidersExhausted:
                return CoinDetailResult()
            return CoinDetailResult(coin=coin, source_used=source)

        return await self._cached(
            f"coin_detail:{coin_id}", self._cache_settings.coin_detail_ttl, compute
        )

    async def market_history(
        self,
        coin_id: str,
        days: int,
        specs: Iterable[IndicatorSpec] = (),
    ) -> MarketHistoryResult:
        """Price history for the last ``days`` days plus the requested indicators.

        Fetches enough extra history for every indicator to be warmed up at
        the start of the display window, computes indicators on the
        full-resolution series, trims prices and indicators to the display
        window, and downsamples only the prices.
        """
        if days <= 0:
            raise ValueError(f"days must be positive, got {days}")
        coin_id = coin_id.strip().lower()
        specs = list(specs)
        key = f"history:{coin_id}:{days}:{'|'.join(sorted(s.name for s in specs))}"
        ttl = (
            self._cache_settings.intraday_history_ttl
            if days <= 1
            else self._cache_settings.history_ttl
        )

        async def compute() -> MarketHistoryResult:
            return await self._compute_history(coin_id, days, specs)

        return await self._cached(key, ttl, compute)

    async def technical_analysis(self, coin_id: str, days: int = 30) -> TechnicalAnalysis:
        """Indicator-based trend, signals and price levels for the last ``days`` days.

        Always computed from ``ANALYSIS_SPECS``. History too short for an
        analysis comes back with ``error`` set rather than raising.
        """
        if days <= 0:
            raise ValueError(f"days must be positive, got {days}")
        coin_id = coin_id.strip().lower()

        async def compute() -> TechnicalAnalysis:
            return await self._compute_analysis(coin_id, days)

        return await self._cached(
            f"analysis:{coin_id}:{days}", self._cache_settings.analysis_ttl, compute
        )

    async def market_overview(self) -> MarketOverview:
        """Gainers, losers, volume leaders and aggregate metrics of the top coins."""

        async def compute() -> MarketOverview:
            try:
                coins, source = await self._execute(
                    "market_overview",
                    lambda provider: provider.fetch_top_coins(OVERVIEW_UNIVERSE),
                )
            except AllProvidersExhausted:
                return MarketOverview()
            return build_overview(coins, source)

        return await self._cached("overview", self._cache_settings.overview_ttl, compute)

    def current_source(self) -> str:
        """Name of the provider currently serving requests."""
        return self._tracker.current_provider

    async def health(self) -> dict:
        return {
            "current_provider": self._tracker.current_provider,
            "priority": self.priority,
            "providers": await self._tracker.snapshot(),
            "cache": self._cache.stats() if self._cache is not None else None,
        }

    async def close(self) -> None:
        """Close every provider client."""
        for provider in self._providers.values():
            await provider.close()

    # ──────────────────────────────────────────────
    # Private helpers
    # ──────────────────────────────────────────────

    async def _cached(self, key: str, ttl: int, compute: Callable[[], Awaitable[T]]) -> T:
        if self._cache is None:
            return await compute()
        return await self._cache.get_or_compute(key, ttl, compute, should_cache=_is_served)

    async def _execute(
        self,
        query: str,
        call: Callable[[MarketDataProvider], Awaitable[T]],
    ) -> tuple[T, str]:
        """Run ``call`` against providers, falling back down the priority list.

        Bounded: each provider at or below the selected one is attempted at
        most once. Lower providers that are cooling down are skipped, except
        the last one, which is always attempted as a last resort.

        Raises:
            AllProvidersExhausted: when no attempted provider succeeded.
        """
        selected = await self._tracker.select_provider(self._priority)
        start = self._priority.index(selected)
        last = self._priority[-1]

        for name in self._priority[start:]:
            if name != selected and name != last and not await self._tracker.is_available(name):
                logger.debug("provider_skipped_cooling_down", query=query, provider=name)
                continue

            try:
                result = await call(self._providers[name])
            except ProviderRateLimited as e:
                logger.warning("provider_rate_limited", query=query, provider=name, error=str(e))
                await self._tracker.report_failure(name, is_rate_limit=True, reason=str(e))
                continue
            except ProviderUnavailable as e:
                logger.warning("provider_unavailable", query=query, provider=name, error=str(e))
                await self._tracker.report_failure(name, is_rate_limit=False, reason=str(e))
                continue
            except Exception as e:
                logger.error(
                    "provider_unexpected_error",
                    query=query,
                    provider=name,
                    error=str(e),
                    exc_info=True,
                )
                await self._tracker.report_failure(name, is_rate_limit=False, reason=str(e))
                continue

            await self._tracker.report_success(name)
            if name != self._priority[0]:
                logger.info("provider_fallback_served", query=query, provider=name)
            return result, name

        logger.error("all_providers_exhausted", query=query, attempted_from=selected)
        raise AllProvidersExhausted(query)

    async def _compute_history(
        self,
        coin_id: str,
        days: int,
        specs: list[IndicatorSpec],
    ) -> MarketHistoryResult:
        fetch_days = plan_lookback(days, specs, self._indicator_settings.lookback_margin)
        try:
            series, source = await self._execute(
                "market_history",
                lambda provider: provider.fetch_price_history(coin_id, fetch_days),
            )
        except AllProvidersExhausted:
            return MarketHistoryResult(
                coin_id=coin_id,
                symbol=coin_id,
                prices=PriceSeries(coin_id=coin_id, symbol=coin_id),
            )

        indicators = self._engine.compute(series, specs)

        if series.last is not None:
            cutoff = series.last.timestamp - days * DAY_MS
            series = series.since(cutoff)
            indicators = {name: s.since(cutoff) for name, s in indicators.items()}

        prices = downsample(series, self._indicator_settings.max_display_points)
        logger.info(
            "market_history_built",
            coin_id=coin_id,
            days=days,
            fetched_days=fetch_days,
            samples=len(series),
            display_points=len(prices),
            indicators=sorted(indicators),
            source=source,
        )
        return MarketHistoryResult(
            coin_id=coin_id,
            symbol=series.symbol,
            prices=prices,
            indicator_series=indicators,
            source_used=source,
        )

    async def _compute_analysis(self, coin_id: str, days: int) -> TechnicalAnalysis:
        fetch_days = plan_lookback(days, ANALYSIS_SPECS, self._indicator_settings.lookback_margin)
        try:
            series, source = await self._execute(
                "technical_analysis",
                lambda provider: provider.fetch_price_history(coin_id, fetch_days),
            )
        except AllProvidersExhausted:
            return TechnicalAnalysis(coin_id=coin_id, days=days)

        indicators = self._engine.compute(series, ANALYSIS_SPECS)
        window_start = series.last.timestamp - days * DAY_MS if series.last is not None else None
        analysis = analyze(coin_id, days, series, indicators, window_start, source)
        logger.info(
            "technical_analysis_built",
            coin_id=coin_id,
            days=days,
            samples=len(series),
            trend=analysis.trend.value,
            action=analysis.action.value,
            strength=analysis.strength,
            error=analysis.error,
            source=source,
        )
        return analysis


def _percent(part: Decimal, total: Decimal) -> Decimal:
    if total <= 0:
        return Decimal("0")
    return (part / total * 100).quantize(_PERCENT_QUANTUM, rounding=ROUND_HALF_UP)


def build_overview(coins: Sequence[CoinSummary], source: str) -> MarketOverview:
    """Derive the market overview from a top-coins snapshot."""
    if not coins:
        return MarketOverview(source_used=source)

    with_change = [c for c in coins if c.price_change_percentage_24h is not None]
    by_change = sorted(with_change, key=lambda c: c.price_change_percentage_24h, reverse=True)
    gainers = by_change[:OVERVIEW_LIST_SIZE]
    losers = list(reversed(by_change))[:OVERVIEW_LIST_SIZE]
    by_volume = sorted(coins, key=lambda c: c.volume_24h, reverse=True)[:OVERVIEW_LIST_SIZE]

    total_cap = sum((c.market_cap for c in coins), Decimal("0"))
    total_volume = sum((c.volume_24h for c in coins), Decimal("0"))
    caps = {c.symbol: c.market_cap for c in coins}
    metrics = {
        "total_market_cap_usd": total_cap,
        "total_volume_usd": total_volume,
        "btc_dominance": _percent(caps.get("BTC", Decimal("0")), total_cap),
        "eth_dominance": _percent(caps.get("ETH", Decimal("0")), total_cap),
    }

    sentiment = "neutral"
    if with_change:
        average = sum((c.price_change_percentage_24h for c in with_change), Decimal("0")) / len(with_change)
        metrics["average_change_24h"] = average.quantize(_PERCENT_QUANTUM, rounding=ROUND_HALF_UP)
        if average >= SENTIMENT_THRESHOLD:
            sentiment = "bullish"
        elif average <= -SENTIMENT_THRESHOLD:
            sentiment = "bearish"

    return MarketOverview(
        top_gainers=tuple(gainers),
        top_losers=tuple(losers),
        top_by_volume=tuple(by_volume),
        metrics=metrics,
        sentiment=sentiment,
        source_used=source,
    )
