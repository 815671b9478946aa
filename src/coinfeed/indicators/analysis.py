"""Technical analysis: turning computed indicators into an assessment.

Given a price series and the indicator series the IndicatorEngine produced
for it, ``analyze`` derives:
1. The latest value of every indicator that could be computed
2. Support and resistance levels from price clusters
3. One signal per indicator (MA crossover, RSI, MACD, Bollinger Bands)
4. An overall trend, buy/sell/hold action and strength (1-10)
5. A short plain-language trend summary

CRITICAL: All computations use Decimal. Never use float for price levels.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from coinfeed.indicators.engine import PRICE_QUANTUM
from coinfeed.indicators.specs import (
    BollingerSpec,
    EmaSpec,
    IndicatorSpec,
    MacdSpec,
    RsiSpec,
    SmaSpec,
)
from coinfeed.models import (
    NO_SOURCE,
    IndicatorSeries,
    IndicatorSignal,
    MarketBias,
    PriceSeries,
    TechnicalAnalysis,
    TradeAction,
)

#: Indicators every analysis is computed from.
ANALYSIS_SPECS: tuple[IndicatorSpec, ...] = (
    SmaSpec(20),
    SmaSpec(50),
    SmaSpec(200),
    EmaSpec(12),
    EmaSpec(26),
    RsiSpec(14),
    MacdSpec(),
    BollingerSpec(),
)

MIN_ANALYSIS_SAMPLES = 30
MIN_LEVEL_SAMPLES = 50  # support/resistance
MIN_TREND_SAMPLES = 200  # moving-average alignment summary

RSI_OVERBOUGHT = Decimal("70")
RSI_OVERSOLD = Decimal("30")
RSI_EXTREME_OVERBOUGHT = Decimal("80")
RSI_EXTREME_OVERSOLD = Decimal("20")

#: Bollinger bandwidth, (upper - lower) / middle, below which bands count as tight.
TIGHT_BANDWIDTH = Decimal("0.1")

#: 20/50 SMA spread, relative to the SMA50, below which the market is consolidating.
CONSOLIDATION_SPREAD = Decimal("0.02")

CLUSTER_BINS = 20
MAX_CLUSTERS = 10
MAX_LEVELS = 3

NEUTRAL_STRENGTH = 5
MAX_STRENGTH = 10
ACTION_STRENGTH = 7  # minimum strength for buy/sell


def _round_price(value: Decimal) -> Decimal:
    return value.quantize(PRICE_QUANTUM, rounding=ROUND_HALF_UP)


def _last_two(indicators: dict[str, IndicatorSeries], name: str) -> tuple[Decimal, Decimal] | None:
    """(previous, current) values of an indicator, or None if it has fewer than two."""
    series = indicators.get(name)
    if series is None or series.error is not None or len(series.points) < 2:
        return None
    return series.points[-2].value, series.points[-1].value


def latest_values(indicators: dict[str, IndicatorSeries]) -> dict[str, Decimal]:
    """Return name -> most recent value for every indicator that produced points."""
    return {
        name: series.points[-1].value
        for name, series in indicators.items()
        if series.error is None and series.points
    }


# ──────────────────────────────────────────────
# Support and resistance
# ──────────────────────────────────────────────


def price_clusters(prices: Sequence[Decimal]) -> list[Decimal]:
    """Centres of the most populated price bins, busiest first.

    The price range is split into ``CLUSTER_BINS`` equal bins; ties keep
    the lower bin first.
    """
    low, high = min(prices), max(prices)
    width = (high - low) / CLUSTER_BINS or Decimal("0.01")
    counts = Counter(int((p - low) / width) for p in prices)
    busiest = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[:MAX_CLUSTERS]
    return [low + index * width + width / 2 for index, _ in busiest]


def support_resistance(
    prices: Sequence[Decimal], current: Decimal
) -> tuple[tuple[Decimal, ...], tuple[Decimal, ...]]:
    """Up to three support levels below and resistance levels above ``current``.

    Levels are price-cluster centres, nearest first. When no cluster lies on
    one side, the first (support) or third (resistance) quartile stands in.
    Fewer than ``MIN_LEVEL_SAMPLES`` prices yield no levels.
    """
    if len(prices) < MIN_LEVEL_SAMPLES:
        return (), ()

    ordered = sorted(prices)
    n = len(ordered)
    clusters = price_clusters(ordered)
    supports = sorted((c for c in clusters if c < current), reverse=True)[:MAX_LEVELS]
    resistances = sorted(c for c in clusters if c > current)[:MAX_LEVELS]
    if not supports:
        supports = [ordered[n // 4]]
    if not resistances:
        resistances = [ordered[3 * n // 4]]
    return tuple(_round_price(p) for p in supports), tuple(_round_price(p) for p in resistances)


# ──────────────────────────────────────────────
# Signals and assessment
# ──────────────────────────────────────────────


def generate_signals(
    price: Decimal,
    indicators: dict[str, IndicatorSeries],
    latest: dict[str, Decimal],
) -> list[IndicatorSignal]:
    """Read each indicator family into at most one signal.

    Indicators that could not be computed produce no signal.
    """
    signals: list[IndicatorSignal] = []

    sma20, sma50 = _last_two(indicators, "SMA20"), _last_two(indicators, "SMA50")
    if sma20 and sma50:
        above_before, above_now = sma20[0] > sma50[0], sma20[1] > sma50[1]
        if above_now and not above_before:
            signals.append(IndicatorSignal(
                "MA Crossover", MarketBias.BULLISH, "Short-term MA crossed above medium-term MA"
            ))
        elif above_before and not above_now:
            signals.append(IndicatorSignal(
                "MA Crossover", MarketBias.BEARISH, "Short-term MA crossed below medium-term MA"
            ))

    rsi = latest.get("RSI14")
    if rsi is not None:
        if rsi > RSI_OVERBOUGHT:
            signals.append(IndicatorSignal("RSI", MarketBias.BEARISH, "Overbought (RSI > 70)"))
        elif rsi < RSI_OVERSOLD:
            signals.append(IndicatorSignal("RSI", MarketBias.BULLISH, "Oversold (RSI < 30)"))

    macd = _last_two(indicators, "MACD")
    if macd:
        previous, current = macd
        if current > 0 >= previous:
            signals.append(IndicatorSignal("MACD", MarketBias.BULLISH, "MACD crossed above zero"))
        elif current < 0 <= previous:
            signals.append(IndicatorSignal("MACD", MarketBias.BEARISH, "MACD crossed below zero"))
        elif previous < current < 0:
            signals.append(IndicatorSignal("MACD", MarketBias.NEUTRAL, "MACD rising but below zero"))
        elif previous > current > 0:
            signals.append(IndicatorSignal("MACD", MarketBias.NEUTRAL, "MACD falling but above zero"))

    upper = latest.get("BBANDS_UPPER")
    middle = latest.get("BBANDS_MIDDLE")
    lower = latest.get("BBANDS_LOWER")
    if upper is not None and middle is not None and lower is not None:
        if price > upper:
            signals.append(IndicatorSignal(
                "Bollinger Bands", MarketBias.BEARISH, "Price above upper Bollinger Band"
            ))
        elif price < lower:
            signals.append(IndicatorSignal(
                "Bollinger Bands", MarketBias.BULLISH, "Price below lower Bollinger Band"
            ))
        elif middle > 0 and (upper - lower) / middle < TIGHT_BANDWIDTH:
            signals.append(IndicatorSignal(
                "Bollinger Bands", MarketBias.NEUTRAL, "Tight bands suggest a potential breakout"
            ))

    return signals


def assess(
    signals: Sequence[IndicatorSignal],
    latest: dict[str, Decimal],
    price: Decimal,
) -> tuple[MarketBias, TradeAction, int]:
    """Combine signals into (trend, action, strength).

    The side with more signals sets the trend; strength grows with its share
    of all signals. RSI extremes and a close outside the Bollinger Bands
    override or adjust the result. Buy/sell needs strength of at least
    ``ACTION_STRENGTH``; anything weaker is hold.
    """
    counts = Counter(s.bias for s in signals)
    bullish, bearish = counts[MarketBias.BULLISH], counts[MarketBias.BEARISH]

    trend, strength = MarketBias.NEUTRAL, NEUTRAL_STRENGTH
    if bullish != bearish:
        trend = MarketBias.BULLISH if bullish > bearish else MarketBias.BEARISH
        share = -(-max(bullish, bearish) * 5 // len(signals))
        strength = min(MAX_STRENGTH, NEUTRAL_STRENGTH + share)

    rsi = latest.get("RSI14")
    if rsi is not None:
        if rsi > RSI_EXTREME_OVERBOUGHT:
            trend, strength = MarketBias.BEARISH, 9
        elif rsi > RSI_OVERBOUGHT:
            if trend is MarketBias.BEARISH:
                strength = min(MAX_STRENGTH, strength + 1)
            elif trend is MarketBias.BULLISH:
                strength = max(1, strength - 1)
        elif rsi < RSI_EXTREME_OVERSOLD:
            trend, strength = MarketBias.BULLISH, 9
        elif rsi < RSI_OVERSOLD:
            if trend is MarketBias.BULLISH:
                strength = min(MAX_STRENGTH, strength + 1)
            elif trend is MarketBias.BEARISH:
                strength = max(1, strength - 1)

    upper, lower = latest.get("BBANDS_UPPER"), latest.get("BBANDS_LOWER")
    if upper is not None and lower is not None:
        if price > upper:
            trend, strength = MarketBias.BEARISH, min(MAX_STRENGTH, strength + 1)
        elif price < lower:
            trend, strength = MarketBias.BULLISH, min(MAX_STRENGTH, strength + 1)

    action = TradeAction.HOLD
    if strength >= ACTION_STRENGTH:
        if trend is MarketBias.BULLISH:
            action = TradeAction.BUY
        elif trend is MarketBias.BEARISH:
            action = TradeAction.SELL
    return trend, action, strength


def describe_trend(
    price: Decimal,
    indicators: dict[str, IndicatorSeries],
    latest: dict[str, Decimal],
    samples: int,
) -> str:
    """Plain-language summary of moving-average alignment, RSI and MACD."""
    s20, s50, s200 = latest.get("SMA20"), latest.get("SMA50"), latest.get("SMA200")
    if samples < MIN_TREND_SAMPLES or s20 is None or s50 is None or s200 is None:
        return "Insufficient data for trend analysis."

    if price > s20 > s50 > s200:
        parts = ["Strong uptrend: price is above all major moving averages, which are stacked upward."]
    elif price < s20 < s50 < s200:
        parts = ["Strong downtrend: price is below all major moving averages, which are stacked downward."]
    elif price > s20 and price > s50 and price < s200:
        parts = ["Possible recovery: price is above the short-term averages but below the 200-period average."]
    elif price < s20 and price < s50 and price > s200:
        parts = ["Possible pullback: price is below the short-term averages but above the 200-period average."]
    elif s50 > 0 and abs(s20 - s50) / s50 < CONSOLIDATION_SPREAD:
        parts = ["Consolidation: the 20- and 50-period averages are converging."]
    else:
        parts = ["Mixed signals: no clear directional bias."]

    rsi = latest.get("RSI14")
    if rsi is not None:
        if rsi > RSI_OVERBOUGHT:
            parts.append("RSI is overbought, caution for buyers.")
        elif rsi < RSI_OVERSOLD:
            parts.append("RSI is oversold, a bounce is possible.")
        elif rsi >= 55:
            parts.append("RSI shows bullish momentum without being overbought.")
        elif rsi <= 45:
            parts.append("RSI shows bearish momentum without being oversold.")

    macd = _last_two(indicators, "MACD")
    if macd:
        previous, current = macd
        if current > 0 >= previous:
            parts.append("MACD just crossed above zero, momentum is turning bullish.")
        elif current < 0 <= previous:
            parts.append("MACD just crossed below zero, momentum is turning bearish.")
        elif current > previous:
            parts.append("MACD is rising.")
        elif current < previous:
            parts.append("MACD is falling.")

    return " ".join(parts)


def analyze(
    coin_id: str,
    days: int,
    series: PriceSeries,
    indicators: dict[str, IndicatorSeries],
    window_start: int | None = None,
    source: str = NO_SOURCE,
) -> TechnicalAnalysis:
    """Build the technical analysis of ``series``.

    Args:
        coin_id: Coin the series belongs to.
        days: Analysis window in days (reported back as-is).
        series: Full price history the indicators were computed on.
        indicators: Output of ``IndicatorEngine.compute`` for ``ANALYSIS_SPECS``.
        window_start: Timestamp where the analysis window begins; support and
            resistance are derived from prices at or after it.
        source: Provider the series came from.
    """
    if len(series) < MIN_ANALYSIS_SAMPLES:
        return TechnicalAnalysis(
            coin_id=coin_id,
            days=days,
            error=(
                f"insufficient data: technical analysis needs {MIN_ANALYSIS_SAMPLES} "
                f"samples, got {len(series)}"
            ),
            source_used=source,
        )

    price = series.last.price
    window = series.since(window_start) if window_start is not None else series
    latest = latest_values(indicators)
    signals = generate_signals(price, indicators, latest)
    trend, action, strength = assess(signals, latest, price)
    supports, resistances = support_resistance(window.prices, price)

    return TechnicalAnalysis(
        coin_id=coin_id,
        days=days,
        price=price,
        latest_values=latest,
        support_levels=supports,
        resistance_levels=resistances,
        signals=tuple(signals),
        trend=trend,
        action=action,
        strength=strength,
        summary=describe_trend(price, indicators, latest, len(series)),
        source_used=source,
    )
