"""Tests for technical analysis built on computed indicators.

Tests verify:
- Latest values skip indicators that could not be computed
- Support/resistance from price clusters, with quartile fallback
- One signal per indicator family (MA crossover, RSI, MACD, Bollinger)
- Overall trend/action/strength, including RSI and band overrides
- Short series produce an error result instead of an assessment
"""

from decimal import Decimal

from coinfeed.indicators.analysis import (
    ANALYSIS_SPECS,
    analyze,
    assess,
    describe_trend,
    generate_signals,
    latest_values,
    price_clusters,
    support_resistance,
)
from coinfeed.indicators.engine import IndicatorEngine
from coinfeed.models import (
    IndicatorSeries,
    IndicatorSignal,
    IndicatorTimePoint,
    MarketBias,
    TradeAction,
)

from conftest import START_MS, flat_then_rising, make_series


def _series(name: str, *values: str) -> IndicatorSeries:
    return IndicatorSeries(
        name,
        tuple(IndicatorTimePoint(START_MS + i, Decimal(v)) for i, v in enumerate(values)),
    )


def _indicators(**values: tuple[str, ...]) -> dict[str, IndicatorSeries]:
    return {name: _series(name, *vals) for name, vals in values.items()}


BULL = IndicatorSignal("x", MarketBias.BULLISH, "")
BEAR = IndicatorSignal("y", MarketBias.BEARISH, "")


class TestLatestValues:
    def test_skips_error_series(self) -> None:
        indicators = _indicators(SMA20=("1", "2"))
        indicators["SMA200"] = IndicatorSeries("SMA200", error="insufficient data")
        assert latest_values(indicators) == {"SMA20": Decimal("2")}


class TestSupportResistance:
    def test_too_few_prices(self) -> None:
        assert support_resistance([Decimal("1")] * 49, Decimal("1")) == ((), ())

    def test_levels_straddle_current_price(self) -> None:
        prices = [Decimal(i) for i in range(1, 101)]
        supports, resistances = support_resistance(prices, Decimal("50.5"))

        assert 0 < len(supports) <= 3
        assert 0 < len(resistances) <= 3
        assert all(level < Decimal("50.5") for level in supports)
        assert all(level > Decimal("50.5") for level in resistances)
        assert list(supports) == sorted(supports, reverse=True)
        assert list(resistances) == sorted(resistances)

    def test_flat_prices_fall_back_to_quartile(self) -> None:
        prices = [Decimal("100")] * 60
        assert price_clusters(prices) == [Decimal("100.005")]

        supports, resistances = support_resistance(prices, Decimal("100"))

        assert supports == (Decimal("100.00"),)
        assert resistances == (Decimal("100.01"),)


class TestSignals:
    def test_ma_crossover(self) -> None:
        up = generate_signals(Decimal("1"), _indicators(SMA20=("9", "11"), SMA50=("10", "10")), {})
        down = generate_signals(Decimal("1"), _indicators(SMA20=("11", "9"), SMA50=("10", "10")), {})

        assert [(s.indicator, s.bias) for s in up] == [("MA Crossover", MarketBias.BULLISH)]
        assert [(s.indicator, s.bias) for s in down] == [("MA Crossover", MarketBias.BEARISH)]

    def test_rsi_thresholds(self) -> None:
        overbought = generate_signals(Decimal("1"), {}, {"RSI14": Decimal("75")})
        oversold = generate_signals(Decimal("1"), {}, {"RSI14": Decimal("25")})
        middle = generate_signals(Decimal("1"), {}, {"RSI14": Decimal("50")})

        assert overbought[0].bias is MarketBias.BEARISH
        assert oversold[0].bias is MarketBias.BULLISH
        assert middle == []

    def test_macd_zero_cross_and_drift(self) -> None:
        def macd_bias(previous: str, current: str) -> list[MarketBias]:
            signals = generate_signals(Decimal("1"), _indicators(MACD=(previous, current)), {})
            return [s.bias for s in signals]

        assert macd_bias("-1", "1") == [MarketBias.BULLISH]
        assert macd_bias("1", "-1") == [MarketBias.BEARISH]
        assert macd_bias("-2", "-1") == [MarketBias.NEUTRAL]
        assert macd_bias("2", "1") == [MarketBias.NEUTRAL]
        assert macd_bias("1", "2") == []

    def test_bollinger_bands(self) -> None:
        bands = {
            "BBANDS_UPPER": Decimal("110"),
            "BBANDS_MIDDLE": Decimal("100"),
            "BBANDS_LOWER": Decimal("90"),
        }
        tight = {
            "BBANDS_UPPER": Decimal("101"),
            "BBANDS_MIDDLE": Decimal("100"),
            "BBANDS_LOWER": Decimal("99"),
        }

        assert generate_signals(Decimal("111"), {}, bands)[0].bias is MarketBias.BEARISH
        assert generate_signals(Decimal("89"), {}, bands)[0].bias is MarketBias.BULLISH
        assert generate_signals(Decimal("100"), {}, bands) == []
        assert generate_signals(Decimal("100"), {}, tight)[0].bias is MarketBias.NEUTRAL


class TestAssessment:
    def test_no_signals_is_neutral_hold(self) -> None:
        assert assess([], {}, Decimal("1")) == (MarketBias.NEUTRAL, TradeAction.HOLD, 5)

    def test_majority_sets_trend_and_strength(self) -> None:
        # 5 + ceil(2 * 5 / 3) = 9
        assert assess([BULL, BULL, BEAR], {}, Decimal("1")) == (MarketBias.BULLISH, TradeAction.BUY, 9)

    def test_weak_majority_holds(self) -> None:
        neutral = IndicatorSignal("z", MarketBias.NEUTRAL, "")
        # 5 + ceil(1 * 5 / 6) = 6
        trend, action, strength = assess([BEAR, neutral, neutral, neutral, neutral, neutral], {}, Decimal("1"))
        assert (trend, action, strength) == (MarketBias.BEARISH, TradeAction.HOLD, 6)

    def test_extreme_rsi_overrides_signals(self) -> None:
        result = assess([BULL, BULL], {"RSI14": Decimal("85")}, Decimal("1"))
        assert result == (MarketBias.BEARISH, TradeAction.SELL, 9)

    def test_overbought_rsi_tempers_bullish_trend(self) -> None:
        result = assess([BULL], {"RSI14": Decimal("75")}, Decimal("1"))
        assert result == (MarketBias.BULLISH, TradeAction.BUY, 9)

    def test_close_below_lower_band_turns_bullish(self) -> None:
        latest = {"BBANDS_UPPER": Decimal("110"), "BBANDS_LOWER": Decimal("90")}
        assert assess([], latest, Decimal("80")) == (MarketBias.BULLISH, TradeAction.HOLD, 6)


class TestTrendSummary:
    def test_needs_long_history(self) -> None:
        latest = {"SMA20": Decimal("3"), "SMA50": Decimal("2"), "SMA200": Decimal("1")}
        assert describe_trend(Decimal("4"), {}, latest, 199) == "Insufficient data for trend analysis."

    def test_strong_uptrend_with_rsi_note(self) -> None:
        latest = {
            "SMA20": Decimal("110"),
            "SMA50": Decimal("105"),
            "SMA200": Decimal("100"),
            "RSI14": Decimal("75"),
        }
        summary = describe_trend(Decimal("120"), {}, latest, 250)

        assert summary.startswith("Strong uptrend")
        assert "overbought" in summary


class TestAnalyze:
    def test_short_series_reports_error(self) -> None:
        series = make_series([Decimal("100")] * 29)
        analysis = analyze("bitcoin", 30, series, {}, source="coingecko")

        assert analysis.error == "insufficient data: technical analysis needs 30 samples, got 29"
        assert analysis.strength == 0
        assert analysis.action is TradeAction.HOLD
        assert analysis.source_used == "coingecko"

    def test_rally_is_overbought(self) -> None:
        series = make_series(flat_then_rising())
        indicators = IndicatorEngine().compute(series, ANALYSIS_SPECS)

        analysis = analyze("bitcoin", 30, series, indicators, source="coincap")

        assert analysis.error is None
        assert analysis.price == Decimal("150")
        assert analysis.latest_values["RSI14"] == Decimal("100.0000")
        assert "SMA200" not in analysis.latest_values
        assert (analysis.trend, analysis.action, analysis.strength) == (
            MarketBias.BEARISH, TradeAction.SELL, 9,
        )
        assert analysis.summary == "Insufficient data for trend analysis."
        assert analysis.support_levels
        assert all(level < Decimal("150") for level in analysis.support_levels)
        assert analysis.source_used == "coincap"

    def test_window_start_limits_level_prices(self) -> None:
        series = make_series(flat_then_rising())
        window_start = series.timestamps[-40]

        analysis = analyze("bitcoin", 39, series, {}, window_start=window_start)

        # 40 prices in the window: below the level minimum
        assert analysis.support_levels == ()
        assert analysis.resistance_levels == ()
