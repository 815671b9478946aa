"""Indicator engine turning a price series into aligned indicator series.

The IndicatorEngine is the coordinator that:
1. Checks each requested indicator against the series length
2. Computes it through the pure functions in ``calculations``
3. Rounds to the indicator's display precision
4. Stamps each value with the timestamp of its source price point

Graceful degradation: each indicator is computed in isolation. A series that
is too short, or a computation error, yields an empty error-marked series for
that indicator only.

CRITICAL: All computations use Decimal. Never use float for indicator values.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import ROUND_HALF_UP, Decimal

from coinfeed.exceptions import InsufficientData
from coinfeed.indicators import calculations
from coinfeed.indicators.specs import (
    BollingerSpec,
    EmaSpec,
    IndicatorSpec,
    MacdSpec,
    RsiSpec,
    SmaSpec,
)
from coinfeed.logging import get_logger
from coinfeed.models import IndicatorSeries, IndicatorTimePoint, PriceSeries

logger = get_logger(__name__)

#: Display precision for price-scale indicators (SMA, EMA, Bollinger).
PRICE_QUANTUM = Decimal("0.01")

#: Display precision for oscillator-scale indicators (RSI, MACD).
OSCILLATOR_QUANTUM = Decimal("0.0001")


def _to_points(
    timestamps: list[int],
    values: calculations.Series,
    quantum: Decimal,
) -> tuple[IndicatorTimePoint, ...]:
    return tuple(
        IndicatorTimePoint(timestamp=ts, value=v.quantize(quantum, rounding=ROUND_HALF_UP))
        for ts, v in zip(timestamps, values)
        if v is not None
    )


class IndicatorEngine:
    """Computes SMA, EMA, RSI, MACD and Bollinger series over a PriceSeries.

    Stateless; one instance can be shared by every request.

    Usage:
        engine = IndicatorEngine()
        series = engine.compute(prices, [SmaSpec(20), RsiSpec(14)])
        series["SMA20"].points
    """

    def compute(
        self,
        series: PriceSeries,
        specs: Iterable[IndicatorSpec],
    ) -> dict[str, IndicatorSeries]:
        """Compute every requested indicator.

        Returns a mapping of output name to series. Multi-line indicators
        contribute several keys (MACD, MACD_SIGNAL, MACD_HISTOGRAM and
        BBANDS_UPPER, BBANDS_MIDDLE, BBANDS_LOWER).
        """
        prices = series.prices
        timestamps = series.timestamps
        result: dict[str, IndicatorSeries] = {}

        for spec in specs:
            try:
                result.update(self._compute_one(spec, prices, timestamps))
            except InsufficientData as e:
                logger.info(
                    "indicator_insufficient_data",
                    coin_id=series.coin_id,
                    indicator=spec.name,
                    samples=len(prices),
                    required=spec.required_minimum_samples(),
                )
                result.update(self._error_series(spec, str(e)))
            except Exception as e:
                logger.warning(
                    "indicator_failed",
                    coin_id=series.coin_id,
                    indicator=spec.name,
                    error=str(e),
                    exc_info=True,
                )
                result.update(self._error_series(spec, f"computation failed: {e}"))

        return result

    # ──────────────────────────────────────────────
    # Private helpers
    # ──────────────────────────────────────────────

    @staticmethod
    def _error_series(spec: IndicatorSpec, error: str) -> dict[str, IndicatorSeries]:
        return {name: IndicatorSeries(name=name, error=error) for name in spec.output_names()}

    def _compute_one(
        self,
        spec: IndicatorSpec,
        prices: list[Decimal],
        timestamps: list[int],
    ) -> dict[str, IndicatorSeries]:
        required = spec.required_minimum_samples()
        if len(prices) < required:
            raise InsufficientData(
                f"insufficient data: {spec.name} needs {required} samples, got {len(prices)}"
            )

        if isinstance(spec, SmaSpec):
            lines = [calculations.sma(prices, spec.period)]
            quantum = PRICE_QUANTUM
        elif isinstance(spec, EmaSpec):
            lines = [calculations.ema(prices, spec.period)]
            quantum = PRICE_QUANTUM
        elif isinstance(spec, RsiSpec):
            lines = [calculations.rsi(prices, spec.period)]
            quantum = OSCILLATOR_QUANTUM
        elif isinstance(spec, MacdSpec):
            lines = list(calculations.macd(prices, spec.fast, spec.slow, spec.signal))
            quantum = OSCILLATOR_QUANTUM
        elif isinstance(spec, BollingerSpec):
            lines = list(calculations.bollinger(prices, spec.period, spec.k))
            quantum = PRICE_QUANTUM
        else:
            raise TypeError(f"unsupported indicator spec: {spec!r}")

        return {
            name: IndicatorSeries(name=name, points=_to_points(timestamps, values, quantum))
            for name, values in zip(spec.output_names(), lines)
        }
