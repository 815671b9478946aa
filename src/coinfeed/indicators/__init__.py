"""Technical indicator module.

Provides the indicator request types, pure Decimal calculations, the
IndicatorEngine that turns a PriceSeries into aligned indicator series, the
lookback planner that sizes upstream history requests, the display
downsampler, and the technical analysis built on top of the engine.
"""

from coinfeed.indicators.analysis import ANALYSIS_SPECS, analyze
from coinfeed.indicators.downsample import DEFAULT_MAX_POINTS, downsample
from coinfeed.indicators.engine import IndicatorEngine
from coinfeed.indicators.planner import plan_lookback
from coinfeed.indicators.specs import (
    BollingerSpec,
    EmaSpec,
    IndicatorSpec,
    IndicatorType,
    MacdSpec,
    RsiSpec,
    SmaSpec,
    parse_indicator_token,
    parse_indicator_tokens,
)

__all__ = [
    "ANALYSIS_SPECS",
    "DEFAULT_MAX_POINTS",
    "BollingerSpec",
    "EmaSpec",
    "IndicatorEngine",
    "IndicatorSpec",
    "IndicatorType",
    "MacdSpec",
    "RsiSpec",
    "SmaSpec",
    "analyze",
    "downsample",
    "parse_indicator_token",
    "parse_indicator_tokens",
    "plan_lookback",
]
