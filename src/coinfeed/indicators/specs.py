"""Indicator request types.

Each indicator variant is its own frozen dataclass carrying only the
parameters it needs, so invalid combinations (a signal period on an SMA,
fast >= slow on a MACD) never reach the engine. ``IndicatorSpec`` is the
union of the variants; dispatch is on ``IndicatorType``.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import ClassVar, Union

from coinfeed.exceptions import InvalidIndicatorSpec


class IndicatorType(str, Enum):
    """Supported technical indicators."""

    SMA = "sma"
    EMA = "ema"
    RSI = "rsi"
    MACD = "macd"
    BOLLINGER = "bollinger"


def _require_positive(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidIndicatorSpec(f"{name} must be a positive integer, got {value!r}")


@dataclass(frozen=True)
class SmaSpec:
    """Simple moving average over ``period`` samples."""

    period: int = 20
    type: ClassVar[IndicatorType] = IndicatorType.SMA

    def __post_init__(self) -> None:
        _require_positive("period", self.period)

    @property
    def name(self) -> str:
        return f"SMA{self.period}"

    def output_names(self) -> tuple[str, ...]:
        return (self.name,)

    def required_lookback(self) -> int:
        return 2 * self.period

    def required_minimum_samples(self) -> int:
        return self.period


@dataclass(frozen=True)
class EmaSpec:
    """Exponential moving average seeded with the SMA of the first ``period`` samples."""

    period: int = 12
    type: ClassVar[IndicatorType] = IndicatorType.EMA

    def __post_init__(self) -> None:
        _require_positive("period", self.period)

    @property
    def name(self) -> str:
        return f"EMA{self.period}"

    def output_names(self) -> tuple[str, ...]:
        return (self.name,)

    def required_lookback(self) -> int:
        return 2 * self.period

    def required_minimum_samples(self) -> int:
        return self.period


@dataclass(frozen=True)
class RsiSpec:
    """Wilder relative strength index."""

    period: int = 14
    type: ClassVar[IndicatorType] = IndicatorType.RSI

    #: Extra samples for Wilder smoothing to converge.
    CONVERGENCE_SAMPLES: ClassVar[int] = 35

    def __post_init__(self) -> None:
        _require_positive("period", self.period)

    @property
    def name(self) -> str:
        return f"RSI{self.period}"

    def output_names(self) -> tuple[str, ...]:
        return (self.name,)

    def required_lookback(self) -> int:
        return self.period + self.CONVERGENCE_SAMPLES

    def required_minimum_samples(self) -> int:
        # period price differences need period + 1 prices
        return self.period + 1


@dataclass(frozen=True)
class MacdSpec:
    """Moving average convergence divergence with a signal line and histogram."""

    fast: int = 12
    slow: int = 26
    signal: int = 9
    type: ClassVar[IndicatorType] = IndicatorType.MACD

    def __post_init__(self) -> None:
        _require_positive("fast", self.fast)
        _require_positive("slow", self.slow)
        _require_positive("signal", self.signal)
        if self.fast >= self.slow:
            raise InvalidIndicatorSpec(
                f"MACD fast period must be below slow period, got {self.fast} >= {self.slow}"
            )

    @property
    def period(self) -> int:
        return self.slow

    @property
    def name(self) -> str:
        if (self.fast, self.slow, self.signal) == (12, 26, 9):
            return "MACD"
        return f"MACD_{self.fast}_{self.slow}_{self.signal}"

    def output_names(self) -> tuple[str, ...]:
        base = self.name
        return (base, f"{base}_SIGNAL", f"{base}_HISTOGRAM")

    def required_lookback(self) -> int:
        return self.slow + self.signal + 30

    def required_minimum_samples(self) -> int:
        return self.slow + self.signal - 1


@dataclass(frozen=True)
class BollingerSpec:
    """Bollinger bands: SMA middle band +/- ``k`` population standard deviations."""

    period: int = 20
    k: Decimal = Decimal("2")
    type: ClassVar[IndicatorType] = IndicatorType.BOLLINGER

    def __post_init__(self) -> None:
        _require_positive("period", self.period)
        if not isinstance(self.k, Decimal):
            object.__setattr__(self, "k", Decimal(str(self.k)))
        if not self.k.is_finite() or self.k < 0:
            raise InvalidIndicatorSpec(f"Bollinger multiplier must be >= 0, got {self.k}")

    @property
    def name(self) -> str:
        if self.period == 20 and self.k == 2:
            return "BBANDS"
        return f"BBANDS_{self.period}_{self.k.normalize()}"

    def output_names(self) -> tuple[str, ...]:
        base = self.name
        return (f"{base}_UPPER", f"{base}_MIDDLE", f"{base}_LOWER")

    def required_lookback(self) -> int:
        return 2 * self.period

    def required_minimum_samples(self) -> int:
        return self.period


IndicatorSpec = Union[SmaSpec, EmaSpec, RsiSpec, MacdSpec, BollingerSpec]

_TYPE_ALIASES: dict[str, IndicatorType] = {
    "sma": IndicatorType.SMA,
    "ema": IndicatorType.EMA,
    "rsi": IndicatorType.RSI,
    "macd": IndicatorType.MACD,
    "bollinger": IndicatorType.BOLLINGER,
    "bbands": IndicatorType.BOLLINGER,
    "bb": IndicatorType.BOLLINGER,
}


def _parse_int(token: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise InvalidIndicatorSpec(f"non-integer parameter {raw!r} in {token!r}") from None


def parse_indicator_token(token: str) -> IndicatorSpec:
    """Parse one ``type[:period[:extra...]]`` token into a spec.

    Missing parameters take the variant defaults, e.g. ``rsi`` is RSI(14)
    and ``macd:8`` is MACD(8, 26, 9).
    """
    parts = [p.strip() for p in token.strip().split(":")]
    kind = _TYPE_ALIASES.get(parts[0].lower())
    if kind is None:
        raise InvalidIndicatorSpec(f"unknown indicator type {parts[0]!r}")
    params = parts[1:]

    if kind is IndicatorType.MACD:
        if len(params) > 3:
            raise InvalidIndicatorSpec(f"too many parameters in {token!r}")
        defaults = [12, 26, 9]
        values = [_parse_int(token, p) for p in params] + defaults[len(params):]
        return MacdSpec(fast=values[0], slow=values[1], signal=values[2])

    if kind is IndicatorType.BOLLINGER:
        if len(params) > 2:
            raise InvalidIndicatorSpec(f"too many parameters in {token!r}")
        period = _parse_int(token, params[0]) if params else 20
        k = Decimal("2")
        if len(params) == 2:
            try:
                k = Decimal(params[1])
            except InvalidOperation:
                raise InvalidIndicatorSpec(
                    f"non-numeric multiplier {params[1]!r} in {token!r}"
                ) from None
        return BollingerSpec(period=period, k=k)

    if len(params) > 1:
        raise InvalidIndicatorSpec(f"too many parameters in {token!r}")
    variant = {IndicatorType.SMA: SmaSpec, IndicatorType.EMA: EmaSpec, IndicatorType.RSI: RsiSpec}[kind]
    if params:
        return variant(period=_parse_int(token, params[0]))
    return variant()


def parse_indicator_tokens(text: str | None) -> list[IndicatorSpec]:
    """Parse a comma-separated indicator request like ``rsi:14,macd:12:26:9``.

    Blank tokens are ignored and duplicate requests collapse to one, keeping
    first-seen order.
    """
    if not text:
        return []
    specs: list[IndicatorSpec] = []
    for token in text.split(","):
        if not token.strip():
            continue
        spec = parse_indicator_token(token)
        if spec not in specs:
            specs.append(spec)
    return specs
