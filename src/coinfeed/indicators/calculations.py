"""Pure technical indicator calculations.

Every function takes prices ordered oldest-first and returns a list of the
same length, index-aligned with the input: positions inside an indicator's
warm-up window hold ``None``. Arithmetic stays in Decimal at full context
precision; rounding to display precision happens once, in the engine.

CRITICAL: All computations use Decimal. Never use float.
"""

from decimal import Decimal

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_NEUTRAL_RSI = Decimal("50")

Series = list[Decimal | None]


def _defined(values: Series) -> tuple[int, list[Decimal]]:
    """Split a padded series into (offset of first value, dense values)."""
    for i, v in enumerate(values):
        if v is not None:
            return i, [x for x in values[i:] if x is not None]
    return len(values), []


def sma(values: list[Decimal], period: int) -> Series:
    """Arithmetic mean of the trailing ``period`` values.

    First defined value is at index ``period - 1``. Uses a running window
    sum, which is exact in Decimal.
    """
    out: Series = [None] * len(values)
    if period <= 0 or len(values) < period:
        return out

    divisor = Decimal(period)
    window_sum = sum(values[:period], _ZERO)
    out[period - 1] = window_sum / divisor
    for i in range(period, len(values)):
        window_sum += values[i] - values[i - period]
        out[i] = window_sum / divisor
    return out


def ema(values: list[Decimal], period: int) -> Series:
    """Exponential moving average seeded with the SMA of the first ``period`` values.

        k = 2 / (period + 1)
        EMA_t = (price_t - EMA_{t-1}) * k + EMA_{t-1}

    First defined value is at index ``period - 1``.
    """
    out: Series = [None] * len(values)
    if period <= 0 or len(values) < period:
        return out

    k = Decimal("2") / (Decimal(period) + Decimal("1"))
    current = sum(values[:period], _ZERO) / Decimal(period)
    out[period - 1] = current
    for i in range(period, len(values)):
        current = (values[i] - current) * k + current
        out[i] = current
    return out


def _rsi_value(avg_gain: Decimal, avg_loss: Decimal) -> Decimal:
    if avg_loss == 0:
        # gains with no losses saturate, a flat window is neutral
        return _HUNDRED if avg_gain > 0 else _NEUTRAL_RSI
    rs = avg_gain / avg_loss
    return _HUNDRED - _HUNDRED / (Decimal("1") + rs)


def rsi(values: list[Decimal], period: int) -> Series:
    """Wilder relative strength index, bounded to [0, 100].

    The seed average gain/loss is the simple mean over the first ``period``
    price differences; later averages use Wilder smoothing:

        avg = (avg * (period - 1) + new) / period

    First defined value is at index ``period`` (``period`` differences need
    ``period + 1`` prices).
    """
    out: Series = [None] * len(values)
    if period <= 0 or len(values) < period + 1:
        return out

    diffs = [values[i] - values[i - 1] for i in range(1, len(values))]
    divisor = Decimal(period)
    avg_gain = sum((d for d in diffs[:period] if d > 0), _ZERO) / divisor
    avg_loss = sum((-d for d in diffs[:period] if d < 0), _ZERO) / divisor
    out[period] = _rsi_value(avg_gain, avg_loss)

    for i in range(period, len(diffs)):
        diff = diffs[i]
        gain = diff if diff > 0 else _ZERO
        loss = -diff if diff < 0 else _ZERO
        avg_gain = (avg_gain * (divisor - 1) + gain) / divisor
        avg_loss = (avg_loss * (divisor - 1) + loss) / divisor
        out[i + 1] = _rsi_value(avg_gain, avg_loss)
    return out


def macd(
    values: list[Decimal],
    fast: int,
    slow: int,
    signal: int,
) -> tuple[Series, Series, Series]:
    """MACD line, signal line and histogram.

    The MACD line is ``EMA(fast) - EMA(slow)`` and starts where the slow EMA
    starts (index ``slow - 1``). The signal line is an EMA of the MACD line
    seeded with the SMA of its first ``signal`` values, so it starts at index
    ``slow + signal - 2``. The histogram is defined wherever the signal is.
    """
    n = len(values)
    line: Series = [None] * n
    signal_line: Series = [None] * n
    histogram: Series = [None] * n

    fast_ema = ema(values, fast)
    slow_ema = ema(values, slow)
    for i in range(n):
        f, s = fast_ema[i], slow_ema[i]
        if f is not None and s is not None:
            line[i] = f - s

    offset, dense_line = _defined(line)
    dense_signal = ema(dense_line, signal)
    for j, sig in enumerate(dense_signal):
        if sig is None:
            continue
        i = offset + j
        signal_line[i] = sig
        histogram[i] = dense_line[j] - sig
    return line, signal_line, histogram


def bollinger(values: list[Decimal], period: int, k: Decimal) -> tuple[Series, Series, Series]:
    """Bollinger bands as (upper, middle, lower).

    The middle band is SMA(period). Standard deviation is the population
    standard deviation (divide by ``period``, not ``period - 1``) over the
    same trailing window.
    """
    n = len(values)
    upper: Series = [None] * n
    lower: Series = [None] * n
    middle = sma(values, period)
    divisor = Decimal(period)

    for i in range(period - 1, n):
        mean = middle[i]
        if mean is None:
            continue
        window = values[i - period + 1 : i + 1]
        variance = sum(((v - mean) ** 2 for v in window), _ZERO) / divisor
        band = k * variance.sqrt()
        upper[i] = mean + band
        lower[i] = mean - band
    return upper, middle, lower
