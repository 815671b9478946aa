"""Stride downsampling of price series for chart display."""

import math

from coinfeed.models import PriceSeries

#: Default upper bound on price points returned for charting.
DEFAULT_MAX_POINTS = 200


def downsample(series: PriceSeries, max_points: int = DEFAULT_MAX_POINTS) -> PriceSeries:
    """Reduce ``series`` to at most ``max_points`` samples.

    Keeps every ``ceil(n / max_points)``-th sample starting with the first.
    The final sample is always kept so the most recent price is never
    dropped; when the stride already filled the budget it replaces the last
    strided sample instead of being appended. Series already within the
    bound are returned unchanged.
    """
    if max_points <= 0:
        raise ValueError(f"max_points must be positive, got {max_points}")

    n = len(series)
    if n <= max_points:
        return series

    step = math.ceil(n / max_points)
    kept = list(series.points[::step])
    last = series.points[-1]
    if kept[-1] != last:
        if len(kept) >= max_points:
            kept[-1] = last
        else:
            kept.append(last)
    return series.with_points(kept)
