"""Lookback planning: how much history to fetch for a set of indicators."""

from collections.abc import Iterable
from decimal import Decimal

from coinfeed.indicators.specs import IndicatorSpec

#: Safety margin absorbing gaps and missing samples in upstream data.
DEFAULT_MARGIN = Decimal("1.2")


def plan_lookback(
    display_window: int,
    specs: Iterable[IndicatorSpec],
    margin: Decimal = DEFAULT_MARGIN,
) -> int:
    """Return the history window to request so indicators are warm at display start.

    ``max(display_window, max lookback) * margin``, never less than
    ``display_window`` plus the longest strict warm-up among the specs.
    Without indicators the display window is returned unchanged.

    Args:
        display_window: Requested display window (days or points).
        specs: Indicator requests; periods are validated at spec construction.
        margin: Multiplier applied to the widest requirement.
    """
    if display_window <= 0:
        raise ValueError(f"display window must be positive, got {display_window}")

    specs = list(specs)
    if not specs:
        return display_window

    widest = max(display_window, max(s.required_lookback() for s in specs))
    planned = int(Decimal(widest) * margin)
    warmed = display_window + max(s.required_minimum_samples() for s in specs)
    return max(planned, warmed, display_window)

