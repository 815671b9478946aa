"""Provider health tracking and the multi-source aggregator."""

from coinfeed.aggregator.health import ProviderHealth, ProviderHealthTracker, ProviderState
from coinfeed.aggregator.service import MultiSourceAggregator, build_overview

__all__ = [
    "MultiSourceAggregator",
    "ProviderHealth",
    "ProviderHealthTracker",
    "ProviderState",
    "build_overview",
]
