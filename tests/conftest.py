"""Shared test fixtures for the coinfeed market data service."""

from decimal import Decimal

import pytest

from coinfeed.config import AppSettings, CacheSettings, IndicatorSettings, ProviderSettings
from coinfeed.models import PriceSeries

DAY_MS = 86_400_000
START_MS = 1_700_000_000_000


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_series(
    prices: list[Decimal],
    coin_id: str = "bitcoin",
    step_ms: int = DAY_MS,
    start_ms: int = START_MS,
) -> PriceSeries:
    """Build a PriceSeries with evenly spaced timestamps."""
    return PriceSeries.from_pairs(
        coin_id,
        coin_id,
        [(start_ms + i * step_ms, p) for i, p in enumerate(prices)],
    )


def flat_then_rising() -> list[Decimal]:
    """90 daily prices: flat at 100 for 60 days, then linear to 150 over 30 days."""
    flat = [Decimal("100")] * 60
    rising = [Decimal("100") + Decimal("50") * (i + 1) / Decimal("30") for i in range(30)]
    return flat + rising


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def mock_settings() -> AppSettings:
    """Return AppSettings with test defaults (short cooldowns, caching off)."""
    return AppSettings(
        log_level="DEBUG",
        providers=ProviderSettings(
            coingecko_min_interval=0.0,
            coingecko_cooldown=60.0,
            coincap_cooldown=300.0,
            yahoo_cooldown=300.0,
        ),
        indicators=IndicatorSettings(max_display_points=200),
        cache=CacheSettings(enabled=False),
    )
