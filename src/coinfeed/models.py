"""Shared data models for the market data aggregator.

CRITICAL: All prices, market caps and indicator values use Decimal. Never use
float for market values. Timestamps are Unix milliseconds everywhere.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

#: Value of ``source_used`` when no provider could serve a query.
NO_SOURCE = "none"


@dataclass(frozen=True)
class PricePoint:
    """A single (timestamp, price) sample."""

    timestamp: int  # Unix milliseconds
    price: Decimal

    def __post_init__(self) -> None:
        if self.price < 0:
            raise ValueError(f"price must be >= 0, got {self.price}")


@dataclass(frozen=True)
class PriceSeries:
    """Ordered, immutable price samples for one (coin_id, symbol) pair.

    Timestamps are strictly increasing. Construction fails with ValueError
    otherwise; use ``from_pairs`` for raw upstream data that may arrive
    unordered or with duplicated timestamps.
    """

    coin_id: str
    symbol: str
    points: tuple[PricePoint, ...] = ()

    def __post_init__(self) -> None:
        for prev, cur in zip(self.points, self.points[1:]):
            if cur.timestamp <= prev.timestamp:
                raise ValueError(
                    f"timestamps must be strictly increasing: {prev.timestamp} -> {cur.timestamp}"
                )

    @classmethod
    def from_pairs(
        cls,
        coin_id: str,
        symbol: str,
        pairs: Iterable[tuple[int, Decimal]],
    ) -> "PriceSeries":
        """Build a series from raw (timestamp_ms, price) pairs.

        Pairs are sorted by timestamp; for a repeated timestamp the last
        price seen wins.
        """
        by_ts: dict[int, Decimal] = {}
        for ts, price in pairs:
            by_ts[int(ts)] = price
        points = tuple(PricePoint(ts, by_ts[ts]) for ts in sorted(by_ts))
        return cls(coin_id=coin_id, symbol=symbol, points=points)

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self) -> Iterator[PricePoint]:
        return iter(self.points)

    @property
    def prices(self) -> list[Decimal]:
        return [p.price for p in self.points]

    @property
    def timestamps(self) -> list[int]:
        return [p.timestamp for p in self.points]

    @property
    def last(self) -> PricePoint | None:
        return self.points[-1] if self.points else None

    def since(self, timestamp: int) -> "PriceSeries":
        """Return a new series holding only points at or after ``timestamp``."""
        return PriceSeries(
            coin_id=self.coin_id,
            symbol=self.symbol,
            points=tuple(p for p in self.points if p.timestamp >= timestamp),
        )

    def with_points(self, points: Iterable[PricePoint]) -> "PriceSeries":
        """Return a series for the same coin with a different set of points."""
        return PriceSeries(coin_id=self.coin_id, symbol=self.symbol, points=tuple(points))


@dataclass(frozen=True)
class IndicatorTimePoint:
    """One indicator value, stamped with the source price point's timestamp."""

    timestamp: int
    value: Decimal


@dataclass(frozen=True)
class IndicatorSeries:
    """Output of one indicator line.

    An empty series with ``error`` set marks an indicator that could not be
    computed (insufficient data or a computation failure). Other indicators
    in the same request are unaffected.
    """

    name: str
    points: tuple[IndicatorTimePoint, ...] = ()
    error: str | None = None

    def __len__(self) -> int:
        return len(self.points)

    @property
    def values(self) -> list[Decimal]:
        return [p.value for p in self.points]

    def since(self, timestamp: int) -> "IndicatorSeries":
        return IndicatorSeries(
            name=self.name,
            points=tuple(p for p in self.points if p.timestamp >= timestamp),
            error=self.error,
        )


@dataclass(frozen=True)
class CoinSummary:
    """Provider-agnostic market snapshot of a single coin."""

    id: str
    symbol: str  # upper case, e.g. "BTC"
    name: str
    current_price: Decimal
    market_cap: Decimal = Decimal("0")
    volume_24h: Decimal = Decimal("0")
    price_change_percentage_24h: Decimal | None = None
    market_cap_rank: int | None = None
    image_url: str = ""


@dataclass(frozen=True)
class CoinDetail(CoinSummary):
    """Coin snapshot extended with descriptive and supply data."""

    description: str = ""
    homepage: str = ""
    circulating_supply: Decimal = Decimal("0")
    total_supply: Decimal | None = None
    max_supply: Decimal | None = None


@dataclass(frozen=True)
class TopCoinsResult:
    coins: tuple[CoinSummary, ...] = ()
    source_used: str = NO_SOURCE


@dataclass(frozen=True)
class CoinDetailResult:
    coin: CoinDetail | None = None
    source_used: str = NO_SOURCE


@dataclass(frozen=True)
class MarketHistoryResult:
    """Chart-ready history for one coin.

    ``prices`` is downsampled for display; every series in
    ``indicator_series`` stays at full resolution over the display window.
    """

    coin_id: str
    symbol: str
    prices: PriceSeries
    indicator_series: dict[str, IndicatorSeries] = field(default_factory=dict)
    source_used: str = NO_SOURCE

    @property
    def indicator_errors(self) -> dict[str, str]:
        """Return name -> error for every indicator that could not be computed."""
        return {
            name: series.error
            for name, series in self.indicator_series.items()
            if series.error is not None
        }


@dataclass(frozen=True)
class MarketOverview:
    """Market-wide snapshot derived from the top coins by market cap."""

    top_gainers: tuple[CoinSummary, ...] = ()
    top_losers: tuple[CoinSummary, ...] = ()
    top_by_volume: tuple[CoinSummary, ...] = ()
    metrics: dict[str, Decimal] = field(default_factory=dict)
    sentiment: str = "unknown"
    source_used: str = NO_SOURCE


class MarketBias(str, Enum):
    """Direction an indicator, or the analysis as a whole, points to."""

    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class TradeAction(str, Enum):
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


@dataclass(frozen=True)
class IndicatorSignal:
    """One indicator's reading, e.g. RSI above 70 -> bearish."""

    indicator: str
    bias: MarketBias
    message: str


@dataclass(frozen=True)
class TechnicalAnalysis:
    """Indicator-based assessment of one coin.

    ``strength`` runs from 0 (no assessment) through 1-10 (conviction of
    ``trend``). When the price history is too short, ``error`` is set and the
    assessment fields keep their neutral defaults.
    """

    coin_id: str
    days: int
    price: Decimal | None = None
    latest_values: dict[str, Decimal] = field(default_factory=dict)
    support_levels: tuple[Decimal, ...] = ()
    resistance_levels: tuple[Decimal, ...] = ()
    signals: tuple[IndicatorSignal, ...] = ()
    trend: MarketBias = MarketBias.NEUTRAL
    action: TradeAction = TradeAction.HOLD
    strength: int = 0
    summary: str = ""
    error: str | None = None
    source_used: str = NO_SOURCE
