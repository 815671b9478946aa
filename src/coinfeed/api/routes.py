"""JSON API endpoints for coins, coin details, market history, technical analysis and provider health."""

from __future__ import annotations

from dataclasses import asdict
from decimal import Decimal
from typing import Any

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from coinfeed.exceptions import InvalidIndicatorSpec
from coinfeed.indicators.specs import parse_indicator_tokens
from coinfeed.models import (
    NO_SOURCE,
    CoinSummary,
    MarketHistoryResult,
    MarketOverview,
    TechnicalAnalysis,
)

log = structlog.get_logger(__name__)

router = APIRouter()


def _decimal_to_str(obj: Any) -> Any:
    """Recursively convert Decimal values to strings for JSON serialization."""
    if isinstance(obj, Decimal):
        return str(obj)
    if isinstance(obj, dict):
        return {k: _decimal_to_str(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_decimal_to_str(item) for item in obj]
    return obj


def _coin_to_dict(coin: CoinSummary) -> dict:
    return _decimal_to_str(asdict(coin))


def _history_to_dict(result: MarketHistoryResult) -> dict:
    return {
        "coin_id": result.coin_id,
        "symbol": result.symbol,
        "source_used": result.source_used,
        "prices": [
            {"timestamp": p.timestamp, "price": str(p.price)} for p in result.prices
        ],
        "indicator_series": {
            name: {
                "points": [
                    {"timestamp": p.timestamp, "value": str(p.value)} for p in series.points
                ],
                "error": series.error,
            }
            for name, series in result.indicator_series.items()
        },
    }


def _analysis_to_dict(analysis: TechnicalAnalysis) -> dict:
    return _decimal_to_str({
        "coin_id": analysis.coin_id,
        "days": analysis.days,
        "price": analysis.price,
        "trend": analysis.trend.value,
        "signal": analysis.action.value,
        "strength": analysis.strength,
        "summary": analysis.summary,
        "latest_values": analysis.latest_values,
        "support_levels": analysis.support_levels,
        "resistance_levels": analysis.resistance_levels,
        "signals": [
            {"indicator": s.indicator, "bias": s.bias.value, "message": s.message}
            for s in analysis.signals
        ],
        "error": analysis.error,
        "source_used": analysis.source_used,
    })


def _overview_to_dict(overview: MarketOverview) -> dict:
    return {
        "top_gainers": [_coin_to_dict(c) for c in overview.top_gainers],
        "top_losers": [_coin_to_dict(c) for c in overview.top_losers],
        "top_by_volume": [_coin_to_dict(c) for c in overview.top_by_volume],
        "metrics": _decimal_to_str(overview.metrics),
        "sentiment": overview.sentiment,
        "source_used": overview.source_used,
    }


@router.get("/coins")
async def get_top_coins(
    request: Request,
    limit: int = Query(10, ge=1, le=250),
) -> JSONResponse:
    """Top coins by market cap from the first healthy provider."""
    aggregator = request.app.state.aggregator
    result = await aggregator.top_coins(limit)
    return JSONResponse(content={
        "coins": [_coin_to_dict(c) for c in result.coins],
        "source_used": result.source_used,
    })


@router.get("/coins/{coin_id}")
async def get_coin_detail(request: Request, coin_id: str) -> JSONResponse:
    """Detail for one coin, 404 when no provider knows it."""
    aggregator = request.app.state.aggregator
    result = await aggregator.coin_detail(coin_id)
    if result.coin is None:
        return JSONResponse(
            content={"error": f"No data found for {coin_id}", "source_used": result.source_used},
            status_code=404,
        )
    return JSONResponse(content={
        "coin": _coin_to_dict(result.coin),
        "source_used": result.source_used,
    })


@router.get("/coins/{coin_id}/history")
async def get_market_history(
    request: Request,
    coin_id: str,
    days: int = Query(30, ge=1, le=3650),
    indicators: str | None = Query(None),
) -> JSONResponse:
    """Market history with optional indicators.

    Query params:
        days: Display window in days (default 30).
        indicators: Comma-separated tokens, e.g. ``rsi:14,macd:12:26:9,bollinger:20:2``.

    Returns 400 for malformed indicator tokens and 422 (with the partial
    result) when any requested indicator could not be computed.
    """
    try:
        specs = parse_indicator_tokens(indicators)
    except InvalidIndicatorSpec as e:
        return JSONResponse(content={"error": str(e)}, status_code=400)

    aggregator = request.app.state.aggregator
    result = await aggregator.market_history(coin_id, days, specs)
    body = _history_to_dict(result)

    errors = result.indicator_errors
    if errors:
        log.info("history_partial_indicators", coin_id=coin_id, errors=errors)
        body["errors"] = errors
        return JSONResponse(content=body, status_code=422)
    return JSONResponse(content=body)


@router.get("/coins/{coin_id}/analysis")
async def get_technical_analysis(
    request: Request,
    coin_id: str,
    days: int = Query(30, ge=1, le=3650),
) -> JSONResponse:
    """Trend, buy/sell/hold signal and support/resistance for one coin.

    Returns 404 when no provider has history for the coin and 422 (with the
    body) when the history is too short to analyze.
    """
    aggregator = request.app.state.aggregator
    analysis = await aggregator.technical_analysis(coin_id, days)
    if analysis.source_used == NO_SOURCE:
        return JSONResponse(
            content={"error": f"No data found for {coin_id}", "source_used": NO_SOURCE},
            status_code=404,
        )
    body = _analysis_to_dict(analysis)
    if analysis.error is not None:
        return JSONResponse(content=body, status_code=422)
    return JSONResponse(content=body)


@router.get("/market/overview")
async def get_market_overview(request: Request) -> JSONResponse:
    aggregator = request.app.state.aggregator
    overview = await aggregator.market_overview()
    return JSONResponse(content=_overview_to_dict(overview))


@router.get("/source")
async def get_current_source(request: Request) -> JSONResponse:
    """Name of the provider currently serving requests."""
    aggregator = request.app.state.aggregator
    return JSONResponse(content={"source": aggregator.current_source()})


@router.get("/health")
async def get_health(request: Request) -> JSONResponse:
    aggregator = request.app.state.aggregator
    return JSONResponse(content=await aggregator.health())
