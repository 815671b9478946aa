"""FastAPI application factory for the market data API."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from coinfeed.api import routes


def create_app(aggregator: Any = None, lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        aggregator: MultiSourceAggregator serving the routes. May be None when
                    a lifespan wires it onto ``app.state`` at startup.
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to inject startup/shutdown logic.

    Returns:
        Configured FastAPI application with the JSON API mounted under /api.
    """
    app = FastAPI(
        title="coinfeed",
        lifespan=lifespan,
    )
    app.state.aggregator = aggregator
    app.include_router(routes.router, prefix="/api")
    return app
