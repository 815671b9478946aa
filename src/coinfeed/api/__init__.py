"""HTTP API layer -- FastAPI application and JSON routes."""

from coinfeed.api.app import create_app

__all__ = ["create_app"]
