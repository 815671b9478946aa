"""coinfeed -- multi-source crypto market data with technical indicators."""

__version__ = "0.1.0"
