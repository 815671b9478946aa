"""Custom exceptions for the market data aggregator.

Provider failures, indicator errors and configuration errors all live here
to avoid circular imports between the providers, indicators and aggregator
packages.
"""


class CoinfeedError(Exception):
    """Base exception for all coinfeed errors."""


class ProviderError(CoinfeedError):
    """Base class for failures raised by a market data provider client."""

    def __init__(self, provider: str, message: str = "") -> None:
        self.provider = provider
        super().__init__(f"{provider}: {message}" if message else provider)


class ProviderRateLimited(ProviderError):
    """Raised when a provider answers with a rate-limit signal (HTTP 429)."""


class ProviderUnavailable(ProviderError):
    """Raised on transient network, HTTP or payload parsing failures."""


class AllProvidersExhausted(CoinfeedError):
    """Raised internally when every provider in the priority list failed."""


class InsufficientData(CoinfeedError):
    """Raised when a series is too short to produce any indicator value."""


class InvalidIndicatorSpec(CoinfeedError, ValueError):
    """Raised when an indicator request has an unknown type or bad parameters."""
