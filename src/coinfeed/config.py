"""Configuration system using pydantic-settings with environment variable loading."""

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderSettings(BaseSettings):
    """Upstream market data provider configuration.

    Priority order is fixed configuration: the first entry is the primary
    provider, every following entry is a lower-priority fallback.
    All fields configurable via PROVIDER_ environment variable prefix.
    """

    model_config = SettingsConfigDict(env_prefix="PROVIDER_")

    priority: list[str] = ["coingecko", "coincap", "yahoo"]
    request_timeout: float = 10.0  # seconds per HTTP request
    user_agent: str = "coinfeed/0.1"

    # CoinGecko (primary)
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    coingecko_api_key: str = ""
    coingecko_min_interval: float = 1.5  # seconds between requests
    coingecko_cooldown: float = 60.0  # seconds skipped after a 429

    # CoinCap (first fallback)
    coincap_base_url: str = "https://api.coincap.io/v2"
    coincap_cooldown: float = 300.0

    # Yahoo Finance (second fallback)
    yahoo_base_url: str = "https://query1.finance.yahoo.com"
    yahoo_cooldown: float = 300.0

    def cooldowns(self) -> dict[str, float]:
        """Return the rate-limit cooldown per provider name."""
        return {
            "coingecko": self.coingecko_cooldown,
            "coincap": self.coincap_cooldown,
            "yahoo": self.yahoo_cooldown,
        }


class IndicatorSettings(BaseSettings):
    """Indicator computation and chart display parameters."""

    model_config = SettingsConfigDict(env_prefix="INDICATOR_")

    max_display_points: int = 200  # price points returned for charting
    lookback_margin: Decimal = Decimal("1.2")  # 20% extra history for gaps


class CacheSettings(BaseSettings):
    """Time-to-live per query type, in seconds."""

    model_config = SettingsConfigDict(env_prefix="CACHE_")

    enabled: bool = True
    max_entries: int = 1024  # bound on stored results
    top_coins_ttl: int = 300
    coin_detail_ttl: int = 900
    intraday_history_ttl: int = 300  # days <= 1
    history_ttl: int = 3600
    analysis_ttl: int = 3600
    overview_ttl: int = 300


class ApiSettings(BaseSettings):
    """HTTP API server configuration."""

    model_config = SettingsConfigDict(env_prefix="API_")

    host: str = "0.0.0.0"
    port: int = 8080


class AppSettings(BaseSettings):
    """Root application settings, composing all sub-settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
    )

    log_level: str = "INFO"
    providers: ProviderSettings = ProviderSettings()
    indicators: IndicatorSettings = IndicatorSettings()
    cache: CacheSettings = CacheSettings()
    api: ApiSettings = ApiSettings()
