"""Configuration system using pydantic-settings with environment variable loading."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class RateLimitSettings(BaseSettings):
    """Upstream call budget shared by every request in the process."""

    model_config = SettingsConfigDict(env_prefix="RATE_LIMIT_")

    max_calls: int = 30  # GeckoTerminal public tier
    window_ms: int = 60_000
    state_path: str = "data/rateLimiter.json"


class GeckoSettings(BaseSettings):
    """GeckoTerminal API connection settings."""

    model_config = SettingsConfigDict(env_prefix="GECKO_")

    base_url: str = "https://api.geckoterminal.com/api/v2"
    user_agent: str = "CryptoDashboard/1.0"
    request_timeout: float = 30.0
    ohlcv_limit: int = 1000  # API maximum per call


class StorageSettings(BaseSettings):
    """Flat-file storage location and retention.

    These are the startup defaults; the storage directory can later be changed
    at runtime through the storage config endpoint, which persists the override
    to the settings file inside the directory.
    """

    model_config = SettingsConfigDict(env_prefix="STORAGE_")

    data_path: str = "data"
    tokens_file: str = "tokens.json"
    ohlcv_file: str = "ohlcv.json"
    settings_file: str = "storage-settings.json"
    ohlcv_retention: int = 1000  # rows kept per (CA, timeframe)


class DashboardSettings(BaseSettings):
    """Dashboard server configuration."""

    model_config = SettingsConfigDict(env_prefix="DASHBOARD_")

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
    rate_limit: RateLimitSettings = RateLimitSettings()
    gecko: GeckoSettings = GeckoSettings()
    storage: StorageSettings = StorageSettings()
    dashboard: DashboardSettings = DashboardSettings()
