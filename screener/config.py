"""Application configuration."""

from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from screener_core.models.timeframe import TIMEFRAMES, is_valid_timeframe


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="SCREENER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Cache store
    redis_url: str = "redis://localhost:6379/0"
    cache_backend: Literal["redis", "memory"] = "redis"

    # Binance API
    binance_base_url: str = "https://api1.binance.com/api/v3"
    quote_asset: str = "USDT"
    request_timeout: float = 60.0
    rate_limit_per_second: int = 30
    max_retries: int = 3
    retry_delay: float = 3.0
    max_rate_limit_waits: int = 20

    # Timeframes (subset of the canonical enumeration)
    timeframes: list[str] = list(TIMEFRAMES)

    # Indicator cache
    indicator_ttl: int = 300
    update_threshold: int = 60
    candle_limit: int = 300
    candle_cache_ttl: int = 300
    symbols_cache_ttl: int = 300

    # Population
    batch_size: int = 200
    concurrent_requests: int = 200
    chunk_delay: float = 0.1
    batch_delay: float = 0.05
    sweep_interval: float = 300.0
    force_update_on_start: bool = True
    background_update: bool = True

    # Logging
    log_level: str = "INFO"

    @field_validator("timeframes")
    @classmethod
    def _check_timeframes(cls, value: list[str]) -> list[str]:
        invalid = [tf for tf in value if not is_valid_timeframe(tf)]
        if invalid:
            raise ValueError(
                f"Unsupported timeframes {invalid}; expected a subset of {list(TIMEFRAMES)}"
            )
        if not value:
            raise ValueError("At least one timeframe is required")
        return value


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
