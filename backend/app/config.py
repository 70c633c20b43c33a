"""Application configuration."""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Finnhub trade stream (empty key = stay idle)
    finnhub_api_key: str = ""
    finnhub_ws_url: str = "wss://ws.finnhub.io"

    # Instrument and simulation cadence
    symbol: str = "TQQQ"
    simulation_interval: int = 5  # seconds

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    @field_validator("symbol")
    @classmethod
    def _upper_symbol(cls, value: str) -> str:
        return normalize_symbol(value)

    @field_validator("simulation_interval", mode="before")
    @classmethod
    def _coerce_interval(cls, value) -> int:
        return coerce_interval(value)


def normalize_symbol(value: str) -> str:
    """Upper-cased ticker without surrounding whitespace; blank is rejected."""
    symbol = value.strip().upper()
    if not symbol:
        raise ValueError("symbol must not be blank")
    return symbol


def coerce_interval(value) -> int:
    """Simulation interval in whole seconds, never below 1."""
    return max(1, int(value))


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
