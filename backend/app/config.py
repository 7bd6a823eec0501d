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

    # Database
    database_url: str = "postgresql+asyncpg://localhost/crypto_signals"
    debug: bool = False

    # Binance Futures API
    binance_base_url: str = "https://fapi.binance.com"
    http_timeout_seconds: float = 10.0
    history_timeout_seconds: float = 30.0

    # Telegram (notifier disabled when either is empty)
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""

    # Tracked symbols (base assets; "BTC" and "BTCUSDT" are both accepted)
    symbols: list[str] = ["BTC", "ETH", "BNB", "SOL", "XRP"]
    quote_asset: str = "USDT"
    benchmark_symbol: str = "BTC"

    # Analysis pass
    interval: str = "15m"
    candle_limit: int = 200
    min_candles: int = 100
    history_page_limit: int = 1000
    strategy: str = "ema_rsi_macd"
    persist_min_probability: int = 0  # 0 = store every classified signal

    # Delays between upstream calls
    symbol_delay_seconds: float = 0.0
    page_delay_seconds: float = 0.1
    signal_check_delay_seconds: float = 0.2

    # Outcome evaluation
    signal_time_offset_hours: int = 4
    status_check_hours: int = 12
    status_check_range_hours: int = 24

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["*"]

    @field_validator("database_url")
    @classmethod
    def _async_driver(cls, value: str) -> str:
        """Use the asyncpg driver for plain PostgreSQL URLs."""
        if value.startswith("postgresql://"):
            return value.replace("postgresql://", "postgresql+asyncpg://", 1)
        if value.startswith("postgres://"):
            return value.replace("postgres://", "postgresql+asyncpg://", 1)
        return value

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
