"""
Application Configuration

All settings loaded from environment variables.
"""

from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings from environment variables."""

    # Application
    app_name: str = "CryptoSage Market Data"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: str = "development"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # SQLite (snapshot cache + favorites)
    sqlite_path: Optional[str] = None  # Defaults to ./data/cryptosage.db

    # Redis (latest price / order book publish cache)
    redis_url: str = "redis://localhost:6379"

    # CORS (Frontend URL)
    allowed_origins: list[str] = ["http://localhost:3000"]

    # Provider endpoints
    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    coinpaprika_base_url: str = "https://api.coinpaprika.com/v1"
    coinbase_base_url: str = "https://api.coinbase.com/v2"
    coinbase_exchange_url: str = "https://api.exchange.coinbase.com"
    binance_base_url: str = "https://api.binance.com/api/v3"
    binance_us_base_url: str = "https://api.binance.us/api/v3"

    # Network
    request_timeout_seconds: float = 15.0
    price_timeout_seconds: float = 10.0
    fiat_currency: str = "USD"

    # Market list
    market_pages: int = 3
    market_page_size: int = 100
    paprika_ticker_limit: int = 100
    market_retry_delay_seconds: float = 1.0

    # Candles (used when the requested interval is rejected)
    fallback_candle_interval: str = "1d"
    fallback_candle_limit: int = 365

    # Order book
    order_book_depth: int = 5

    # Refresh loops
    coin_refresh_seconds: float = 60.0
    global_refresh_seconds: float = 180.0
    price_poll_base_seconds: float = 5.0
    price_poll_max_seconds: float = 60.0
    order_book_poll_seconds: float = 5.0

    # Market list presentation
    pinned_symbols: list[str] = [
        "BTC", "ETH", "BNB", "XRP", "ADA", "DOGE", "MATIC", "SOL",
        "DOT", "LTC", "SHIB", "TRX", "AVAX", "LINK", "UNI", "BCH",
    ]
    noise_name_markers: list[str] = ["binance-peg", "bridged", "wormhole"]

    # News
    news_preview_per_source: int = 5
    news_max_items: int = 100
    news_page_size: int = 20

    # Feature Flags
    enable_auto_refresh: bool = True

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
