"""
Cache module for CryptoSage.

Provides Redis caching for live price and order book data.
"""

from cryptosage.services.cache.redis_client import (
    PriceCache,
    init_redis,
    close_redis,
)

__all__ = [
    "PriceCache",
    "init_redis",
    "close_redis",
]
