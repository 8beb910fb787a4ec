"""
Redis cache client for live market data.

Holds the latest published spot price and order book per symbol so API
reads never wait on a provider. Falls back to process memory when Redis is
unreachable.
"""

import logging
from typing import Any, Optional

import redis.asyncio as redis
from redis.exceptions import RedisError

from cryptosage.schemas.market import OrderBookSnapshot, PriceSample

logger = logging.getLogger(__name__)


async def init_redis(redis_url: str) -> Optional[redis.Redis]:
    """
    Connect to Redis.
    Returns None (in-memory fallback) when the server is unreachable.
    """
    client = redis.from_url(
        redis_url,
        encoding="utf-8",
        decode_responses=True,
    )
    try:
        await client.ping()
    except (RedisError, OSError) as e:
        logger.warning(f"Redis connection failed: {e}. Using in-memory fallback.")
        await client.aclose()
        return None

    logger.info(f"Redis connected: {redis_url}")
    return client


async def close_redis(client: Optional[redis.Redis]) -> None:
    """Close a Redis client returned by init_redis."""
    if client is not None:
        await client.aclose()
        logger.info("Redis connection closed")


class PriceCache:
    """
    Redis-based cache for live price data.

    Keys:
    - ltp:{symbol} -> PriceSample JSON
    - orderbook:{symbol} -> OrderBookSnapshot JSON
    - watched_symbol -> symbol currently polled
    """

    WATCHED_KEY = "watched_symbol"

    def __init__(self, redis_client: Optional[redis.Redis] = None, ttl_seconds: int = 300):
        self.redis = redis_client
        self.ttl_seconds = ttl_seconds
        # In-memory fallback when Redis is unavailable
        self._memory_cache: dict[str, Any] = {}

    async def _set(self, key: str, value: str, ex: Optional[int] = None) -> None:
        if self.redis:
            try:
                await self.redis.set(key, value, ex=ex)
                return
            except RedisError as e:
                logger.debug(f"Redis set {key} failed: {e}")

        self._memory_cache[key] = value

    async def _get(self, key: str) -> Optional[str]:
        if self.redis:
            try:
                return await self.redis.get(key)
            except RedisError as e:
                logger.debug(f"Redis get {key} failed: {e}")

        return self._memory_cache.get(key)

    async def _delete(self, key: str) -> None:
        if self.redis:
            try:
                await self.redis.delete(key)
            except RedisError as e:
                logger.debug(f"Redis delete {key} failed: {e}")

        self._memory_cache.pop(key, None)

    # ============ Spot price ============

    async def set_price(self, sample: PriceSample) -> None:
        await self._set(f"ltp:{sample.symbol.upper()}", sample.model_dump_json(), ex=self.ttl_seconds)

    async def get_price(self, symbol: str) -> Optional[PriceSample]:
        value = await self._get(f"ltp:{symbol.upper()}")
        return PriceSample.model_validate_json(value) if value else None

    # ============ Order book ============

    async def set_order_book(self, snapshot: OrderBookSnapshot) -> None:
        await self._set(
            f"orderbook:{snapshot.symbol.upper()}",
            snapshot.model_dump_json(),
            ex=self.ttl_seconds,
        )

    async def get_order_book(self, symbol: str) -> Optional[OrderBookSnapshot]:
        value = await self._get(f"orderbook:{symbol.upper()}")
        return OrderBookSnapshot.model_validate_json(value) if value else None

    async def clear_order_book(self, symbol: str) -> None:
        await self._delete(f"orderbook:{symbol.upper()}")

    # ============ Watched symbol ============

    async def set_watched_symbol(self, symbol: Optional[str]) -> None:
        if symbol is None:
            await self._delete(self.WATCHED_KEY)
        else:
            await self._set(self.WATCHED_KEY, symbol.upper())

    async def get_watched_symbol(self) -> Optional[str]:
        return await self._get(self.WATCHED_KEY)
