"""
Last-known-good snapshot cache.

Two independent slots (coin list, global stats), each a JSON blob in the
SQLite snapshot table. A missing, corrupt or unreadable slot reads as absent.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from cryptosage.db.database import Database
from cryptosage.schemas.market import CoinRecord, GlobalStats, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

COIN_LIST_KEY = "market.coin_list"
GLOBAL_STATS_KEY = "market.global_stats"


@dataclass
class CachedSnapshot(Generic[T]):
    data: T
    saved_at: datetime

    def age_seconds(self, now: Optional[datetime] = None) -> float:
        return ((now or utc_now()) - self.saved_at).total_seconds()


class SnapshotSlot(Generic[T]):
    """One durable value stored under a fixed key."""

    def __init__(self, db: Database, key: str, model: Any):
        self._db = db
        self.key = key
        self._adapter = TypeAdapter(model)

    async def load_entry(self) -> Optional[CachedSnapshot[T]]:
        try:
            blob = await self._db.get_blob(self.key)
        except SQLAlchemyError as e:
            logger.warning(f"Cache read failed for {self.key}: {e}")
            return None

        if blob is None:
            return None

        try:
            data = self._adapter.validate_json(blob.payload)
        except ValidationError as e:
            logger.warning(f"Discarding corrupt cache entry {self.key}: {e.error_count()} errors")
            return None

        return CachedSnapshot(data=data, saved_at=blob.saved_at)

    async def load(self) -> Optional[T]:
        entry = await self.load_entry()
        return entry.data if entry else None

    async def save(self, value: T) -> bool:
        """Overwrite the slot. Returns False (and logs) when the write failed."""
        try:
            await self._db.put_blob(self.key, self._adapter.dump_json(value).decode("utf-8"))
        except SQLAlchemyError as e:
            logger.warning(f"Cache write failed for {self.key}: {e}")
            return False
        return True


class MarketDataCache:
    """Persisted coin list + global stats."""

    def __init__(self, db: Database):
        self.coins: SnapshotSlot[list[CoinRecord]] = SnapshotSlot(db, COIN_LIST_KEY, list[CoinRecord])
        self.global_stats: SnapshotSlot[GlobalStats] = SnapshotSlot(db, GLOBAL_STATS_KEY, GlobalStats)

    async def load_coins(self) -> Optional[list[CoinRecord]]:
        return await self.coins.load()

    async def save_coins(self, coins: list[CoinRecord]) -> bool:
        return await self.coins.save(coins)

    async def load_global_stats(self) -> Optional[GlobalStats]:
        return await self.global_stats.load()

    async def save_global_stats(self, stats: GlobalStats) -> bool:
        return await self.global_stats.save(stats)
