"""
Market Data Service

Single owner of the market list state: canonical coins, global stats,
per-feature error flags and the view selection. All mutation happens on the
event loop through this class; subscribers are notified after every change.
"""

import asyncio
import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional

from cryptosage.schemas.market import (
    CoinRecord,
    GlobalStats,
    MarketView,
    Segment,
    SortField,
    ViewState,
    utc_now,
)
from cryptosage.services.base import ChainExhaustedError
from cryptosage.services.market_data.chains import MarketDataChains
from cryptosage.services.market_data.favorites import FavoritesStore
from cryptosage.services.market_data.reconciler import Reconciler
from cryptosage.services.market_data.snapshot_cache import MarketDataCache
from cryptosage.services.notifications import TOPIC_COINS, TOPIC_GLOBAL, EventBroadcaster

logger = logging.getLogger(__name__)

# Cold start seed when nothing was ever cached
FALLBACK_COINS = (
    CoinRecord(symbol="BTC", name="Bitcoin", price=28000.0),
    CoinRecord(symbol="ETH", name="Ethereum", price=1800.0),
)


class MarketDataService:
    """
    Coordinates fetch, cache, reconcile and publish for the market screen.

    Usage:
        service = MarketDataService(chains, cache, favorites)
        await service.start()
        await service.refresh_coins()
        view = service.snapshot()
    """

    def __init__(
        self,
        chains: MarketDataChains,
        cache: MarketDataCache,
        favorites: FavoritesStore,
        reconciler: Optional[Reconciler] = None,
        broadcaster: Optional[EventBroadcaster] = None,
    ):
        self.chains = chains
        self.cache = cache
        self.favorites = favorites
        self.reconciler = reconciler or Reconciler()
        self.broadcaster = broadcaster

        self._coins: list[CoinRecord] = []
        self._visible: list[CoinRecord] = []
        self._global: Optional[GlobalStats] = None
        self._view = ViewState()

        self.coin_error: Optional[str] = None
        self.global_error: Optional[str] = None
        self.coins_updated_at: Optional[datetime] = None
        self.global_updated_at: Optional[datetime] = None

        self._inflight: dict[str, asyncio.Task] = {}

    # ============ Read side ============

    @property
    def coins(self) -> list[CoinRecord]:
        """Canonical (cleaned, unfiltered) list."""
        return list(self._coins)

    @property
    def visible_coins(self) -> list[CoinRecord]:
        return list(self._visible)

    @property
    def global_stats(self) -> Optional[GlobalStats]:
        return self._global

    @property
    def view(self) -> ViewState:
        return self._view

    def snapshot(self) -> MarketView:
        return MarketView(
            coins=self.visible_coins,
            view=self._view,
            global_stats=self._global,
            coin_error=self.coin_error,
            global_error=self.global_error,
            coins_updated_at=self.coins_updated_at,
            global_updated_at=self.global_updated_at,
        )

    # ============ Lifecycle ============

    async def start(self) -> None:
        """Load favorites and seed state from the cache (or the built-in seed)."""
        await self.favorites.load()

        cached_coins = await self.cache.coins.load_entry()
        if cached_coins is not None and cached_coins.data:
            self._coins = self.reconciler.clean(cached_coins.data, self.favorites.symbols)
            self.coins_updated_at = cached_coins.saved_at
            logger.info(
                f"Seeded {len(self._coins)} coins from cache "
                f"({cached_coins.age_seconds():.0f}s old)"
            )
        else:
            self._coins = self.reconciler.clean(FALLBACK_COINS, self.favorites.symbols)
            logger.info("No cached market list, using built-in seed")

        cached_global = await self.cache.global_stats.load_entry()
        if cached_global is not None:
            self._global = cached_global.data
            self.global_updated_at = cached_global.saved_at

        self._recompute()

    async def stop(self) -> None:
        """Cancel any refresh still in flight."""
        tasks = list(self._inflight.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._inflight.clear()

    # ============ Refresh ============

    async def refresh_coins(self) -> bool:
        """Refresh the market list. Concurrent callers share one fetch."""
        return await self._single_flight("coins", self._refresh_coins)

    async def refresh_global_stats(self) -> bool:
        return await self._single_flight("global", self._refresh_global_stats)

    async def refresh_all(self) -> dict[str, bool]:
        coins_ok, global_ok = await asyncio.gather(self.refresh_coins(), self.refresh_global_stats())
        return {"coins": coins_ok, "global": global_ok}

    async def _single_flight(self, key: str, factory: Callable[[], Awaitable[bool]]) -> bool:
        task = self._inflight.get(key)
        if task is None:
            task = asyncio.create_task(factory())
            self._inflight[key] = task

            def _done(finished: asyncio.Task) -> None:
                if self._inflight.get(key) is finished:
                    del self._inflight[key]

            task.add_done_callback(_done)
        else:
            logger.debug(f"Joining in-flight {key} refresh")

        # One caller's cancellation must not cancel the fetch the others wait on
        return await asyncio.shield(task)

    async def _refresh_coins(self) -> bool:
        try:
            records = await self.chains.fetch_market_list()
        except ChainExhaustedError as e:
            self.coin_error = "Market data is temporarily unavailable"
            logger.warning(f"Coin refresh failed, keeping {len(self._coins)} coins: {e.message}")
            self._publish_coins()
            return False

        await self.cache.save_coins(records)

        self._coins = self.reconciler.clean(records, self.favorites.symbols)
        self.coin_error = None
        self.coins_updated_at = utc_now()
        self._recompute()
        logger.info(f"Coin list refreshed: {len(self._coins)} coins")
        return True

    async def _refresh_global_stats(self) -> bool:
        try:
            stats = await self.chains.fetch_global_stats()
        except ChainExhaustedError as e:
            self.global_error = "Global market stats are temporarily unavailable"
            logger.warning(f"Global stats refresh failed: {e.message}")
            self._publish_global()
            return False

        await self.cache.save_global_stats(stats)

        self._global = stats
        self.global_error = None
        self.global_updated_at = utc_now()
        self._publish_global()
        logger.info(f"Global stats refreshed from {stats.source}")
        return True

    # ============ View / favorites ============

    async def toggle_favorite(self, symbol: str) -> bool:
        is_favorite = await self.favorites.toggle(symbol)
        self._coins = self.reconciler.clean(self._coins, self.favorites.symbols)
        self._recompute()
        return is_favorite

    def set_segment(self, segment: Segment) -> MarketView:
        self._view = self._view.model_copy(update={"segment": segment})
        self._recompute()
        return self.snapshot()

    def set_search(self, search: str) -> MarketView:
        self._view = self._view.model_copy(update={"search": search})
        self._recompute()
        return self.snapshot()

    def toggle_sort(self, field: SortField) -> MarketView:
        self._view = self._view.toggle_sort(field)
        self._recompute()
        return self.snapshot()

    def reset_view(self) -> MarketView:
        self._view = ViewState()
        self._recompute()
        return self.snapshot()

    # ============ Internals ============

    def _recompute(self) -> None:
        self._visible = self.reconciler.apply_view(self._coins, self._view)
        self._publish_coins()

    def _publish_coins(self) -> None:
        if self.broadcaster is not None:
            payload = self.snapshot().model_dump(mode="json", exclude={"global_stats"})
            self.broadcaster.publish(TOPIC_COINS, payload)

    def _publish_global(self) -> None:
        if self.broadcaster is not None:
            self.broadcaster.publish(
                TOPIC_GLOBAL,
                {
                    "global_stats": self._global.model_dump(mode="json") if self._global else None,
                    "error": self.global_error,
                },
            )
