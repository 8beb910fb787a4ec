"""
Service container.

Builds every long-lived service from Settings in dependency order and owns
their start/stop. The FastAPI app keeps one instance on `app.state.services`.
"""

import logging
from typing import Optional

from cryptosage.core.config import Settings
from cryptosage.db.database import Database
from cryptosage.services.cache.redis_client import PriceCache, close_redis, init_redis
from cryptosage.services.http import HttpClient
from cryptosage.services.market_data.chains import MarketDataChains
from cryptosage.services.market_data.favorites import FavoritesStore
from cryptosage.services.market_data.order_book_poller import OrderBookPoller
from cryptosage.services.market_data.price_poller import PricePoller
from cryptosage.services.market_data.reconciler import Reconciler
from cryptosage.services.market_data.scheduler import AutoRefreshScheduler
from cryptosage.services.market_data.service import MarketDataService
from cryptosage.services.market_data.snapshot_cache import MarketDataCache
from cryptosage.services.news.service import FeedAggregator, NewsFeed
from cryptosage.services.notifications import EventBroadcaster

logger = logging.getLogger(__name__)


class ServiceContainer:
    def __init__(
        self,
        settings: Settings,
        db: Optional[Database] = None,
        chains: Optional[MarketDataChains] = None,
        news_http: Optional[HttpClient] = None,
        price_cache: Optional[PriceCache] = None,
        use_redis: bool = True,
    ):
        self.settings = settings
        self.db = db or Database(settings.sqlite_path, echo=settings.debug)
        self.chains = chains or MarketDataChains(
            settings,
            http=HttpClient(timeout=settings.request_timeout_seconds),
            price_http=HttpClient(timeout=settings.price_timeout_seconds),
        )
        self.news_http = news_http or HttpClient(timeout=settings.request_timeout_seconds)
        self.price_cache = price_cache or PriceCache()
        self._use_redis = use_redis and price_cache is None
        self._redis = None

        self.broadcaster = EventBroadcaster()
        self.market = MarketDataService(
            chains=self.chains,
            cache=MarketDataCache(self.db),
            favorites=FavoritesStore(self.db),
            reconciler=Reconciler(settings.pinned_symbols, settings.noise_name_markers),
            broadcaster=self.broadcaster,
        )
        self.scheduler = AutoRefreshScheduler(
            self.market.refresh_coins,
            self.market.refresh_global_stats,
            coin_interval=settings.coin_refresh_seconds,
            global_interval=settings.global_refresh_seconds,
        )
        self.price_poller = PricePoller(
            self.chains.fetch_spot_price,
            base_interval=settings.price_poll_base_seconds,
            max_interval=settings.price_poll_max_seconds,
            broadcaster=self.broadcaster,
            price_cache=self.price_cache,
        )
        self.order_book_poller = OrderBookPoller(
            self.chains.fetch_order_book,
            interval=settings.order_book_poll_seconds,
            broadcaster=self.broadcaster,
            price_cache=self.price_cache,
        )
        self.news = NewsFeed(
            FeedAggregator(
                self.news_http,
                preview_per_source=settings.news_preview_per_source,
                max_items=settings.news_max_items,
            ),
            page_size=settings.news_page_size,
        )

    async def start(self) -> None:
        await self.db.init()

        if self._use_redis:
            self._redis = await init_redis(self.settings.redis_url)
            self.price_cache.redis = self._redis

        await self.market.start()

        if self.settings.enable_auto_refresh:
            self.scheduler.start()
        else:
            logger.info("Auto-refresh disabled (enable_auto_refresh=false)")

    async def stop(self) -> None:
        await self.scheduler.stop()
        await self.price_poller.stop()
        await self.order_book_poller.stop()
        await self.market.stop()

        await self.chains.close()
        await self.news_http.close()
        await close_redis(self._redis)
        await self.db.close()

    # ============ Live watch ============

    async def watch(self, symbol: str) -> str:
        """Point both live pollers at `symbol`."""
        symbol = symbol.upper()
        await self.price_poller.start(symbol)
        await self.order_book_poller.start(symbol)
        await self.price_cache.set_watched_symbol(symbol)
        return symbol

    async def unwatch(self) -> None:
        await self.price_poller.stop()
        await self.order_book_poller.stop()
        await self.price_cache.set_watched_symbol(None)
