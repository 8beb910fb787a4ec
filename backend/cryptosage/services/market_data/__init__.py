"""
Market Data Service

Provider adapters, fallback chains, snapshot cache, reconciliation and
live pollers for the market screen.
"""

from cryptosage.services.market_data.chains import MarketDataChains
from cryptosage.services.market_data.favorites import FavoritesStore
from cryptosage.services.market_data.order_book_poller import OrderBookPoller
from cryptosage.services.market_data.price_poller import Backoff, PollerState, PricePoller
from cryptosage.services.market_data.reconciler import Reconciler
from cryptosage.services.market_data.scheduler import AutoRefreshScheduler
from cryptosage.services.market_data.service import MarketDataService
from cryptosage.services.market_data.snapshot_cache import MarketDataCache

__all__ = [
    "MarketDataChains",
    "FavoritesStore",
    "OrderBookPoller",
    "Backoff",
    "PollerState",
    "PricePoller",
    "Reconciler",
    "AutoRefreshScheduler",
    "MarketDataService",
    "MarketDataCache",
]
