"""
CryptoSage Schema Contracts

Models exchanged between the fetch, reconcile and presentation layers.
"""

from cryptosage.schemas.market import (
    Segment,
    SortField,
    SortDirection,
    CoinRecord,
    GlobalStats,
    ViewState,
    MarketView,
    PriceSample,
    OrderBookLevel,
    OrderBookSnapshot,
    Candle,
    CandleSeries,
)
from cryptosage.schemas.news import NewsArticle, NewsPage

__all__ = [
    "Segment",
    "SortField",
    "SortDirection",
    "CoinRecord",
    "GlobalStats",
    "ViewState",
    "MarketView",
    "PriceSample",
    "OrderBookLevel",
    "OrderBookSnapshot",
    "Candle",
    "CandleSeries",
    "NewsArticle",
    "NewsPage",
]
