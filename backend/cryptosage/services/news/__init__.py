"""
News Aggregation Service

Streams crypto RSS/Atom feeds and pages the merged headlines.
"""

from cryptosage.services.news.parser import FeedParser
from cryptosage.services.news.service import (
    FeedAggregator,
    FeedSource,
    NewsFeed,
    FULL_SOURCES,
    PREVIEW_SOURCES,
)

__all__ = [
    "FeedParser",
    "FeedAggregator",
    "FeedSource",
    "NewsFeed",
    "FULL_SOURCES",
    "PREVIEW_SOURCES",
]
