"""
News Service

Aggregates crypto headlines from several RSS/Atom feeds concurrently and
serves them in fixed-size pages from one merged list.
"""

import asyncio
import logging
from contextlib import aclosing
from typing import Iterable, NamedTuple, Optional, Sequence

from cryptosage.schemas.news import NewsArticle, NewsPage
from cryptosage.services.base import ProviderError
from cryptosage.services.http import HttpClient
from cryptosage.services.news.parser import FeedParser

logger = logging.getLogger(__name__)


class FeedSource(NamedTuple):
    name: str
    url: str


COINDESK = FeedSource("CoinDesk", "https://www.coindesk.com/arc/outboundfeeds/rss/")
CRYPTOSLATE = FeedSource("CryptoSlate", "https://cryptoslate.com/feed/")

PREVIEW_SOURCES = (COINDESK, CRYPTOSLATE)
FULL_SOURCES = (
    COINDESK,
    CRYPTOSLATE,
    FeedSource("CoinTelegraph", "https://cointelegraph.com/rss"),
    FeedSource("The Block", "https://www.theblock.co/rss"),
    FeedSource("Bitcoin Magazine", "https://bitcoinmagazine.com/.rss/full/"),
    FeedSource("CoinJournal", "https://coinjournal.net/feed/"),
)


def newest_first(articles: Iterable[NewsArticle]) -> list[NewsArticle]:
    return sorted(articles, key=lambda a: a.published_at, reverse=True)


def dedup_by_url(articles: Sequence[NewsArticle]) -> list[NewsArticle]:
    """Keep the first occurrence of each URL (the newest, on a sorted list)."""
    seen: set[str] = set()
    unique = []
    for article in articles:
        if article.url in seen:
            continue
        seen.add(article.url)
        unique.append(article)
    return unique


class FeedAggregator:
    """Concurrent fetch + merge of several feeds."""

    def __init__(
        self,
        http: HttpClient,
        preview_sources: Sequence[FeedSource] = PREVIEW_SOURCES,
        full_sources: Sequence[FeedSource] = FULL_SOURCES,
        preview_per_source: int = 5,
        max_items: int = 100,
    ):
        self._http = http
        self.preview_sources = list(preview_sources)
        self.full_sources = list(full_sources)
        self.preview_per_source = preview_per_source
        self.max_items = max_items

    async def fetch_source(self, source: FeedSource) -> list[NewsArticle]:
        """
        Stream and parse one feed.

        Never raises for provider failures: an unreachable feed yields no
        items, a feed that breaks mid-stream yields what was parsed.
        """
        parser = FeedParser(source.name)
        articles: list[NewsArticle] = []
        try:
            async with aclosing(self._http.iter_chunks(source.url, provider=source.name)) as chunks:
                async for chunk in chunks:
                    articles.extend(parser.feed(chunk))
                    if parser.failed:
                        break
            articles.extend(parser.close())
        except ProviderError as e:
            logger.warning(f"News source {source.name} failed after {len(articles)} items: {e.message}")

        logger.info(f"News source {source.name}: {len(articles)} items")
        return articles

    async def _fetch_many(self, sources: Sequence[FeedSource]) -> list[list[NewsArticle]]:
        return list(await asyncio.gather(*[self.fetch_source(s) for s in sources]))

    async def fetch_preview(self) -> list[NewsArticle]:
        """Newest few items per preview source, merged newest first."""
        per_source = await self._fetch_many(self.preview_sources)
        merged = []
        for articles in per_source:
            merged.extend(newest_first(articles)[: self.preview_per_source])
        return newest_first(merged)

    async def fetch_all(self) -> list[NewsArticle]:
        """Every source merged newest first, one entry per URL, capped."""
        per_source = await self._fetch_many(self.full_sources)
        merged = newest_first(a for articles in per_source for a in articles)
        return dedup_by_url(merged)[: self.max_items]


class NewsFeed:
    """
    Paginated view over the merged article list.

    The full list is fetched once by load_full(); pages are slices of it.
    Bookmarks live for the process lifetime; read markers are dropped once
    their article leaves every list.
    """

    def __init__(self, aggregator: FeedAggregator, page_size: int = 20):
        self.aggregator = aggregator
        self.page_size = page_size
        self.preview: list[NewsArticle] = []
        self._articles: list[NewsArticle] = []
        self._loaded = False
        self._next_page = 0
        self._bookmarks: dict[str, NewsArticle] = {}
        self._read: set[str] = set()

    @property
    def articles(self) -> list[NewsArticle]:
        return list(self._articles)

    async def load_preview(self) -> list[NewsArticle]:
        self.preview = await self.aggregator.fetch_preview()
        self._prune_read()
        return list(self.preview)

    async def load_full(self) -> NewsPage:
        """Re-fetch every source and return the first page."""
        self._articles = await self.aggregator.fetch_all()
        self._loaded = True
        self._next_page = 1
        self._prune_read()
        return self.page(0)

    async def load_next_page(self) -> NewsPage:
        """Next slice of the already fetched list."""
        if not self._loaded:
            return await self.load_full()
        page = self.page(self._next_page)
        if page.articles:
            self._next_page += 1
        return page

    def page(self, number: int) -> NewsPage:
        start = number * self.page_size
        articles = self._articles[start:start + self.page_size]
        return NewsPage(
            articles=articles,
            page=number,
            page_size=self.page_size,
            total=len(self._articles),
            has_more=start + self.page_size < len(self._articles),
        )

    # ============ Bookmarks / read markers ============

    def find(self, url: str) -> Optional[NewsArticle]:
        for article in (*self._articles, *self.preview):
            if article.url == url:
                return article
        return self._bookmarks.get(url)

    def toggle_bookmark(self, url: str) -> bool:
        """Returns True when the article is now bookmarked."""
        if url in self._bookmarks:
            del self._bookmarks[url]
            return False
        article = self.find(url)
        if article is None:
            raise KeyError(url)
        self._bookmarks[url] = article
        return True

    @property
    def bookmarks(self) -> list[NewsArticle]:
        return newest_first(self._bookmarks.values())

    def mark_read(self, url: str) -> None:
        self._read.add(url)

    def is_read(self, url: str) -> bool:
        return url in self._read

    @property
    def read_urls(self) -> frozenset[str]:
        return frozenset(self._read)

    def _prune_read(self) -> None:
        # Markers only for articles still shown or bookmarked
        known = {a.url for a in (*self._articles, *self.preview)} | set(self._bookmarks)
        self._read &= known
