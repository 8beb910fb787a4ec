from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import pytest

from fakes import FakeHttp

from cryptosage.services.news.service import FeedAggregator, FeedSource, NewsFeed

BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

ALPHA = FeedSource("Alpha", "https://alpha.example/rss")
BETA = FeedSource("Beta", "https://beta.example/rss")
GAMMA = FeedSource("Gamma", "https://gamma.example/rss")


def rss(*items):
    """items: (slug, minutes_after_base)."""
    body = "".join(
        f"<item><title>{slug}</title><link>https://news.example/{slug}</link>"
        f"<pubDate>{format_datetime(BASE_TIME + timedelta(minutes=minutes))}</pubDate></item>"
        for slug, minutes in items
    )
    return f'<?xml version="1.0"?><rss version="2.0"><channel>{body}</channel></rss>'


def slugs(articles):
    return [a.title for a in articles]


async def test_merge_orders_by_publish_time_descending():
    # t1 > t2 > t3, spread over two sources
    http = FakeHttp(feeds={ALPHA.url: rss(("t2", 20)), BETA.url: rss(("t3", 10), ("t1", 30))})
    aggregator = FeedAggregator(http, full_sources=[ALPHA, BETA])

    merged = await aggregator.fetch_all()

    assert slugs(merged) == ["t1", "t2", "t3"]


async def test_unreachable_source_contributes_nothing():
    http = FakeHttp(feeds={ALPHA.url: rss(("a", 1), ("b", 2))})
    aggregator = FeedAggregator(http, full_sources=[ALPHA, BETA])

    merged = await aggregator.fetch_all()

    assert slugs(merged) == ["b", "a"]
    assert BETA.url in http.feed_calls


async def test_malformed_source_contributes_items_parsed_so_far():
    broken = rss(("ok", 5))[: -len("</channel></rss>")] + "<item><title>bad</item>"
    http = FakeHttp(feeds={ALPHA.url: broken, BETA.url: rss(("fine", 1))})
    aggregator = FeedAggregator(http, full_sources=[ALPHA, BETA])

    merged = await aggregator.fetch_all()

    assert slugs(merged) == ["ok", "fine"]


async def test_invalid_utf8_source_keeps_items_parsed_so_far():
    head, tail = rss(("ok", 5), ("bad", 4)).split("<title>bad</title>")
    broken = head.encode("utf-8") + b"<title>b\xffd</title>" + tail.encode("utf-8")
    http = FakeHttp(feeds={ALPHA.url: broken, BETA.url: rss(("fine", 1))})
    aggregator = FeedAggregator(http, full_sources=[ALPHA, BETA])

    merged = await aggregator.fetch_all()

    assert slugs(merged) == ["ok", "fine"]


async def test_preview_keeps_newest_per_source():
    alpha_items = [(f"a{i}", i) for i in range(8)]
    http = FakeHttp(feeds={ALPHA.url: rss(*alpha_items), BETA.url: rss(("b0", 100))})
    aggregator = FeedAggregator(http, preview_sources=[ALPHA, BETA], preview_per_source=5)

    preview = await aggregator.fetch_preview()

    assert slugs(preview) == ["b0", "a7", "a6", "a5", "a4", "a3"]


async def test_full_list_dedups_urls_and_caps():
    http = FakeHttp(feeds={
        ALPHA.url: rss(("same", 5), *[(f"a{i}", i) for i in range(4)]),
        BETA.url: rss(("same", 50)),
    })
    aggregator = FeedAggregator(http, full_sources=[ALPHA, BETA], max_items=3)

    merged = await aggregator.fetch_all()

    assert slugs(merged) == ["same", "a3", "a2"]
    assert merged[0].source == "Beta"


async def test_pagination_slices_without_refetch():
    items = [(f"n{i:02d}", i) for i in range(45)]
    http = FakeHttp(feeds={ALPHA.url: rss(*items)})
    feed = NewsFeed(FeedAggregator(http, full_sources=[ALPHA]), page_size=20)

    first = await feed.load_full()
    second = await feed.load_next_page()
    third = await feed.load_next_page()
    past_end = await feed.load_next_page()

    assert len(http.feed_calls) == 1
    assert (len(first.articles), len(second.articles), len(third.articles)) == (20, 20, 5)
    assert first.articles[0].title == "n44"
    assert third.articles[-1].title == "n00"
    assert first.has_more and second.has_more and not third.has_more
    assert past_end.articles == []
    assert first.total == 45


async def test_next_page_before_full_load_fetches_once():
    http = FakeHttp(feeds={ALPHA.url: rss(("x", 1))})
    feed = NewsFeed(FeedAggregator(http, full_sources=[ALPHA]))

    page = await feed.load_next_page()

    assert page.page == 0
    assert slugs(page.articles) == ["x"]
    assert len(http.feed_calls) == 1


async def test_bookmarks_and_read_markers():
    http = FakeHttp(feeds={ALPHA.url: rss(("x", 1), ("y", 2))})
    feed = NewsFeed(FeedAggregator(http, full_sources=[ALPHA]))
    await feed.load_full()

    assert feed.toggle_bookmark("https://news.example/x") is True
    assert slugs(feed.bookmarks) == ["x"]
    assert feed.toggle_bookmark("https://news.example/x") is False
    assert feed.bookmarks == []

    feed.mark_read("https://news.example/y")
    assert feed.is_read("https://news.example/y")
    assert not feed.is_read("https://news.example/x")


async def test_bookmarking_unknown_article_raises():
    feed = NewsFeed(FeedAggregator(FakeHttp(), full_sources=[GAMMA]))
    await feed.load_full()

    with pytest.raises(KeyError):
        feed.toggle_bookmark("https://news.example/missing")


async def test_read_markers_dropped_when_article_leaves_the_feed():
    http = FakeHttp(feeds={ALPHA.url: rss(("x", 1), ("y", 2), ("z", 3))})
    feed = NewsFeed(FeedAggregator(http, full_sources=[ALPHA]))
    await feed.load_full()
    feed.mark_read("https://news.example/x")
    feed.mark_read("https://news.example/y")
    feed.toggle_bookmark("https://news.example/y")

    http.feeds[ALPHA.url] = rss(("z", 3))
    await feed.load_full()

    # y survives as a bookmark, x is gone from every list
    assert feed.read_urls == {"https://news.example/y"}
