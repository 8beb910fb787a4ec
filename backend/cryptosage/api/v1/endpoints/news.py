"""
News API Endpoints

Headline preview, paginated full feed, bookmarks and read markers.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from cryptosage.api.deps import get_news_feed
from cryptosage.schemas.news import NewsArticle, NewsPage
from cryptosage.services.news.service import NewsFeed

logger = logging.getLogger(__name__)

router = APIRouter()


class ArticleRef(BaseModel):
    url: str


@router.get("/preview", response_model=list[NewsArticle])
async def get_preview(feed: NewsFeed = Depends(get_news_feed)):
    """Newest headlines from the preview sources."""
    return await feed.load_preview()


@router.get("/full", response_model=NewsPage)
async def get_full(feed: NewsFeed = Depends(get_news_feed)):
    """Re-fetch every source and return the first page."""
    return await feed.load_full()


@router.get("/next", response_model=NewsPage)
async def get_next_page(feed: NewsFeed = Depends(get_news_feed)):
    """Next page of the list fetched by /full. No network access."""
    return await feed.load_next_page()


@router.post("/bookmarks")
async def toggle_bookmark(ref: ArticleRef, feed: NewsFeed = Depends(get_news_feed)):
    try:
        bookmarked = feed.toggle_bookmark(ref.url)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Article not loaded: {ref.url}")
    return {"url": ref.url, "bookmarked": bookmarked}


@router.get("/bookmarks", response_model=list[NewsArticle])
async def get_bookmarks(feed: NewsFeed = Depends(get_news_feed)):
    return feed.bookmarks


@router.post("/read")
async def mark_read(ref: ArticleRef, feed: NewsFeed = Depends(get_news_feed)):
    feed.mark_read(ref.url)
    return {"url": ref.url, "read": True}


@router.get("/read")
async def get_read(feed: NewsFeed = Depends(get_news_feed)):
    return {"urls": sorted(feed.read_urls)}
