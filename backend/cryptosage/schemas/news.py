"""
News Contracts
"""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class NewsArticle(BaseModel):
    """A parsed feed item. `url` is its identity."""

    title: str
    description: Optional[str] = None
    url: str
    image_url: Optional[str] = None
    published_at: datetime
    source: str


class NewsPage(BaseModel):
    """Slice of the merged article list."""

    articles: list[NewsArticle]
    page: int = Field(..., ge=0)
    page_size: int = Field(..., ge=1)
    total: int = Field(..., ge=0)
    has_more: bool
