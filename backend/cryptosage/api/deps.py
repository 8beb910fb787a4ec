"""
FastAPI dependencies.

Endpoints reach the running services through the container stored on
`app.state.services` by the application lifespan.
"""

from fastapi import Request

from cryptosage.services.container import ServiceContainer
from cryptosage.services.market_data.service import MarketDataService
from cryptosage.services.news.service import NewsFeed


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_market_service(request: Request) -> MarketDataService:
    return get_services(request).market


def get_news_feed(request: Request) -> NewsFeed:
    return get_services(request).news
