"""
API v1 Router

All API endpoints for the frontend.
"""

from fastapi import APIRouter

from cryptosage.api.v1.endpoints import market, news, stream

router = APIRouter()

# Include all endpoint routers
router.include_router(market.router, prefix="/market", tags=["Market Data"])
router.include_router(stream.router, prefix="/stream", tags=["Live Streaming"])
router.include_router(news.router, prefix="/news", tags=["News"])
