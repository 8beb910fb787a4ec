"""
Market Data API Endpoints

Market list, view selection, favorites, global stats and candles.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from cryptosage.api.deps import get_market_service, get_services
from cryptosage.schemas.market import CandleSeries, GlobalStats, MarketView, Segment, SortField
from cryptosage.services.base import ChainExhaustedError
from cryptosage.services.container import ServiceContainer
from cryptosage.services.market_data.service import MarketDataService

logger = logging.getLogger(__name__)

router = APIRouter()


class ViewUpdate(BaseModel):
    segment: Optional[Segment] = None
    search: Optional[str] = None


@router.get("/coins", response_model=MarketView)
async def get_coins(service: MarketDataService = Depends(get_market_service)):
    """
    Current market list in the active view.

    Always answers from memory; `coin_error` is set when the last refresh
    could not reach any provider.
    """
    return service.snapshot()


@router.put("/view", response_model=MarketView)
async def update_view(
    update: ViewUpdate,
    service: MarketDataService = Depends(get_market_service),
):
    """Change the segment and/or search text."""
    if update.segment is not None:
        service.set_segment(update.segment)
    if update.search is not None:
        service.set_search(update.search)
    return service.snapshot()


@router.post("/sort/{field}", response_model=MarketView)
async def toggle_sort(field: SortField, service: MarketDataService = Depends(get_market_service)):
    """Same field flips direction; a new field starts ascending."""
    return service.toggle_sort(field)


@router.post("/favorites/{symbol}")
async def toggle_favorite(symbol: str, service: MarketDataService = Depends(get_market_service)):
    is_favorite = await service.toggle_favorite(symbol)
    return {"symbol": symbol.upper(), "is_favorite": is_favorite}


@router.get("/favorites")
async def get_favorites(service: MarketDataService = Depends(get_market_service)):
    return {"symbols": sorted(service.favorites.symbols)}


@router.get("/global", response_model=GlobalStats)
async def get_global_stats(service: MarketDataService = Depends(get_market_service)):
    stats = service.global_stats
    if stats is None:
        raise HTTPException(
            status_code=503,
            detail=service.global_error or "Global stats not loaded yet",
        )
    return stats


@router.post("/refresh")
async def refresh(service: MarketDataService = Depends(get_market_service)):
    """Refresh coin list and global stats now (joins any refresh in flight)."""
    result = await service.refresh_all()
    return {
        "refreshed": result,
        "coin_error": service.coin_error,
        "global_error": service.global_error,
    }


@router.get("/candles/{symbol}", response_model=CandleSeries)
async def get_candles(
    symbol: str,
    interval: str = Query("1h", description="Binance kline interval, e.g. 1m, 1h, 1d"),
    limit: int = Query(100, ge=1, le=1000),
    services: ServiceContainer = Depends(get_services),
):
    """
    OHLC candles for a symbol.

    Falls back to the US mirror on region blocks and to daily candles when
    the interval is rejected.
    """
    try:
        return await services.chains.fetch_candles(symbol, interval, limit)
    except ChainExhaustedError as e:
        logger.error(f"Candles unavailable for {symbol.upper()}: {e.message}")
        raise HTTPException(
            status_code=503,
            detail={"message": "Candle data unavailable", "providers": e.details["providers"]},
        )
