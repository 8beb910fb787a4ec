"""
Live data endpoints and Server-Sent Events stream.

One symbol is watched at a time; its spot price and order book are polled in
the background and pushed to SSE clients as they change.
"""

import asyncio
import json
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse

from cryptosage.api.deps import get_services
from cryptosage.schemas.market import OrderBookSnapshot, PriceSample
from cryptosage.services.container import ServiceContainer
from cryptosage.services.notifications import ALL_TOPICS

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/watch/{symbol}")
async def watch_symbol(symbol: str, services: ServiceContainer = Depends(get_services)):
    """Start live polling for `symbol`, replacing the previous one."""
    watched = await services.watch(symbol)
    return {"symbol": watched, "state": services.price_poller.state.value}


@router.delete("/watch")
async def unwatch(services: ServiceContainer = Depends(get_services)):
    await services.unwatch()
    return {"symbol": None, "state": services.price_poller.state.value}


@router.get("/price")
async def get_price(services: ServiceContainer = Depends(get_services)):
    """Latest spot price of the watched symbol plus poller status."""
    poller = services.price_poller
    if poller.symbol is None:
        raise HTTPException(status_code=404, detail="No symbol is being watched")

    sample: Optional[PriceSample] = poller.current or await services.price_cache.get_price(poller.symbol)
    return {
        "symbol": poller.symbol,
        "state": poller.state.value,
        "sample": sample.model_dump(mode="json") if sample else None,
        "error": poller.last_error,
        "consecutive_failures": poller.consecutive_failures,
    }


@router.get("/orderbook")
async def get_order_book(services: ServiceContainer = Depends(get_services)):
    poller = services.order_book_poller
    if poller.symbol is None:
        raise HTTPException(status_code=404, detail="No symbol is being watched")

    snapshot: Optional[OrderBookSnapshot] = poller.snapshot
    return {
        "symbol": poller.symbol,
        "snapshot": snapshot.model_dump(mode="json") if snapshot else None,
        "error": poller.last_error,
    }


@router.get("/events")
async def stream_events(
    request: Request,
    topics: Optional[str] = Query(
        default=None,
        description="Comma-separated topics: market.coins, market.global, price, order_book",
    ),
    heartbeat: float = Query(default=15.0, ge=1.0, le=60.0, description="Heartbeat interval in seconds"),
    services: ServiceContainer = Depends(get_services),
):
    """
    Stream state change events via SSE.

    Usage (JavaScript):
    ```js
    const source = new EventSource('/api/v1/stream/events?topics=price,order_book');
    source.addEventListener('price', (event) => {
      const sample = JSON.parse(event.data).data;
    });
    ```
    """
    wanted = None
    if topics:
        wanted = {t.strip() for t in topics.split(",") if t.strip()}
        unknown = wanted - ALL_TOPICS
        if unknown:
            raise HTTPException(status_code=400, detail=f"Unknown topics: {sorted(unknown)}")

    broadcaster = services.broadcaster
    client_id = str(uuid.uuid4())
    queue = broadcaster.subscribe(client_id, wanted)

    async def event_generator():
        try:
            while True:
                if await request.is_disconnected():
                    break
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=heartbeat)
                except asyncio.TimeoutError:
                    # Keep the connection alive
                    yield ": heartbeat\n\n"
                    continue
                payload = event.to_dict()
                payload["dropped"] = broadcaster.dropped_count(client_id)
                yield f"event: {event.topic}\ndata: {json.dumps(payload)}\n\n"
        finally:
            broadcaster.unsubscribe(client_id)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable buffering for nginx
        },
    )
