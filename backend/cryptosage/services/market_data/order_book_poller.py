"""
Order book poller.

Fixed-interval full snapshot refresh for one symbol. A failed poll keeps the
last snapshot and records the error; switching symbols discards it.
"""

import asyncio
import logging
from contextlib import suppress
from typing import Awaitable, Callable, Optional

from cryptosage.schemas.market import OrderBookSnapshot
from cryptosage.services.cache.redis_client import PriceCache
from cryptosage.services.notifications import TOPIC_ORDER_BOOK, EventBroadcaster

logger = logging.getLogger(__name__)


class OrderBookPoller:
    def __init__(
        self,
        fetch: Callable[[str], Awaitable[OrderBookSnapshot]],
        interval: float = 5.0,
        broadcaster: Optional[EventBroadcaster] = None,
        price_cache: Optional[PriceCache] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._fetch = fetch
        self.interval = interval
        self._broadcaster = broadcaster
        self._price_cache = price_cache
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

        self.symbol: Optional[str] = None
        self.snapshot: Optional[OrderBookSnapshot] = None
        self.last_error: Optional[str] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self, symbol: str) -> None:
        symbol = symbol.upper()
        async with self._lock:
            previous = self.symbol
            await self._cancel()

            if previous != symbol:
                self.snapshot = None
                if previous and self._price_cache is not None:
                    await self._price_cache.clear_order_book(previous)
            self.symbol = symbol
            self.last_error = None
            self._task = asyncio.create_task(self._run())
            logger.info(f"Order book polling started for {symbol}")

    async def stop(self) -> None:
        async with self._lock:
            await self._cancel()

    async def _cancel(self) -> None:
        if self._task is not None:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None
            logger.info(f"Order book polling stopped for {self.symbol}")

    async def poll_once(self) -> bool:
        if self.symbol is None:
            raise RuntimeError("No symbol being watched")

        try:
            snapshot = await self._fetch(self.symbol)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.last_error = str(e)
            logger.warning(f"Order book poll for {self.symbol} failed, keeping last snapshot: {e}")
            return False

        self.snapshot = snapshot
        self.last_error = None
        if self._price_cache is not None:
            await self._price_cache.set_order_book(snapshot)
        if self._broadcaster is not None:
            self._broadcaster.publish(TOPIC_ORDER_BOOK, snapshot.model_dump(mode="json"))
        return True

    async def _run(self) -> None:
        while True:
            await self.poll_once()
            await self._sleep(self.interval)
