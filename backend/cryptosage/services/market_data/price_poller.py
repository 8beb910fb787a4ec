"""
Live spot price poller.

Polls the spot price chain for one watched symbol. Success resets the wait
to the base interval; the n-th consecutive failure waits
min(cap, base * 2**(n-1)).
"""

import asyncio
import logging
from contextlib import suppress
from enum import Enum
from typing import Awaitable, Callable, Optional

from cryptosage.schemas.market import PriceSample
from cryptosage.services.cache.redis_client import PriceCache
from cryptosage.services.notifications import TOPIC_PRICE, EventBroadcaster

logger = logging.getLogger(__name__)


class PollerState(str, Enum):
    IDLE = "idle"
    POLLING = "polling"
    BACKOFF = "backoff"


class Backoff:
    """Exponential backoff with a cap."""

    def __init__(self, base: float = 5.0, cap: float = 60.0):
        self.base = base
        self.cap = cap
        self.failures = 0

    @property
    def delay(self) -> float:
        if self.failures == 0:
            return self.base
        return min(self.cap, self.base * 2 ** (self.failures - 1))

    def failure(self) -> float:
        self.failures += 1
        return self.delay

    def success(self) -> float:
        self.failures = 0
        return self.base


class PricePoller:
    """
    Polls one symbol at a time.

    Usage:
        poller = PricePoller(chains.fetch_spot_price)
        await poller.start("BTC")
        ...
        await poller.stop()
    """

    def __init__(
        self,
        fetch: Callable[[str], Awaitable[PriceSample]],
        base_interval: float = 5.0,
        max_interval: float = 60.0,
        broadcaster: Optional[EventBroadcaster] = None,
        price_cache: Optional[PriceCache] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._fetch = fetch
        self._backoff = Backoff(base_interval, max_interval)
        self._broadcaster = broadcaster
        self._price_cache = price_cache
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()

        self.symbol: Optional[str] = None
        self.state = PollerState.IDLE
        self.current: Optional[PriceSample] = None
        self.last_error: Optional[str] = None

    @property
    def consecutive_failures(self) -> int:
        return self._backoff.failures

    async def start(self, symbol: str) -> None:
        """Watch `symbol`, replacing any previous watch."""
        async with self._lock:
            await self._cancel()
            self.symbol = symbol.upper()
            self.current = None
            self.last_error = None
            self._backoff.success()
            self._task = asyncio.create_task(self._run())
            logger.info(f"Price polling started for {self.symbol}")

    async def stop(self) -> None:
        async with self._lock:
            await self._cancel()

    async def _cancel(self) -> None:
        # Caller holds self._lock
        if self._task is not None:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None
            logger.info(f"Price polling stopped for {self.symbol}")
        self.state = PollerState.IDLE

    async def poll_once(self) -> float:
        """One fetch for the watched symbol. Returns the wait before the next one."""
        if self.symbol is None:
            raise RuntimeError("No symbol being watched")

        self.state = PollerState.POLLING
        try:
            sample = await self._fetch(self.symbol)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            delay = self._backoff.failure()
            self.last_error = str(e)
            self.state = PollerState.BACKOFF
            logger.warning(
                f"Price poll for {self.symbol} failed "
                f"({self._backoff.failures} in a row), retrying in {delay:g}s"
            )
            return delay

        self.current = sample
        self.last_error = None
        await self._publish(sample)
        return self._backoff.success()

    async def _run(self) -> None:
        while True:
            delay = await self.poll_once()
            await self._sleep(delay)

    async def _publish(self, sample: PriceSample) -> None:
        if self._price_cache is not None:
            await self._price_cache.set_price(sample)
        if self._broadcaster is not None:
            self._broadcaster.publish(TOPIC_PRICE, sample.model_dump(mode="json"))
