"""
Auto-refresh scheduler.

Two independent loops: coin list (default every 60s) and global stats
(default every 180s). Each loop sleeps its period, then refreshes. Periods
are not drift corrected.
"""

import asyncio
import logging
from contextlib import suppress
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

RefreshFn = Callable[[], Awaitable[object]]


class AutoRefreshScheduler:
    def __init__(
        self,
        refresh_coins: RefreshFn,
        refresh_global: RefreshFn,
        coin_interval: float = 60.0,
        global_interval: float = 180.0,
    ):
        self._refresh_coins = refresh_coins
        self._refresh_global = refresh_global
        self.coin_interval = coin_interval
        self.global_interval = global_interval
        self._coin_task: Optional[asyncio.Task] = None
        self._global_task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return any(t is not None and not t.done() for t in (self._coin_task, self._global_task))

    def start(self) -> None:
        if self.running:
            logger.warning("Auto-refresh already running")
            return
        self._coin_task = asyncio.create_task(
            self._loop("coins", self.coin_interval, self._refresh_coins)
        )
        self._global_task = asyncio.create_task(
            self._loop("global", self.global_interval, self._refresh_global)
        )
        logger.info(
            f"Auto-refresh started (coins every {self.coin_interval:g}s, "
            f"global every {self.global_interval:g}s)"
        )

    async def stop(self) -> None:
        for task in (self._coin_task, self._global_task):
            if task is not None:
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
        self._coin_task = None
        self._global_task = None
        logger.info("Auto-refresh stopped")

    async def _loop(self, name: str, interval: float, refresh: RefreshFn) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await refresh()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                # A failed tick must not end the loop
                logger.error(f"Auto-refresh {name} failed: {e}", exc_info=True)
