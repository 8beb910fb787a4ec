"""
CoinPaprika Data Adapter

Secondary aggregator: single-request market list (no sparklines or images)
and global stats.
"""

import logging

from cryptosage.schemas.market import CoinRecord, GlobalStats
from cryptosage.schemas.providers import CoinPaprikaGlobal, CoinPaprikaTicker
from cryptosage.services.http import HttpClient

logger = logging.getLogger(__name__)


class CoinPaprikaClient:
    """CoinPaprika public API v1."""

    name = "coinpaprika"

    def __init__(self, http: HttpClient, base_url: str = "https://api.coinpaprika.com/v1"):
        self._http = http
        self.base_url = base_url.rstrip("/")

    async def fetch_tickers(self, limit: int = 100, fiat: str = "USD") -> list[CoinRecord]:
        tickers = await self._http.get_model(
            f"{self.base_url}/tickers",
            list[CoinPaprikaTicker],
            params={"quotes": fiat.upper(), "limit": limit},
            provider=self.name,
        )
        records = [ticker.to_record(fiat) for ticker in tickers[:limit]]
        logger.info(f"CoinPaprika: {len(records)} coins")
        return records

    async def fetch_global(self) -> GlobalStats:
        payload = await self._http.get_model(
            f"{self.base_url}/global",
            CoinPaprikaGlobal,
            provider=self.name,
        )
        return payload.to_stats()
