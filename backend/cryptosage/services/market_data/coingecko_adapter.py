"""
CoinGecko Data Adapter

Primary source for the paged market list and global stats, and the last
resort for spot prices (keyed by CoinGecko coin id).
"""

import asyncio
import logging

from cryptosage.schemas.market import CoinRecord, GlobalStats, PriceSample
from cryptosage.schemas.providers import (
    CoinGeckoGlobalResponse,
    CoinGeckoMarket,
    CoinGeckoSimplePrice,
)
from cryptosage.services.base import DecodeError, UnsupportedSymbolError
from cryptosage.services.http import HttpClient

logger = logging.getLogger(__name__)

PROVIDER = "coingecko"

# Symbol -> CoinGecko id for the simple-price fallback
COINGECKO_IDS = {
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "BNB": "binancecoin",
    "SOL": "solana",
    "ADA": "cardano",
    "XRP": "ripple",
    "DOGE": "dogecoin",
    "DOT": "polkadot",
    "LTC": "litecoin",
    "TRX": "tron",
    "AVAX": "avalanche-2",
    "LINK": "chainlink",
    "UNI": "uniswap",
    "BCH": "bitcoin-cash",
    "SHIB": "shiba-inu",
    "MATIC": "matic-network",
    "USDT": "tether",
    "USDC": "usd-coin",
}


def coingecko_id(symbol: str) -> str:
    """Look up the CoinGecko id for a symbol."""
    coin_id = COINGECKO_IDS.get(symbol.upper())
    if coin_id is None:
        raise UnsupportedSymbolError(PROVIDER, f"no CoinGecko id for {symbol.upper()}")
    return coin_id


class CoinGeckoClient:
    """CoinGecko public API v3."""

    name = PROVIDER

    def __init__(self, http: HttpClient, base_url: str = "https://api.coingecko.com/api/v3"):
        self._http = http
        self.base_url = base_url.rstrip("/")

    async def fetch_markets_page(
        self,
        page: int,
        per_page: int = 100,
        vs_currency: str = "usd",
    ) -> list[CoinRecord]:
        """Fetch one page of /coins/markets ordered by market cap."""
        items = await self._http.get_model(
            f"{self.base_url}/coins/markets",
            list[CoinGeckoMarket],
            params={
                "vs_currency": vs_currency.lower(),
                "order": "market_cap_desc",
                "per_page": per_page,
                "page": page,
                "sparkline": "true",
                "price_change_percentage": "1h,24h",
            },
            provider=self.name,
        )
        return [item.to_record() for item in items]

    async def fetch_markets(
        self,
        pages: int = 3,
        per_page: int = 100,
        vs_currency: str = "usd",
    ) -> list[CoinRecord]:
        """
        Fetch `pages` pages concurrently and concatenate them in page order.

        Any failed page fails the whole call so a partial list never
        replaces a complete one.
        """
        results = await asyncio.gather(
            *[
                self.fetch_markets_page(page, per_page, vs_currency)
                for page in range(1, pages + 1)
            ],
            return_exceptions=True,
        )

        failures = [r for r in results if isinstance(r, BaseException)]
        if failures:
            raise failures[0]

        records: list[CoinRecord] = []
        for page_records in results:
            records.extend(page_records)
        logger.info(f"CoinGecko: {len(records)} coins from {pages} pages")
        return records

    async def fetch_global(self) -> GlobalStats:
        """Fetch /global."""
        response = await self._http.get_model(
            f"{self.base_url}/global",
            CoinGeckoGlobalResponse,
            provider=self.name,
        )
        return response.to_stats()

    async def fetch_simple_price(self, symbol: str, vs_currency: str = "usd") -> PriceSample:
        """Fetch /simple/price for one symbol via the static id table."""
        coin_id = coingecko_id(symbol)
        currency = vs_currency.lower()
        prices = await self._http.get_model(
            f"{self.base_url}/simple/price",
            CoinGeckoSimplePrice,
            params={"ids": coin_id, "vs_currencies": currency},
            provider=self.name,
        )
        try:
            price = prices[coin_id][currency]
        except KeyError:
            raise DecodeError(self.name, f"no {currency} price for {coin_id}")
        return PriceSample(symbol=symbol.upper(), price=price, source=self.name)
