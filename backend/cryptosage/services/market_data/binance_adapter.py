"""
Binance Data Adapter

Spot price, klines and depth for {SYMBOL}USDT pairs. The same client serves
the global host and the US mirror (api.binance.us), which answers requests
the global host rejects with HTTP 451.
"""

import logging

from cryptosage.schemas.market import CandleSeries, OrderBookSnapshot, PriceSample
from cryptosage.schemas.providers import BinanceTickerPrice, KlinesPayload, OrderBookPayload
from cryptosage.services.base import DecodeError
from cryptosage.services.http import HttpClient

logger = logging.getLogger(__name__)

QUOTE_ASSET = "USDT"

# Binance only accepts these depth limits
DEPTH_LIMITS = (5, 10, 20, 50, 100, 500, 1000, 5000)


def pair(symbol: str) -> str:
    return f"{symbol.upper()}{QUOTE_ASSET}"


class BinanceClient:
    """Binance REST API v3 (or a compatible mirror)."""

    def __init__(
        self,
        http: HttpClient,
        base_url: str = "https://api.binance.com/api/v3",
        name: str = "binance",
    ):
        self._http = http
        self.base_url = base_url.rstrip("/")
        self.name = name

    async def fetch_price(self, symbol: str) -> PriceSample:
        ticker = await self._http.get_model(
            f"{self.base_url}/ticker/price",
            BinanceTickerPrice,
            params={"symbol": pair(symbol)},
            provider=self.name,
        )
        return PriceSample(symbol=symbol.upper(), price=ticker.price, source=self.name)

    async def fetch_klines(self, symbol: str, interval: str, limit: int) -> CandleSeries:
        """
        Fetch OHLC candles.

        An empty array is treated as a decode failure so the next provider
        in the chain gets a chance.
        """
        payload = await self._http.get_model(
            f"{self.base_url}/klines",
            KlinesPayload,
            params={"symbol": pair(symbol), "interval": interval, "limit": limit},
            provider=self.name,
        )
        if not payload.root:
            raise DecodeError(self.name, f"no candles for {pair(symbol)} {interval}")
        return CandleSeries(
            symbol=symbol.upper(),
            interval=interval,
            candles=payload.root,
            source=self.name,
        )

    async def fetch_order_book(self, symbol: str, depth: int = 5) -> OrderBookSnapshot:
        limit = next((n for n in DEPTH_LIMITS if n >= depth), DEPTH_LIMITS[-1])
        book = await self._http.get_model(
            f"{self.base_url}/depth",
            OrderBookPayload,
            params={"symbol": pair(symbol), "limit": limit},
            provider=self.name,
        )
        return OrderBookSnapshot(
            symbol=symbol.upper(),
            bids=book.bids[:depth],
            asks=book.asks[:depth],
            source=self.name,
        )
