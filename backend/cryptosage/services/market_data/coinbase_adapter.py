"""
Coinbase Data Adapter

Spot prices from the public v2 API and level-2 depth from the Exchange API.
Products are quoted as {SYMBOL}-{FIAT}.
"""

import logging

from cryptosage.schemas.market import OrderBookSnapshot, PriceSample
from cryptosage.schemas.providers import CoinbaseSpotResponse, OrderBookPayload
from cryptosage.services.http import HttpClient

logger = logging.getLogger(__name__)


class CoinbaseClient:
    """Coinbase spot price + exchange order book."""

    name = "coinbase"

    def __init__(
        self,
        http: HttpClient,
        api_url: str = "https://api.coinbase.com/v2",
        exchange_url: str = "https://api.exchange.coinbase.com",
        fiat: str = "USD",
    ):
        self._http = http
        self.api_url = api_url.rstrip("/")
        self.exchange_url = exchange_url.rstrip("/")
        self.fiat = fiat.upper()

    def product_id(self, symbol: str) -> str:
        return f"{symbol.upper()}-{self.fiat}"

    async def fetch_spot_price(self, symbol: str) -> PriceSample:
        response = await self._http.get_model(
            f"{self.api_url}/prices/{self.product_id(symbol)}/spot",
            CoinbaseSpotResponse,
            provider=self.name,
        )
        return PriceSample(symbol=symbol.upper(), price=response.data.amount, source=self.name)

    async def fetch_order_book(self, symbol: str, depth: int = 5) -> OrderBookSnapshot:
        """Level 2 aggregated book, trimmed to `depth` levels per side."""
        book = await self._http.get_model(
            f"{self.exchange_url}/products/{self.product_id(symbol)}/book",
            OrderBookPayload,
            params={"level": 2},
            provider=self.name,
        )
        return OrderBookSnapshot(
            symbol=symbol.upper(),
            bids=book.bids[:depth],
            asks=book.asks[:depth],
            source=self.name,
        )
