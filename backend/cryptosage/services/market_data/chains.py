"""
Market Data Chains

Builds one FallbackChain per capability from the provider adapters:

    market list   coingecko (paged, 1 retry) -> coinpaprika
    global stats  coingecko -> coinpaprika
    spot price    coinbase -> binance -> binance_us (after 451) -> coingecko
    candles       binance -> binance_us (after 451) -> same host, daily (after bad interval)
    order book    coinbase -> binance -> binance_us (after 451)
"""

import logging
from typing import Optional

from cryptosage.core.config import Settings
from cryptosage.schemas.market import (
    CandleSeries,
    CoinRecord,
    GlobalStats,
    OrderBookSnapshot,
    PriceSample,
)
from cryptosage.services.base import ProviderError, RegionRestrictedError, UnsupportedParameterError
from cryptosage.services.fallback import FallbackChain, ProviderStep
from cryptosage.services.http import HttpClient
from cryptosage.services.market_data.binance_adapter import BinanceClient
from cryptosage.services.market_data.coinbase_adapter import CoinbaseClient
from cryptosage.services.market_data.coingecko_adapter import CoinGeckoClient
from cryptosage.services.market_data.coinpaprika_adapter import CoinPaprikaClient

logger = logging.getLogger(__name__)


class MarketDataChains:
    """Provider fallback chains for every market data capability."""

    def __init__(
        self,
        settings: Settings,
        http: Optional[HttpClient] = None,
        price_http: Optional[HttpClient] = None,
    ):
        self.settings = settings
        self.http = http or HttpClient(timeout=settings.request_timeout_seconds)
        self.price_http = price_http or self.http

        self.coingecko = CoinGeckoClient(self.http, settings.coingecko_base_url)
        self.coinpaprika = CoinPaprikaClient(self.http, settings.coinpaprika_base_url)
        self.coinbase = CoinbaseClient(
            self.http,
            api_url=settings.coinbase_base_url,
            exchange_url=settings.coinbase_exchange_url,
            fiat=settings.fiat_currency,
        )
        self.binance = BinanceClient(self.http, settings.binance_base_url, name="binance")
        self.binance_us = BinanceClient(self.http, settings.binance_us_base_url, name="binance_us")

        # Spot price calls go through the shorter-timeout client
        self._price_coinbase = CoinbaseClient(
            self.price_http,
            api_url=settings.coinbase_base_url,
            exchange_url=settings.coinbase_exchange_url,
            fiat=settings.fiat_currency,
        )
        self._price_binance = BinanceClient(self.price_http, settings.binance_base_url, name="binance")
        self._price_binance_us = BinanceClient(
            self.price_http, settings.binance_us_base_url, name="binance_us"
        )
        self._price_coingecko = CoinGeckoClient(self.price_http, settings.coingecko_base_url)

    async def close(self) -> None:
        await self.http.close()
        if self.price_http is not self.http:
            await self.price_http.close()

    # ============ Market list / global stats ============

    def market_list_chain(self) -> FallbackChain[list[CoinRecord]]:
        s = self.settings
        return FallbackChain(
            "market_list",
            [
                ProviderStep(
                    "coingecko",
                    lambda: self.coingecko.fetch_markets(
                        s.market_pages, s.market_page_size, s.fiat_currency
                    ),
                    retries=1,
                    retry_delay=s.market_retry_delay_seconds,
                ),
                ProviderStep(
                    "coinpaprika",
                    lambda: self.coinpaprika.fetch_tickers(s.paprika_ticker_limit, s.fiat_currency),
                ),
            ],
            timeout=s.request_timeout_seconds,
        )

    def global_stats_chain(self) -> FallbackChain[GlobalStats]:
        return FallbackChain(
            "global_stats",
            [
                ProviderStep("coingecko", self.coingecko.fetch_global),
                ProviderStep("coinpaprika", self.coinpaprika.fetch_global),
            ],
            timeout=self.settings.request_timeout_seconds,
        )

    async def fetch_market_list(self) -> list[CoinRecord]:
        return await self.market_list_chain().run()

    async def fetch_global_stats(self) -> GlobalStats:
        return await self.global_stats_chain().run()

    # ============ Spot price ============

    def spot_price_chain(self, symbol: str) -> FallbackChain[PriceSample]:
        symbol = symbol.upper()
        return FallbackChain(
            f"spot_price:{symbol}",
            [
                ProviderStep("coinbase", lambda: self._price_coinbase.fetch_spot_price(symbol)),
                ProviderStep("binance", lambda: self._price_binance.fetch_price(symbol)),
                ProviderStep(
                    "binance_us",
                    lambda _error: self._price_binance_us.fetch_price(symbol),
                    recovers=RegionRestrictedError,
                ),
                ProviderStep(
                    "coingecko",
                    lambda: self._price_coingecko.fetch_simple_price(
                        symbol, self.settings.fiat_currency
                    ),
                ),
            ],
            timeout=self.settings.price_timeout_seconds,
        )

    async def fetch_spot_price(self, symbol: str) -> PriceSample:
        return await self.spot_price_chain(symbol).run()

    # ============ Candles ============

    def _host_for(self, error: ProviderError) -> BinanceClient:
        """The exchange host that produced `error`."""
        return self.binance_us if error.provider == self.binance_us.name else self.binance

    def candles_chain(self, symbol: str, interval: str, limit: int) -> FallbackChain[CandleSeries]:
        symbol = symbol.upper()
        s = self.settings

        async def normalized(error: ProviderError) -> CandleSeries:
            host = self._host_for(error)
            logger.info(
                f"Candles: {host.name} rejected interval {interval}, "
                f"retrying with {s.fallback_candle_interval}/{s.fallback_candle_limit}"
            )
            return await host.fetch_klines(symbol, s.fallback_candle_interval, s.fallback_candle_limit)

        return FallbackChain(
            f"candles:{symbol}",
            [
                ProviderStep("binance", lambda: self.binance.fetch_klines(symbol, interval, limit)),
                ProviderStep(
                    "binance_us",
                    lambda _error: self.binance_us.fetch_klines(symbol, interval, limit),
                    recovers=RegionRestrictedError,
                ),
                ProviderStep("normalized_interval", normalized, recovers=UnsupportedParameterError),
            ],
            timeout=s.request_timeout_seconds,
        )

    async def fetch_candles(self, symbol: str, interval: str = "1h", limit: int = 100) -> CandleSeries:
        return await self.candles_chain(symbol, interval, limit).run()

    # ============ Order book ============

    def order_book_chain(self, symbol: str) -> FallbackChain[OrderBookSnapshot]:
        symbol = symbol.upper()
        depth = self.settings.order_book_depth
        return FallbackChain(
            f"order_book:{symbol}",
            [
                ProviderStep("coinbase", lambda: self.coinbase.fetch_order_book(symbol, depth)),
                ProviderStep("binance", lambda: self.binance.fetch_order_book(symbol, depth)),
                ProviderStep(
                    "binance_us",
                    lambda _error: self.binance_us.fetch_order_book(symbol, depth),
                    recovers=RegionRestrictedError,
                ),
            ],
            timeout=self.settings.request_timeout_seconds,
        )

    async def fetch_order_book(self, symbol: str) -> OrderBookSnapshot:
        return await self.order_book_chain(symbol).run()
