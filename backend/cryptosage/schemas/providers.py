"""
Provider Response Schemas

One model per third-party endpoint. `HttpClient.get_model` validates raw
JSON against these, so a malformed response surfaces as a single DecodeError
instead of scattered missing-key handling.
"""

from datetime import datetime, timezone
from typing import Any, Optional
from pydantic import BaseModel, Field, RootModel, field_validator, model_validator

from cryptosage.schemas.market import Candle, CoinRecord, GlobalStats, OrderBookLevel


# =============================================================================
# COINGECKO
# =============================================================================


class CoinGeckoSparkline(BaseModel):
    price: Optional[list[Optional[float]]] = None


class CoinGeckoMarket(BaseModel):
    """Item of /coins/markets."""

    symbol: str
    name: str
    image: Optional[str] = None
    current_price: Optional[float] = None
    market_cap: Optional[float] = None
    total_volume: Optional[float] = None
    price_change_percentage_24h: Optional[float] = None
    price_change_percentage_1h_in_currency: Optional[float] = None
    sparkline_in_7d: Optional[CoinGeckoSparkline] = None

    def to_record(self) -> CoinRecord:
        sparkline = []
        if self.sparkline_in_7d and self.sparkline_in_7d.price:
            sparkline = [p for p in self.sparkline_in_7d.price if p is not None]
        return CoinRecord(
            symbol=self.symbol,
            name=self.name,
            price=max(self.current_price or 0.0, 0.0),
            change_24h=self.price_change_percentage_24h or 0.0,
            change_1h=self.price_change_percentage_1h_in_currency or 0.0,
            volume=max(self.total_volume or 0.0, 0.0),
            market_cap=max(self.market_cap or 0.0, 0.0),
            sparkline_7d=sparkline,
            image_url=self.image,
        )


class CoinGeckoGlobalData(BaseModel):
    active_cryptocurrencies: Optional[int] = None
    markets: Optional[int] = None
    total_market_cap: dict[str, float] = Field(default_factory=dict)
    total_volume: dict[str, float] = Field(default_factory=dict)
    market_cap_percentage: dict[str, float] = Field(default_factory=dict)
    market_cap_change_percentage_24h_usd: Optional[float] = None


class CoinGeckoGlobalResponse(BaseModel):
    """Envelope of /global."""

    data: CoinGeckoGlobalData

    def to_stats(self) -> GlobalStats:
        d = self.data
        return GlobalStats(
            total_market_cap=d.total_market_cap,
            total_volume=d.total_volume,
            dominance=d.market_cap_percentage,
            market_cap_change_24h=d.market_cap_change_percentage_24h_usd,
            active_cryptocurrencies=d.active_cryptocurrencies,
            markets=d.markets,
            source="coingecko",
        )


# /simple/price -> {"bitcoin": {"usd": 27000.0}}
CoinGeckoSimplePrice = dict[str, dict[str, float]]


# =============================================================================
# COINPAPRIKA
# =============================================================================


class CoinPaprikaQuote(BaseModel):
    price: Optional[float] = None
    volume_24h: Optional[float] = None
    market_cap: Optional[float] = None
    percent_change_1h: Optional[float] = None
    percent_change_24h: Optional[float] = None


class CoinPaprikaTicker(BaseModel):
    """Item of /tickers. No sparkline or image."""

    id: str
    name: str
    symbol: str
    quotes: dict[str, CoinPaprikaQuote] = Field(default_factory=dict)

    def to_record(self, fiat: str = "USD") -> CoinRecord:
        quote = self.quotes.get(fiat.upper()) or CoinPaprikaQuote()
        return CoinRecord(
            symbol=self.symbol,
            name=self.name,
            price=max(quote.price or 0.0, 0.0),
            change_24h=quote.percent_change_24h or 0.0,
            change_1h=quote.percent_change_1h or 0.0,
            volume=max(quote.volume_24h or 0.0, 0.0),
            market_cap=max(quote.market_cap or 0.0, 0.0),
        )


class CoinPaprikaGlobal(BaseModel):
    """Payload of /global."""

    market_cap_usd: float
    volume_24h_usd: float
    bitcoin_dominance_percentage: Optional[float] = None
    cryptocurrencies_number: Optional[int] = None
    market_cap_change_24h: Optional[float] = None

    def to_stats(self) -> GlobalStats:
        dominance = {}
        if self.bitcoin_dominance_percentage is not None:
            dominance["btc"] = self.bitcoin_dominance_percentage
        return GlobalStats(
            total_market_cap={"usd": self.market_cap_usd},
            total_volume={"usd": self.volume_24h_usd},
            dominance=dominance,
            market_cap_change_24h=self.market_cap_change_24h,
            active_cryptocurrencies=self.cryptocurrencies_number,
            source="coinpaprika",
        )


# =============================================================================
# EXCHANGES
# =============================================================================


class CoinbaseSpotData(BaseModel):
    base: str
    currency: str
    amount: float


class CoinbaseSpotResponse(BaseModel):
    data: CoinbaseSpotData


class BinanceTickerPrice(BaseModel):
    symbol: str
    price: float


def _book_rows(rows: Any) -> list[dict[str, Any]]:
    if not isinstance(rows, list):
        raise ValueError("order book side must be an array")
    levels = []
    for row in rows:
        if not isinstance(row, (list, tuple)) or len(row) < 2:
            raise ValueError(f"malformed order book level: {row!r}")
        levels.append({"price": row[0], "quantity": row[1]})
    return levels


class OrderBookPayload(BaseModel):
    """Depth payload shared by Coinbase Exchange and Binance: [[price, qty, ...], ...]."""

    bids: list[OrderBookLevel]
    asks: list[OrderBookLevel]

    @field_validator("bids", "asks", mode="before")
    @classmethod
    def _levels(cls, value: Any) -> list[dict[str, Any]]:
        return _book_rows(value)


def _kline_row(row: Any) -> dict[str, Any]:
    if not isinstance(row, (list, tuple)) or len(row) < 5:
        raise ValueError(f"malformed kline: {row!r}")
    try:
        open_time = datetime.fromtimestamp(float(row[0]) / 1000.0, tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        raise ValueError(f"invalid kline open time: {row[0]!r}")
    return {
        "open_time": open_time,
        "open": row[1],
        "high": row[2],
        "low": row[3],
        "close": row[4],
        "volume": row[5] if len(row) > 5 else None,
    }


class KlinesPayload(RootModel[list[Candle]]):
    """/klines rows: [openTimeMs, open, high, low, close, volume, ...]."""

    @model_validator(mode="before")
    @classmethod
    def _rows(cls, value: Any) -> list[dict[str, Any]]:
        if not isinstance(value, list):
            raise ValueError("klines payload must be an array")
        return [_kline_row(row) for row in value]
