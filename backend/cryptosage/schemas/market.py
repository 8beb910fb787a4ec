"""
Market Data Contracts

Canonical models handed from the fetch/reconcile layer to consumers.
Provider payloads are decoded into these in `schemas.providers`.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS
# =============================================================================


class Segment(str, Enum):
    ALL = "all"
    FAVORITES = "favorites"
    GAINERS = "gainers"
    LOSERS = "losers"


class SortField(str, Enum):
    SYMBOL = "symbol"
    PRICE = "price"
    CHANGE_24H = "change_24h"
    VOLUME = "volume"
    MARKET_CAP = "market_cap"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


# =============================================================================
# COIN LIST
# =============================================================================


class CoinRecord(BaseModel):
    """One row of the market list."""

    symbol: str = Field(..., min_length=1)
    name: str
    price: float = Field(..., ge=0)
    change_24h: float = 0.0
    change_1h: float = 0.0
    volume: float = Field(default=0.0, ge=0)
    market_cap: float = Field(default=0.0, ge=0)
    sparkline_7d: list[float] = Field(default_factory=list)
    image_url: Optional[str] = None
    is_favorite: bool = False

    @field_validator("symbol", mode="before")
    @classmethod
    def _uppercase_symbol(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value


class GlobalStats(BaseModel):
    """Market-wide aggregates."""

    total_market_cap: dict[str, float] = Field(default_factory=dict)
    total_volume: dict[str, float] = Field(default_factory=dict)
    dominance: dict[str, float] = Field(
        default_factory=dict,
        description="Market cap dominance % keyed by lowercase symbol",
    )
    market_cap_change_24h: Optional[float] = None
    active_cryptocurrencies: Optional[int] = None
    markets: Optional[int] = None
    source: str = "unknown"


class ViewState(BaseModel):
    """Segment, search and sort selection of the market list."""

    segment: Segment = Segment.ALL
    search: str = ""
    sort_field: SortField = SortField.MARKET_CAP
    sort_direction: SortDirection = SortDirection.DESC

    @property
    def is_default(self) -> bool:
        return (
            not self.search
            and self.segment == Segment.ALL
            and self.sort_field == SortField.MARKET_CAP
            and self.sort_direction == SortDirection.DESC
        )

    def toggle_sort(self, field: SortField) -> "ViewState":
        """Same field flips direction, a new field starts ascending."""
        if field == self.sort_field:
            direction = (
                SortDirection.DESC
                if self.sort_direction == SortDirection.ASC
                else SortDirection.ASC
            )
        else:
            direction = SortDirection.ASC
        return self.model_copy(update={"sort_field": field, "sort_direction": direction})


class MarketView(BaseModel):
    """What the market screen renders."""

    coins: list[CoinRecord]
    view: ViewState
    global_stats: Optional[GlobalStats] = None
    coin_error: Optional[str] = None
    global_error: Optional[str] = None
    coins_updated_at: Optional[datetime] = None
    global_updated_at: Optional[datetime] = None


# =============================================================================
# LIVE DATA
# =============================================================================


class PriceSample(BaseModel):
    """Latest spot price for one symbol."""

    symbol: str
    price: float = Field(..., ge=0)
    source: str
    fetched_at: datetime = Field(default_factory=utc_now)


class OrderBookLevel(BaseModel):
    price: float = Field(..., ge=0)
    quantity: float = Field(..., ge=0)


class OrderBookSnapshot(BaseModel):
    """Full bid/ask depth, replaced on every poll."""

    symbol: str
    bids: list[OrderBookLevel]
    asks: list[OrderBookLevel]
    source: str
    fetched_at: datetime = Field(default_factory=utc_now)


class Candle(BaseModel):
    open_time: datetime
    open: float
    high: float
    low: float
    close: float
    volume: Optional[float] = None


class CandleSeries(BaseModel):
    symbol: str
    interval: str
    candles: list[Candle]
    source: str
