"""
Market List Reconciler

Turns raw provider records into the displayed list:

1. drop noise listings (wrapped/bridged tokens) by display name
2. dedup by symbol, first occurrence wins
3. re-apply favorites
4. segment filter (all / favorites / gainers / losers)
5. search filter on symbol or name
6. order: pinned list first in the default view, else the active sort
"""

from operator import attrgetter
from typing import Iterable, Sequence

from cryptosage.schemas.market import (
    CoinRecord,
    Segment,
    SortDirection,
    SortField,
    ViewState,
)

DEFAULT_PINNED = (
    "BTC", "ETH", "BNB", "XRP", "ADA", "DOGE", "MATIC", "SOL",
    "DOT", "LTC", "SHIB", "TRX", "AVAX", "LINK", "UNI", "BCH",
)
DEFAULT_NOISE_MARKERS = ("binance-peg", "bridged", "wormhole")


class Reconciler:
    def __init__(
        self,
        pinned: Sequence[str] = DEFAULT_PINNED,
        noise_markers: Sequence[str] = DEFAULT_NOISE_MARKERS,
    ):
        self.pinned = [s.upper() for s in pinned]
        self._pin_rank = {symbol: i for i, symbol in enumerate(self.pinned)}
        self.noise_markers = [m.lower() for m in noise_markers]

    def is_noise(self, record: CoinRecord) -> bool:
        name = record.name.lower()
        return any(marker in name for marker in self.noise_markers)

    def clean(self, records: Iterable[CoinRecord], favorites: Iterable[str]) -> list[CoinRecord]:
        """Steps 1-3: the canonical list."""
        favorite_set = {s.upper() for s in favorites}
        seen: set[str] = set()
        cleaned = []
        for record in records:
            if self.is_noise(record) or record.symbol in seen:
                continue
            seen.add(record.symbol)
            is_favorite = record.symbol in favorite_set
            if record.is_favorite != is_favorite:
                record = record.model_copy(update={"is_favorite": is_favorite})
            cleaned.append(record)
        return cleaned

    def apply_view(self, records: Sequence[CoinRecord], view: ViewState) -> list[CoinRecord]:
        """Steps 4-6 over an already cleaned list."""
        visible = [r for r in records if self._in_segment(r, view.segment)]

        query = view.search.strip().lower()
        if query:
            visible = [r for r in visible if query in r.symbol.lower() or query in r.name.lower()]

        if view.is_default:
            return self._pinned_order(visible)
        return self._sorted(visible, view.sort_field, view.sort_direction)

    def reconcile(
        self,
        records: Iterable[CoinRecord],
        favorites: Iterable[str],
        view: ViewState,
    ) -> list[CoinRecord]:
        return self.apply_view(self.clean(records, favorites), view)

    # ============ Helpers ============

    @staticmethod
    def _in_segment(record: CoinRecord, segment: Segment) -> bool:
        if segment == Segment.FAVORITES:
            return record.is_favorite
        if segment == Segment.GAINERS:
            return record.change_24h > 0
        if segment == Segment.LOSERS:
            return record.change_24h < 0
        return True

    def _pinned_order(self, records: list[CoinRecord]) -> list[CoinRecord]:
        pinned = sorted(
            (r for r in records if r.symbol in self._pin_rank),
            key=lambda r: self._pin_rank[r.symbol],
        )
        rest = sorted(
            (r for r in records if r.symbol not in self._pin_rank),
            key=lambda r: r.market_cap,
            reverse=True,
        )
        return pinned + rest

    @staticmethod
    def _sorted(records: list[CoinRecord], field: SortField, direction: SortDirection) -> list[CoinRecord]:
        key = attrgetter(field.value)
        return sorted(records, key=key, reverse=direction == SortDirection.DESC)
