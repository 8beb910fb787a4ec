"""
Favorite symbols, persisted independently of the market snapshot.
"""

import logging

from pydantic import TypeAdapter, ValidationError
from sqlalchemy.exc import SQLAlchemyError

from cryptosage.db.database import Database

logger = logging.getLogger(__name__)

FAVORITES_KEY = "favorites.symbols"

_symbols_adapter = TypeAdapter(list[str])


class FavoritesStore:
    """Set of uppercase symbols. Each toggle is written through."""

    def __init__(self, db: Database):
        self._db = db
        self._symbols: set[str] = set()

    @property
    def symbols(self) -> frozenset[str]:
        return frozenset(self._symbols)

    def contains(self, symbol: str) -> bool:
        return symbol.upper() in self._symbols

    async def load(self) -> frozenset[str]:
        """Read the persisted set; absent or corrupt starts empty."""
        try:
            blob = await self._db.get_blob(FAVORITES_KEY)
        except SQLAlchemyError as e:
            logger.warning(f"Favorites read failed: {e}")
            blob = None

        if blob is not None:
            try:
                self._symbols = {s.upper() for s in _symbols_adapter.validate_json(blob.payload)}
            except ValidationError:
                logger.warning("Discarding corrupt favorites entry")
                self._symbols = set()

        logger.info(f"Loaded {len(self._symbols)} favorites")
        return self.symbols

    async def toggle(self, symbol: str) -> bool:
        """Flip membership and persist. Returns the new membership."""
        symbol = symbol.upper()
        if symbol in self._symbols:
            self._symbols.discard(symbol)
        else:
            self._symbols.add(symbol)

        payload = _symbols_adapter.dump_json(sorted(self._symbols)).decode("utf-8")
        try:
            await self._db.put_blob(FAVORITES_KEY, payload)
        except SQLAlchemyError as e:
            logger.warning(f"Favorites write failed: {e}")

        return symbol in self._symbols
