"""
SQLAlchemy models for the CryptoSage snapshot store.

Every durable value (coin list, global stats, favorites) is a JSON blob
stored under a fixed key, so each slot can be replaced independently.
"""

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


class Snapshot(Base):
    """
    Last-known-good blob for one storage key.
    Overwritten wholesale on every save.
    """
    __tablename__ = "snapshots"

    key = Column(String(64), primary_key=True)
    payload = Column(Text, nullable=False)
    saved_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<Snapshot {self.key} saved_at={self.saved_at}>"
