"""
Database module for CryptoSage.

SQLite (aiosqlite) blob store for snapshots and favorites.
"""

from cryptosage.db.database import Database, StoredBlob
from cryptosage.db.models import Base, Snapshot

__all__ = [
    "Database",
    "StoredBlob",
    "Base",
    "Snapshot",
]
