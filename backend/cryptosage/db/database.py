"""
Database connection and session management.

Uses SQLite with aiosqlite for async support.
"""

import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncGenerator, NamedTuple, Optional

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from cryptosage.db.models import Base, Snapshot

logger = logging.getLogger(__name__)

# Default location: backend/data/cryptosage.db
DATA_DIR = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), "data")


def default_sqlite_path() -> str:
    os.makedirs(DATA_DIR, exist_ok=True)
    return os.path.join(DATA_DIR, "cryptosage.db")


class StoredBlob(NamedTuple):
    payload: str
    saved_at: datetime


class Database:
    """Async engine + session factory for one SQLite file."""

    def __init__(self, sqlite_path: Optional[str] = None, echo: bool = False):
        self.sqlite_path = sqlite_path or default_sqlite_path()
        self.url = f"sqlite+aiosqlite:///{self.sqlite_path}"

        # SQLite requires check_same_thread=False for async
        self.engine = create_async_engine(
            self.url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def init(self) -> None:
        """
        Create all tables.
        Called on application startup.
        """
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info(f"Database initialized at: {self.sqlite_path}")
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            raise

    async def close(self) -> None:
        """
        Close database connections.
        Called on application shutdown.
        """
        await self.engine.dispose()
        logger.info("Database connections closed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session that commits on success and rolls back on error."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    # ============ Blob helpers ============

    async def get_blob(self, key: str) -> Optional[StoredBlob]:
        """Read the blob stored under `key`, if any."""
        async with self.session() as session:
            result = await session.execute(select(Snapshot).where(Snapshot.key == key))
            row = result.scalar_one_or_none()
            if row is None:
                return None
            saved_at = row.saved_at
            # SQLite drops tzinfo on the way back
            if saved_at.tzinfo is None:
                saved_at = saved_at.replace(tzinfo=timezone.utc)
            return StoredBlob(row.payload, saved_at)

    async def put_blob(self, key: str, payload: str) -> datetime:
        """Replace the blob under `key` in a single upsert statement."""
        saved_at = datetime.now(timezone.utc)
        stmt = insert(Snapshot).values(key=key, payload=payload, saved_at=saved_at)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Snapshot.key],
            set_={"payload": stmt.excluded.payload, "saved_at": stmt.excluded.saved_at},
        )
        async with self.session() as session:
            await session.execute(stmt)
        return saved_at

    async def delete_blob(self, key: str) -> None:
        async with self.session() as session:
            row = await session.get(Snapshot, key)
            if row is not None:
                await session.delete(row)
