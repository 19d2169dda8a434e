"""SQLite identity store: one async engine per app, built from its Settings."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from minidrive.config import Settings
from minidrive.models.base import Base

logger = logging.getLogger(__name__)


def _enable_wal(dbapi_conn, _connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.close()


class IdentityDatabase:
    """Engine and session factory for the users table at ``path``."""

    def __init__(self, path: str | Path, echo: bool = False):
        self.path = Path(path)
        self.engine: AsyncEngine = create_async_engine(f"sqlite+aiosqlite:///{self.path}", echo=echo)
        event.listen(self.engine.sync_engine, "connect", _enable_wal)
        self.sessionmaker = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

    @classmethod
    def from_settings(cls, settings: Settings) -> "IdentityDatabase":
        return cls(settings.database_path, echo=settings.debug and settings.log_level == "DEBUG")

    async def create_tables(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Identity store ready at %s", self.path)

    async def dispose(self) -> None:
        await self.engine.dispose()


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Session on the identity store of the app serving this request."""
    database: IdentityDatabase = request.app.state.database
    async with database.sessionmaker() as session:
        yield session
