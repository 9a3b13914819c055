"""
Async SQLAlchemy engine & session factory (asyncpg driver).

The engine is owned by an explicit :class:`Database` handle created by the
app factory, so nothing connects at import time.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.ext.asyncio import (AsyncEngine, AsyncSession,
                                    async_sessionmaker, create_async_engine)

from devcore.db.base import Base

logger = logging.getLogger(__name__)


class Database:
    """Engine + session factory with an explicit connect/disconnect lifecycle."""

    def __init__(self, url: str, **engine_kwargs) -> None:
        self.url = url
        self._engine_kwargs = engine_kwargs
        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker[AsyncSession] | None = None

    def connect(self) -> None:
        if self.engine is not None:
            return
        engine_args = {
            "echo": False,
            "pool_pre_ping": True,
        }
        if "postgresql" in self.url:
            engine_args.update(
                {
                    "pool_size": 20,
                    "max_overflow": 10,
                    "pool_recycle": 300,
                }
            )
        engine_args.update(self._engine_kwargs)
        self.engine = create_async_engine(self.url, **engine_args)
        self.session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        logger.info("Database engine created")

    async def disconnect(self) -> None:
        if self.engine is None:
            return
        await self.engine.dispose()
        self.engine = None
        self.session_factory = None
        logger.info("Database engine disposed")

    async def create_all(self) -> None:
        async with self._engine().begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        async with self._engine().begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    def _engine(self) -> AsyncEngine:
        if self.engine is None:
            raise RuntimeError("Database is not connected")
        return self.engine

    def session(self) -> AsyncSession:
        if self.session_factory is None:
            raise RuntimeError("Database is not connected")
        return self.session_factory()

    async def ping(self) -> bool:
        if self.engine is None:
            return False
        try:
            async with self.engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except Exception as exc:  # noqa: BLE001
            logger.warning("Database ping failed: %s", exc)
            return False


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one AsyncSession per request."""
    database: Database = request.app.state.database
    async with database.session() as session:
        try:
            yield session
        finally:
            await session.close()
