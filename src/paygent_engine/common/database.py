"""Async database manager for Paygent-Engine (single-DB)."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from paygent_engine.common.config import PaygentSettings, get_settings
from paygent_engine.common.models import Base

# Import all model modules so Base.metadata is complete for create_all().
import paygent_engine.customers.models  # noqa: F401
import paygent_engine.agents.models  # noqa: F401
import paygent_engine.catalog.models  # noqa: F401
import paygent_engine.metering.models  # noqa: F401
import paygent_engine.credits.models  # noqa: F401
import paygent_engine.fees.models  # noqa: F401


class DatabaseManager:
    """Manages a single async database engine.

    Each ``get_session()`` block is one transaction: committed on clean exit,
    rolled back if anything inside raises.
    """

    def __init__(self, settings: PaygentSettings | None = None):
        self._settings = settings or get_settings()
        self.engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    async def init(self) -> None:
        url = self._settings.db_url
        self.engine = create_async_engine(url, echo=self._settings.db_echo)
        self._session_factory = async_sessionmaker(
            self.engine, expire_on_commit=False
        )

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        if self._session_factory is None:
            raise RuntimeError("DatabaseManager not initialized — call init() first")
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        if self.engine is None:
            raise RuntimeError("DatabaseManager not initialized — call init() first")
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self.engine:
            await self.engine.dispose()
            self.engine = None
            self._session_factory = None
