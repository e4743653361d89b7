"""Async SQLAlchemy engine and session scope shared by accounts and certificates."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from certchain.common.config import CertchainSettings, get_settings
from certchain.common.models import Base

# Both table modules must be imported before create_all().
import certchain.accounts.models  # noqa: F401
import certchain.certificates.models  # noqa: F401


class DatabaseManager:
    """One engine per process; a session per unit of work."""

    def __init__(self, settings: CertchainSettings | None = None):
        self._settings = settings or get_settings()
        self.engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def initialized(self) -> bool:
        return self.engine is not None and self._session_factory is not None

    def _require_init(self) -> None:
        if not self.initialized:
            raise RuntimeError("DatabaseManager not initialized; call init() first")

    async def init(self) -> None:
        self.engine = create_async_engine(self._settings.db_url, echo=False)
        # Handlers serialize rows after commit, so keep attributes loaded
        self._session_factory = async_sessionmaker(self.engine, expire_on_commit=False)

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Commit when the block exits cleanly, roll back on any error."""
        self._require_init()
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def create_all(self) -> None:
        self._require_init()
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        if self.engine is None:
            return
        await self.engine.dispose()
        self.engine = None
        self._session_factory = None
