from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from .config import DATABASE_URL
from .db_errors import StorageClosed


Base = declarative_base()


def _engine_kwargs(database_url: str) -> dict:
    engine_kwargs = {"echo": False}

    if database_url.startswith("sqlite+aiosqlite://"):
        # In-memory SQLite must reuse the same connection to persist schema/data.
        if ":memory:" in database_url:
            engine_kwargs["poolclass"] = StaticPool
        else:
            # File-backed SQLite on the device: do not pool to avoid cross-loop issues.
            engine_kwargs["poolclass"] = NullPool
    else:
        engine_kwargs["pool_pre_ping"] = True

    return engine_kwargs


class Storage:
    """Handle to the local store shared by the match, event and reference layers.

    The handle is constructed explicitly and passed to each component. Nothing
    touches the database until :meth:`open` has run, and :meth:`close` disposes
    of the engine so the device can shut down cleanly::

        async with Storage("sqlite+aiosqlite:///:memory:") as storage:
            store = MatchStateStore(storage)
    """

    def __init__(self, database_url: str | None = None) -> None:
        self.database_url = database_url or DATABASE_URL
        self._engine: Optional[AsyncEngine] = None
        self._sessionmaker: Optional[sessionmaker] = None

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise StorageClosed("storage is not open")
        return self._engine

    async def open(self) -> "Storage":
        """Create the engine and make sure every collection exists."""

        if self._engine is not None:
            return self

        # Register all tables on ``Base.metadata`` before create_all runs.
        from . import models  # noqa: F401

        self._engine = create_async_engine(
            self.database_url, **_engine_kwargs(self.database_url)
        )
        self._sessionmaker = sessionmaker(
            self._engine, class_=AsyncSession, expire_on_commit=False
        )
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        return self

    async def close(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._sessionmaker = None

    async def __aenter__(self) -> "Storage":
        return await self.open()

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Yield a session bound to this store; callers commit explicitly."""

        if self._sessionmaker is None:
            raise StorageClosed("storage is not open")
        async with self._sessionmaker() as session:
            yield session
