"""
SQLAlchemy async engine and session management

This module provides:
1. AsyncEngineManager: event-loop-aware engine + session maker
2. Base: declarative base shared by every ORM model
3. Database: session provider used by DI (audit trail, sweepers, query repos)

The statement timeout is applied per connection so a stuck lock wait fails the
request cleanly instead of pinning a pool slot.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from src.platform.config.core_setting import settings
from src.platform.logging.loguru_io import Logger


def build_engine_kwargs(url: str) -> dict[str, Any]:
    timeout = settings.DB_STATEMENT_TIMEOUT_SECONDS
    if url.startswith('sqlite'):
        kwargs: dict[str, Any] = {'connect_args': {'timeout': timeout}}
        if ':memory:' in url:
            # One shared connection, otherwise every checkout sees an empty database
            kwargs['poolclass'] = StaticPool
        return kwargs
    return {
        'pool_size': settings.DB_POOL_SIZE,
        'max_overflow': settings.DB_POOL_MAX_OVERFLOW,
        'pool_timeout': settings.DB_POOL_TIMEOUT,
        'pool_recycle': settings.DB_POOL_RECYCLE,
        'pool_pre_ping': settings.DB_POOL_PRE_PING,
        'connect_args': {
            'command_timeout': timeout,
            'server_settings': {
                'statement_timeout': str(timeout * 1000),
                'lock_timeout': str(timeout * 1000),
            },
        },
    }


class AsyncEngineManager:
    """
    Keeps the engine bound to the running event loop to prevent
    "Task got Future attached to a different loop" errors.
    """

    def __init__(self) -> None:
        self._engine: Optional[AsyncEngine] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._session_maker: Optional[async_sessionmaker[AsyncSession]] = None

    def get_engine(self) -> AsyncEngine:
        try:
            current_loop = asyncio.get_running_loop()
        except RuntimeError:
            if self._engine is None:
                self._engine = self._create_engine()
            return self._engine

        if self._loop is not current_loop:
            if self._engine is not None:
                Logger.base.warning('🔄 [DB] Event loop changed, recreating engine...')
                self._session_maker = None

            Logger.base.info(f'🔗 [DB] Creating engine for event loop {id(current_loop)}')
            self._engine = self._create_engine()
            self._loop = current_loop

        assert self._engine is not None
        return self._engine

    def get_session_maker(self) -> async_sessionmaker[AsyncSession]:
        engine = self.get_engine()
        if self._session_maker is None:
            self._session_maker = async_sessionmaker(
                engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )
        return self._session_maker

    async def dispose(self) -> None:
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._session_maker = None
        self._loop = None

    def _create_engine(self) -> AsyncEngine:
        url = settings.DATABASE_URL_ASYNC
        return create_async_engine(url, echo=False, **build_engine_kwargs(url))


_engine_manager = AsyncEngineManager()


def get_engine() -> AsyncEngine:
    return _engine_manager.get_engine()


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    return _engine_manager.get_session_maker()


async def dispose_engine() -> None:
    await _engine_manager.dispose()


class Base(DeclarativeBase):
    pass


async def create_db_and_tables(engine: AsyncEngine | None = None) -> None:
    """Create tables that do not exist yet (local runs and tests; production uses alembic)"""
    current_engine = engine or get_engine()
    async with current_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)
    Logger.base.info('🗄️  [DB] Tables ensured')


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide async session for FastAPI dependency injection

    The session maker context manager closes the session and rolls back
    anything left uncommitted.
    """
    session_maker = get_session_maker()
    async with session_maker() as session:
        yield session


class Database:
    """
    Session provider for DI-managed collaborators that run outside the request session
    (audit trail writes, background sweeps).
    """

    def __init__(self, *, session_maker: async_sessionmaker[AsyncSession] | None = None) -> None:
        self._session_maker = session_maker

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        session_maker = self._session_maker or get_session_maker()
        async with session_maker() as session:
            yield session
