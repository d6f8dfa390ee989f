"""Async database engine and session management"""

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from transaction_service.config import settings
from transaction_service.infrastructure.database.models import Base


def build_engine(database_url: str | None = None, **kwargs) -> AsyncEngine:
    """Create an async engine; pool sizing only applies to server databases"""
    url = database_url or settings.database_url
    if not url.startswith("sqlite"):
        kwargs.setdefault("pool_size", settings.db_pool_size)
        kwargs.setdefault("max_overflow", settings.db_max_overflow)
        kwargs.setdefault("pool_recycle", 3600)
    return create_async_engine(url, pool_pre_ping=True, **kwargs)


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Objects stay readable after commit; snapshots are handed to background tasks
    return async_sessionmaker(bind=bind, expire_on_commit=False, autoflush=False)


engine = build_engine()
SessionLocal = build_session_factory(engine)


async def get_db() -> AsyncIterator[AsyncSession]:
    """Dependency injection for database sessions"""
    async with SessionLocal() as db:
        yield db


async def init_db(bind: AsyncEngine | None = None) -> None:
    """Create all tables that do not exist yet"""
    async with (bind or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
