"""Database session management using SQLModel async."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

# Import all models to ensure they are registered with SQLModel metadata
import compat_gateway.models  # noqa: F401
from compat_gateway.config import DatabaseConfig, get_settings

logger = structlog.get_logger()

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

# Lazy initialization - engine created on first use
_engine: AsyncEngine | None = None
_session_factory: SessionFactory | None = None


def create_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine for the given URL."""
    return create_async_engine(url, echo=echo, future=True)


def build_session_factory(engine: AsyncEngine) -> SessionFactory:
    """Build a context-managed session factory bound to ``engine``.

    Each session commits when the block exits cleanly and rolls back
    when it raises.
    """
    maker = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    @asynccontextmanager
    async def session_scope() -> AsyncGenerator[AsyncSession, None]:
        async with maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return session_scope


def _get_engine(config: DatabaseConfig | None = None) -> AsyncEngine:
    """Get or create the async engine."""
    global _engine
    if _engine is None:
        config = config or get_settings().database
        _engine = create_engine(config.url, echo=config.echo)
    return _engine


def get_session_factory() -> SessionFactory:
    """Get or create the process-wide session factory."""
    global _session_factory
    if _session_factory is None:
        _session_factory = build_session_factory(_get_engine())
    return _session_factory


async def create_tables(engine: AsyncEngine) -> None:
    """Create any missing tables on ``engine``."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def init_db(config: DatabaseConfig | None = None) -> None:
    """Initialize database tables.

    Args:
        config: Database section to use instead of the global settings.

    Note: In production, use migrations instead.
    This is for development/testing convenience.
    """
    engine = _get_engine(config)
    await create_tables(engine)
    logger.info("db.init", url=engine.url.render_as_string(hide_password=True))


async def close_db() -> None:
    """Close database connection."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
