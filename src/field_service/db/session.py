"""Database Session Management.

Provides:
- Async SQLAlchemy engine creation
- AsyncSession factory
- Request-scoped session context manager
- Database initialization and table creation
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from field_service.config import get_settings
from field_service.db.base import Base


# Global engine and session factory (initialized lazily)
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def create_engine_for_url(url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine with pooling suited to the database type.

    Connection pooling:
        - SQLite (dev/test): driver defaults, 30s busy timeout so
          concurrent writers wait instead of failing
        - PostgreSQL (prod): pool_size=5, max_overflow=10, pool_timeout=30
    """
    if "sqlite" in url:
        if "///" in url:
            db_path = url.split("///")[1]
            if db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        return create_async_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

    if "postgresql" in url or "postgres" in url:
        return create_async_engine(
            url,
            echo=echo,
            pool_size=5,
            max_overflow=10,
            pool_timeout=30,
            pool_recycle=1800,
            pool_pre_ping=True,
        )

    return create_async_engine(
        url,
        echo=echo,
        pool_size=3,
        max_overflow=5,
        pool_timeout=30,
        pool_pre_ping=True,
    )


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build a session factory bound to an engine.

    Sessions do not expire objects on commit so entities returned by a unit
    of work stay readable after it finishes.
    """
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    """Get or create the async database engine."""
    global _engine

    if _engine is None:
        settings = get_settings()
        _engine = create_engine_for_url(
            settings.database.url,
            echo=settings.database.echo,
        )

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory."""
    global _session_factory

    if _session_factory is None:
        _session_factory = make_session_factory(get_engine())

    return _session_factory


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """Context manager for a session that commits on success.

    Usage:
        async with get_db_context() as db:
            services = build_services(db)
            await services.visits.transition_visit_status(...)
    """
    session_factory = get_session_factory()

    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create all tables. Safe to call multiple times."""
    # Import all models to register them with Base.metadata
    from field_service.db import models  # noqa: F401

    engine = get_engine()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Dispose of the engine and forget the session factory."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
