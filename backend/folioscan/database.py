"""
FolioScan Backend — Database Engine & Session Factory
======================================================

What:  Async SQLAlchemy engine, session factory and declarative base.
How:   One engine (connection pool) per process. The session factory is handed
       to the resource repository, which opens a short session per call, so
       each repository call is its own unit of work.
Who:   Used by the app lifespan (container wiring, shutdown), the health route
       and Alembic.

Connection Pooling (PostgreSQL):
    pool_size=20, max_overflow=10 → at most 30 connections
    pool_pre_ping                 → stale connections are replaced before use
    pool_recycle=3600             → connections recycled hourly

SQLite URLs (tests, local experiments) get no pool sizing arguments because
SQLAlchemy's SQLite pools do not accept them.
"""

from typing import Any, Dict

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from folioscan.config import settings


def _engine_options(database_url: str) -> Dict[str, Any]:
    """Pool options for the configured dialect."""
    options: Dict[str, Any] = {"echo": settings.log_level == "DEBUG"}
    if database_url.startswith("sqlite"):
        return options
    options.update(
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_recycle=3600,
    )
    return options


def build_engine(database_url: str) -> AsyncEngine:
    """Create an async engine for `database_url` with the pool options above."""
    return create_async_engine(database_url, **_engine_options(database_url))


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """
    Session factory with expire_on_commit=False.

    Rows returned by the repository are read after their session has
    committed and closed; expiring them on commit would force a reload.
    """
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


# ── Engine Configuration ──────────────────────────────────────────────────
engine = build_engine(settings.database_url)

# ── Session Factory ───────────────────────────────────────────────────────
async_session_factory = build_session_factory(engine)


# ── Base Model ────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    All models inherit from this class to register with the shared metadata
    (used by Alembic and by test fixtures calling create_all).
    """
    pass


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def dispose_engine() -> None:
    """
    Gracefully closes all connections in the pool.

    Called during application shutdown (lifespan handler).
    """
    await engine.dispose()
