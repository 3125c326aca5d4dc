"""
Database Connection Management

Async database engine and session handling with SQLAlchemy 2.0.
Implements engine lifecycle, schema creation per design variant and
health checks.
"""

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Iterable, Optional

import structlog
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

from src.config import get_settings
from src.database.models import Base, SchemaVariant, tables_for

logger = structlog.get_logger(__name__)

# Global engine and session factory
_engine: Optional[AsyncEngine] = None
_async_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    """SQLite ignores FOREIGN KEY clauses unless enabled per connection"""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: str, echo: bool = False) -> AsyncEngine:
    """
    Create an async engine for the given URL.

    In-memory SQLite databases live inside a single connection, so they are
    pinned with StaticPool. SQLite engines also get foreign key enforcement.

    Args:
        url: SQLAlchemy async URL
        echo: Echo SQL statements

    Returns:
        AsyncEngine: The configured engine
    """
    engine_config = {
        "echo": echo,
        "pool_pre_ping": True,
    }

    if url.startswith("sqlite"):
        if ":memory:" in url or url.rstrip("/").endswith("sqlite+aiosqlite:"):
            engine_config["poolclass"] = StaticPool
        else:
            engine_config["poolclass"] = NullPool

    engine = create_async_engine(url, **engine_config)

    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    return engine


async def init_database(url: Optional[str] = None) -> AsyncEngine:
    """
    Initialize the global database engine.

    Args:
        url: Override for the configured database URL

    Returns:
        AsyncEngine: The initialized database engine
    """
    global _engine, _async_session_factory

    if _engine is not None:
        logger.warning("Database already initialized")
        return _engine

    settings = get_settings()
    _engine = build_engine(url or settings.database.async_url, echo=settings.database.echo)

    _async_session_factory = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    # Verify connection
    try:
        async with _engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info(
            "Database connection established",
            dialect=_engine.dialect.name,
            database=_engine.url.database,
        )
    except Exception as e:
        logger.error("Failed to connect to database", error=str(e))
        await _engine.dispose()
        _engine = None
        _async_session_factory = None
        raise

    return _engine


async def close_database() -> None:
    """
    Dispose of the global engine.
    """
    global _engine, _async_session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _async_session_factory = None
        logger.info("Database connection pool closed")


def get_engine() -> AsyncEngine:
    """
    Get the database engine.

    Returns:
        AsyncEngine: The active database engine

    Raises:
        RuntimeError: If database is not initialized
    """
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _engine


@asynccontextmanager
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Get a database session.

    Context manager that provides a database session and handles
    commit/rollback/close automatically.

    Yields:
        AsyncSession: Database session

    Example:
        async with get_db() as db:
            rows = await run_query(db, top_customers())
    """
    if _async_session_factory is None:
        logger.error("Database not initialized when get_db() called")
        raise RuntimeError("Database not initialized. Call init_database() first.")

    session = _async_session_factory()
    try:
        yield session
        await session.commit()
    except Exception as e:
        logger.error("Database session error, rolling back", error=str(e), error_type=type(e).__name__)
        await session.rollback()
        raise
    finally:
        await session.close()


def _resolve_variants(variants: Optional[Iterable[SchemaVariant]]) -> list:
    if variants is None:
        return list(SchemaVariant)
    return [SchemaVariant(v) for v in variants]


async def create_schemas(
    engine: AsyncEngine,
    variants: Optional[Iterable[SchemaVariant]] = None,
) -> None:
    """
    Create the tables of the requested schema variants (all by default).

    Existing tables are left untouched.
    """
    tables = []
    for variant in _resolve_variants(variants):
        tables.extend(tables_for(variant))

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all, tables=tables)

    logger.info("Schemas created", tables=[t.name for t in tables])


async def drop_schemas(
    engine: AsyncEngine,
    variants: Optional[Iterable[SchemaVariant]] = None,
) -> None:
    """Drop the tables of the requested schema variants (all by default)"""
    tables = []
    for variant in _resolve_variants(variants):
        tables.extend(tables_for(variant))

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all, tables=tables)

    logger.info("Schemas dropped", tables=[t.name for t in tables])


async def check_database_health() -> dict:
    """
    Check database health status.

    Returns:
        dict: Health status with latency information
    """
    try:
        start = time.perf_counter()
        async with get_db() as db:
            await db.execute(text("SELECT 1"))
        latency_ms = (time.perf_counter() - start) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(latency_ms, 2),
            "dialect": get_engine().dialect.name,
        }
    except Exception as e:
        return {
            "status": "unhealthy",
            "error": str(e),
        }
