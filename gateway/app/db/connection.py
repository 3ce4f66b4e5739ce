"""
Database connection for the login gateway.

The engine is created on first use, so a missing DATABASE_URL_TRANSACTION
only fails the analytics write that needed it. ``configure`` binds the
settings the engine is built from; the application factory calls it with the
settings it was given.
"""

import asyncio
import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from ..config import Settings, get_settings

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


# Module-level engine and session factory (created on first use)
_settings: Optional[Settings] = None
_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def configure(settings: Settings) -> None:
    """
    Use ``settings`` for the engine created on the next database access.

    An engine built from earlier settings is dropped without being disposed;
    call this before the first write.
    """
    global _settings, _engine, _session_factory
    if _engine is not None:
        logger.warning("Database reconfigured after the engine was created")
    _settings = settings
    _engine = None
    _session_factory = None


def active_settings() -> Settings:
    return _settings or get_settings()


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """
    Build the async engine for the analytics database.

    Raises:
        ConfigurationError: If DATABASE_URL_TRANSACTION is not set
    """
    settings.require("DATABASE_URL_TRANSACTION")

    return create_async_engine(
        settings.async_database_url,
        pool_size=10,
        pool_pre_ping=True,
        connect_args={
            "timeout": 10,
            "ssl": "require",
            # The transaction pooler cannot keep prepared statements.
            "statement_cache_size": 0,
            "server_settings": {"search_path": f"{settings.DATABASE_SCHEMA}, public"},
        },
    )


def get_engine() -> AsyncEngine:
    """Get or create the database engine (singleton)."""
    global _engine
    if _engine is None:
        _engine = create_engine_from_settings(active_settings())
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the session factory (singleton)."""
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
        )
    return _session_factory


async def create_tables() -> None:
    """
    Create the analytics schema and its tables if they do not exist.

    Tables land in the first entry of the connection search_path, which is
    DATABASE_SCHEMA.
    """
    schema = active_settings().DATABASE_SCHEMA
    async with get_engine().begin() as conn:
        await conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{schema}"'))
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Analytics tables ready in schema {schema}")


async def dispose_engine() -> None:
    """Close the connection pool if one was opened."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        logger.info("Closed analytics database pool")
    _engine = None
    _session_factory = None


async def _migrate() -> None:
    try:
        await create_tables()
    finally:
        await dispose_engine()


def migrate() -> None:
    """Console entry point: provision the analytics schema."""
    logging.basicConfig(level=logging.INFO)
    asyncio.run(_migrate())
