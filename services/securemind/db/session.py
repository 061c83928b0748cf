"""
Database session management for the SecureMind API server.

The document store is PostgreSQL through async SQLAlchemy. Writes go to the
primary; list and fan-out queries may go to a read replica, which falls back
to the primary if no separate read URL is configured.

Services commit explicitly when a write must be durable before the next one
starts (claim before profile, batch before batch), so the session factories
keep expire_on_commit off and objects stay usable across commits.
"""

from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from securemind.config import settings
from securemind.logging_config import get_logger

logger = get_logger(__name__)


def _make_engine(url: str) -> AsyncEngine:
    return create_async_engine(
        url,
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


def _make_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Primary (read-write) engine
engine = _make_engine(str(settings.database_url))

# Read replica engine, falls back to primary if not configured
engine_read = _make_engine(
    str(settings.database_read_url) if settings.database_read_url else str(settings.database_url)
)

async_session_factory = _make_session_factory(engine)
async_session_factory_read = _make_session_factory(engine_read)


async def init_db() -> None:
    """Initialize database connection pools."""
    logger.info("Initializing database connection (primary)")
    async with engine.begin() as conn:
        await conn.execute(text("SELECT 1"))
    logger.info("Primary database connection established")

    if settings.database_read_url:
        logger.info("Initializing database connection (read replica)")
        async with engine_read.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Read replica database connection established")
    else:
        logger.info("No read replica configured, using primary for reads")


async def close_db() -> None:
    """Close database connection pools."""
    logger.info("Closing database connection pools")
    await engine.dispose()
    if settings.database_read_url:
        await engine_read.dispose()


async def get_db() -> AsyncGenerator[AsyncSession]:
    """
    Dependency that provides a read-write database session (primary).

    Use this for endpoints that create, update, or delete data.

    Usage:
        @router.post("/admin/users")
        async def create_user(db: AsyncSession = Depends(get_db)):
            ...
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_db_read() -> AsyncGenerator[AsyncSession]:
    """
    Dependency that provides a read-only database session (replica).

    Routes to the read replica when configured, otherwise falls back to primary.
    Use this for endpoints that only SELECT data (list, get, search).

    Usage:
        @router.get("/admin/users")
        async def list_users(db: AsyncSession = Depends(get_db_read)):
            ...
    """
    async with async_session_factory_read() as session:
        try:
            yield session
        finally:
            # Read-only sessions should never need commit, but rollback
            # any implicit transaction to return the connection cleanly.
            await session.rollback()


async def get_db_health() -> bool:
    """Check database health for the readiness check."""
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return False


async def get_db_read_health() -> bool:
    """Check read replica health for the readiness check."""
    try:
        async with engine_read.begin() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("Read replica health check failed", error=str(e))
        return False


def get_read_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Dependency that provides the read session factory itself.

    For handlers that fan out independent queries concurrently; an
    AsyncSession cannot run two statements at once, so each concurrent
    query opens its own session from this factory.
    """
    return async_session_factory_read
