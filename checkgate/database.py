"""Database engine, session management, and table creation."""

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import CheckGateConfig
from .models.base import Base
from .utils.logging import get_logger

logger = get_logger("checkgate.database")

_engine = None
_session_factory = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def install_sqlite_pragmas(engine: AsyncEngine) -> None:
    """Turn on foreign-key enforcement so child rows cascade with their snapshot."""
    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)


def get_engine(config: CheckGateConfig) -> AsyncEngine:
    """Get or create the async database engine."""
    global _engine
    if _engine is None:
        connect_args = {"timeout": 30} if config.database_url.startswith("sqlite") else {}
        _engine = create_async_engine(
            config.database_url,
            echo=config.debug,
            pool_pre_ping=True,
            connect_args=connect_args,
        )
        install_sqlite_pragmas(_engine)
    return _engine


def get_session_factory(config: CheckGateConfig) -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory."""
    global _session_factory
    if _session_factory is None:
        engine = get_engine(config)
        _session_factory = async_sessionmaker(engine, expire_on_commit=False)
    return _session_factory


async def create_tables(engine: AsyncEngine) -> None:
    """Create all database tables."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_tables_ready", url=str(engine.url))


async def close_engine() -> None:
    """Close the database engine."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
