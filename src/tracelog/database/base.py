"""SQLAlchemy engine configuration."""

from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from .query_logging import QueryLogger, instrument_engine


def create_engine(
    database_url: str,
    echo: bool = False,
    query_logger: QueryLogger | None = None,
    **kwargs,
) -> AsyncEngine:
    """Create an async database engine with statement logging.

    Args:
        database_url: Connection string (async driver, e.g. asyncpg)
        echo: Enable SQLAlchemy's own SQL logging
        query_logger: Statement logger (defaults to QueryLogger())
    """
    engine = create_async_engine(database_url, echo=echo, **kwargs)
    instrument_engine(engine, query_logger)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Create async session factory."""
    return async_sessionmaker(engine, expire_on_commit=False)
