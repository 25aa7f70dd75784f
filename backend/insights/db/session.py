"""
Engine and session lifecycle.

Two kinds of callers open sessions:

- API routes, through ``insights.db.deps.get_db`` (one session per request)
- The analysis worker and backfill scanner, which receive
  ``AsyncSessionLocal`` and open one session per queue item or scan

Both share the engine created here, so the pool has to cover request
handlers plus the background tasks.
"""

from collections.abc import AsyncGenerator
from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from insights.core.config import Settings, settings
from insights.core.logging import get_logger

logger = get_logger(__name__)


def pool_options(config: Settings) -> dict[str, Any]:
    """
    Engine keyword arguments for the configured database and environment.

    SQLite and staging get a NullPool (a connection per checkout).
    Development and production keep a queue pool sized by
    ``DB_POOL_SIZE`` / ``DB_MAX_OVERFLOW``. The analysis worker commits its
    pending mark before the provider calls, so it only holds a connection
    while reading and writing the feature row.
    """
    options: dict[str, Any] = {"echo": config.DB_ECHO}

    if config.is_sqlite:
        options["poolclass"] = NullPool
        return options

    options["pool_pre_ping"] = True
    options["connect_args"] = {"server_settings": {"application_name": config.APP_NAME}}

    if config.is_development or config.is_production:
        options.update(
            poolclass=AsyncAdaptedQueuePool,
            pool_size=config.DB_POOL_SIZE,
            max_overflow=config.DB_MAX_OVERFLOW,
            pool_timeout=30,
            pool_recycle=7200 if config.is_production else 3600,
        )
    else:
        options["poolclass"] = NullPool

    return options


def create_engine(config: Optional[Settings] = None) -> AsyncEngine:
    config = config or settings
    options = pool_options(config)
    logger.info(
        "database_engine_created",
        environment=config.APP_ENV,
        pool_type=options["poolclass"].__name__,
        pool_size=options.get("pool_size"),
    )
    return create_async_engine(config.DATABASE_URL, **options)


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessions keep loaded attributes after commit; workers read them back."""
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


engine: AsyncEngine = create_engine()

AsyncSessionLocal = create_session_factory(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; rolled back if the route raises."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception as e:
            logger.error("database_session_error", error=str(e), error_type=type(e).__name__)
            await session.rollback()
            raise


async def init_db() -> None:
    """
    Check connectivity at startup.

    Development databases also get missing tables created so the service
    runs without ``alembic upgrade head``; everywhere else Alembic owns the
    schema.
    """
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))

            if settings.is_development:
                from insights.db.base import Base
                import insights.models  # noqa: F401

                await conn.run_sync(Base.metadata.create_all)
                logger.info("database_tables_created")
    except Exception as e:
        logger.error("database_initialization_failed", error=str(e), error_type=type(e).__name__)
        raise

    logger.info("database_ready", environment=settings.APP_ENV)


async def close_db() -> None:
    try:
        await engine.dispose()
        logger.info("database_connections_closed")
    except Exception as e:
        logger.error("database_closure_failed", error=str(e), error_type=type(e).__name__)


async def check_db_health() -> bool:
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error("database_health_check_failed", error=str(e), error_type=type(e).__name__)
        return False
