"""SQLAlchemy async engine, session factory, and schema bootstrap."""

from __future__ import annotations

from typing import Any

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from provider_guard.config import Settings
from provider_guard.domain.entities import DEFAULT_SETTINGS

from .models import Base, ProviderBlacklistModel
from .repositories import SQLAlchemySettingsRepository

logger = structlog.get_logger(__name__)


def create_engine(settings: Settings) -> AsyncEngine:
    kwargs: dict[str, Any] = {"echo": settings.database_echo}

    if settings.is_sqlite:
        # Busy timeout is the store's own bound on how long a writer waits
        # for the database lock.
        kwargs["connect_args"] = {"timeout": settings.database_busy_timeout_seconds}
    else:
        kwargs.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_pre_ping=True,
        )

    return create_async_engine(settings.database_url, **kwargs)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def init_database(
    engine: AsyncEngine,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> None:
    """Create the blacklist tables, seed default settings, and warm the pool.

    Safe to call on every start: table creation is ``IF NOT EXISTS`` and the
    default settings are only inserted where missing.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = session_factory or create_session_factory(engine)
    await SQLAlchemySettingsRepository(factory).insert_missing(DEFAULT_SETTINGS.as_rows())

    # Warm-up failures are not fatal; the first real write will surface them.
    try:
        async with factory() as session:
            count = (
                await session.execute(
                    select(func.count()).select_from(ProviderBlacklistModel)
                )
            ).scalar_one()
    except SQLAlchemyError as exc:
        logger.warning("database_warmup_failed", error=str(exc))
    else:
        logger.info("database_initialised", provider_records=count)
