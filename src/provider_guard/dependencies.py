"""Wiring — builds a ready-to-use ProviderBlacklist from configuration."""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import structlog

from provider_guard.adapters.outbound.persistence import (
    SQLAlchemyBlacklistRepository,
    SQLAlchemySettingsRepository,
    create_engine,
    create_session_factory,
    init_database,
)
from provider_guard.blacklist.service import ProviderBlacklist
from provider_guard.config import Settings, get_settings
from provider_guard.domain.entities import utcnow
from provider_guard.shared.observability import configure_logging

logger = structlog.get_logger(__name__)


async def create_provider_blacklist(
    settings: Settings | None = None,
    *,
    clock: Callable[[], datetime] = utcnow,
    initialise: bool = True,
    setup_logging: bool = True,
) -> ProviderBlacklist:
    """Open the database, optionally create the tables, and wire the blacklist.

    Logging is configured from ``settings`` unless ``setup_logging`` is
    false, for hosts that already own their structlog setup.  The returned
    object owns the engine; call ``close()`` on shutdown.
    """
    settings = settings or get_settings()
    if setup_logging:
        configure_logging(log_level=settings.log_level, json_logs=settings.json_logs)

    engine = create_engine(settings)
    factory = create_session_factory(engine)
    if initialise:
        await init_database(engine, factory)

    logger.info(
        "provider_blacklist_ready",
        app=settings.app_name,
        backend="sqlite" if settings.is_sqlite else "postgresql",
    )
    return ProviderBlacklist(
        SQLAlchemyBlacklistRepository(factory),
        SQLAlchemySettingsRepository(factory),
        max_level=settings.blacklist_max_level,
        max_backoff_multiplier=settings.blacklist_max_backoff_multiplier,
        max_update_retries=settings.blacklist_max_update_retries,
        status_cache_ttl_seconds=settings.status_cache_ttl_seconds,
        settings_cache_ttl_seconds=settings.settings_cache_ttl_seconds,
        settings_read_timeout_seconds=settings.settings_read_timeout_seconds,
        clock=clock,
        engine=engine,
    )
