"""Shared test fixtures."""

from __future__ import annotations

import pytest
import pytest_asyncio

from provider_guard.adapters.outbound.persistence import (
    SQLAlchemyBlacklistRepository,
    SQLAlchemySettingsRepository,
    create_engine,
    create_session_factory,
    init_database,
)
from provider_guard.blacklist import ProviderBlacklist
from provider_guard.config import Settings, get_settings

from fakes import FakeClock, InMemoryBlacklistRepository, InMemorySettingsRepository


# ═══════════════════════════════════════════════════════════════
#  Fixtures
# ═══════════════════════════════════════════════════════════════
@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_repo() -> InMemoryBlacklistRepository:
    return InMemoryBlacklistRepository()


@pytest.fixture
def memory_settings_repo() -> InMemorySettingsRepository:
    return InMemorySettingsRepository()


@pytest.fixture
def memory_blacklist(
    memory_repo: InMemoryBlacklistRepository,
    memory_settings_repo: InMemorySettingsRepository,
    clock: FakeClock,
) -> ProviderBlacklist:
    return ProviderBlacklist(memory_repo, memory_settings_repo, clock=clock)


@pytest.fixture
def db_settings(tmp_path) -> Settings:
    return get_settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'blacklist.db'}",
        status_cache_ttl_seconds=0.0,
        _env_file=None,
    )


@pytest_asyncio.fixture
async def session_factory(db_settings: Settings):
    engine = create_engine(db_settings)
    factory = create_session_factory(engine)
    await init_database(engine, factory)
    yield factory
    await engine.dispose()


@pytest.fixture
def sql_repo(session_factory) -> SQLAlchemyBlacklistRepository:
    return SQLAlchemyBlacklistRepository(session_factory)


@pytest.fixture
def sql_settings_repo(session_factory) -> SQLAlchemySettingsRepository:
    return SQLAlchemySettingsRepository(session_factory)


@pytest.fixture
def sql_blacklist(
    sql_repo: SQLAlchemyBlacklistRepository,
    sql_settings_repo: SQLAlchemySettingsRepository,
    clock: FakeClock,
) -> ProviderBlacklist:
    return ProviderBlacklist(
        sql_repo,
        sql_settings_repo,
        status_cache_ttl_seconds=0.0,
        max_update_retries=25,
        clock=clock,
    )
