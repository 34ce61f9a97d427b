"""Concrete repository implementations using SQLAlchemy.

These adapters implement the outbound port interfaces, translating between
domain entities and ORM models.  Every public method runs in its own short
transaction; a failure rolls the transaction back before the error is
re-raised as ``BlacklistPersistenceError``.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from provider_guard.domain.entities import ProviderHealthRecord
from provider_guard.domain.exceptions import BlacklistPersistenceError
from provider_guard.ports.outbound import BlacklistRepository, SettingsRepository

from .models import AppSettingModel, ProviderBlacklistModel

logger = structlog.get_logger(__name__)


# ── Converters ───────────────────────────────────────────────
def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands timestamps back naive; everything we write is UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def _to_utc(value: datetime | None) -> datetime | None:
    # SQLite drops the offset on write, so store the UTC wall clock.
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc)


def _model_to_record(m: ProviderBlacklistModel) -> ProviderHealthRecord:
    return ProviderHealthRecord(
        id=m.id,
        platform=m.platform,
        provider_name=m.provider_name,
        failure_count=m.failure_count or 0,
        failure_window_start=_as_utc(m.last_failure_window_start),
        last_failure_at=_as_utc(m.last_failure_at),
        blacklist_level=m.blacklist_level or 0,
        blacklisted_at=_as_utc(m.blacklisted_at),
        blacklisted_until=_as_utc(m.blacklisted_until),
        last_degrade_hour=m.last_degrade_hour or 0,
        last_recovered_at=_as_utc(m.last_recovered_at),
        auto_recovered=bool(m.auto_recovered),
        version=m.version or 0,
    )


def _record_values(r: ProviderHealthRecord) -> dict[str, object]:
    return {
        "failure_count": r.failure_count,
        "last_failure_window_start": _to_utc(r.failure_window_start),
        "last_failure_at": _to_utc(r.last_failure_at),
        "blacklist_level": r.blacklist_level,
        "blacklisted_at": _to_utc(r.blacklisted_at),
        "blacklisted_until": _to_utc(r.blacklisted_until),
        "last_degrade_hour": r.last_degrade_hour,
        "last_recovered_at": _to_utc(r.last_recovered_at),
        "auto_recovered": r.auto_recovered,
    }


class _TransactionalRepository:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self, operation: str) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except IntegrityError:
            raise
        except SQLAlchemyError as exc:
            logger.error("blacklist_store_error", operation=operation, error=str(exc))
            raise BlacklistPersistenceError(f"{operation} failed: {exc}") from exc


# ═══════════════════════════════════════════════════════════════
#  Provider blacklist repository
# ═══════════════════════════════════════════════════════════════
class SQLAlchemyBlacklistRepository(_TransactionalRepository, BlacklistRepository):
    async def get(self, platform: str, provider_name: str) -> ProviderHealthRecord | None:
        async with self._transaction("get") as session:
            model = await self._select(session, platform, provider_name)
            return _model_to_record(model) if model else None

    async def get_or_create(self, platform: str, provider_name: str) -> ProviderHealthRecord:
        existing = await self.get(platform, provider_name)
        if existing is not None:
            return existing

        try:
            async with self._transaction("create") as session:
                model = ProviderBlacklistModel(
                    platform=platform,
                    provider_name=provider_name,
                    failure_count=0,
                    blacklist_level=0,
                    last_degrade_hour=0,
                    auto_recovered=False,
                    version=0,
                )
                session.add(model)
                await session.flush()
                return _model_to_record(model)
        except IntegrityError:
            # Lost the insert race; the winner's row is the record.
            logger.debug(
                "blacklist_record_insert_race",
                platform=platform,
                provider=provider_name,
            )

        record = await self.get(platform, provider_name)
        if record is None:
            raise BlacklistPersistenceError(
                f"Record for {platform}/{provider_name} vanished after insert conflict"
            )
        return record

    async def compare_and_save(
        self, record: ProviderHealthRecord, expected_version: int
    ) -> bool:
        if record.id is None:
            raise ValueError("compare_and_save needs a record loaded from the store")

        stmt = (
            update(ProviderBlacklistModel)
            .where(
                ProviderBlacklistModel.id == record.id,
                ProviderBlacklistModel.version == expected_version,
            )
            .values(**_record_values(record), version=expected_version + 1)
            .execution_options(synchronize_session=False)
        )
        try:
            async with self._transaction("compare_and_save") as session:
                result = await session.execute(stmt)
                updated = result.rowcount
        except IntegrityError as exc:
            raise BlacklistPersistenceError(f"compare_and_save failed: {exc}") from exc

        if updated != 1:
            return False
        record.version = expected_version + 1
        return True

    @staticmethod
    async def _select(
        session: AsyncSession, platform: str, provider_name: str
    ) -> ProviderBlacklistModel | None:
        stmt = select(ProviderBlacklistModel).where(
            ProviderBlacklistModel.platform == platform,
            ProviderBlacklistModel.provider_name == provider_name,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()


# ═══════════════════════════════════════════════════════════════
#  App settings repository
# ═══════════════════════════════════════════════════════════════
class SQLAlchemySettingsRepository(_TransactionalRepository, SettingsRepository):
    async def get_all(self) -> dict[str, str]:
        async with self._transaction("settings_get_all") as session:
            result = await session.execute(select(AppSettingModel.key, AppSettingModel.value))
            return {key: value for key, value in result.all() if value is not None}

    async def upsert(self, key: str, value: str) -> None:
        for _ in range(2):
            try:
                async with self._transaction("settings_upsert") as session:
                    stmt = (
                        update(AppSettingModel)
                        .where(AppSettingModel.key == key)
                        .values(value=value)
                        .execution_options(synchronize_session=False)
                    )
                    result = await session.execute(stmt)
                    if result.rowcount == 0:
                        session.add(AppSettingModel(key=key, value=value))
                        await session.flush()
                return
            except IntegrityError:
                # A concurrent writer inserted the key; the update path wins next time.
                continue
        raise BlacklistPersistenceError(f"settings_upsert failed for {key!r}")

    async def insert_missing(self, defaults: dict[str, str]) -> None:
        existing = await self._existing_keys()
        for key, value in defaults.items():
            if key in existing:
                continue
            try:
                async with self._transaction("settings_seed") as session:
                    session.add(AppSettingModel(key=key, value=value))
                    await session.flush()
            except IntegrityError:
                continue
            logger.info("blacklist_setting_seeded", key=key, value=value)

    async def _existing_keys(self) -> set[str]:
        async with self._transaction("settings_keys") as session:
            result = await session.execute(select(AppSettingModel.key))
            return set(result.scalars())
