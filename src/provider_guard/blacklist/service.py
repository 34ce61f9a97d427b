"""Provider blacklist — the single object a routing layer talks to.

Composes SettingsProvider, FailureTracker, EscalationPolicy and
RecoveryEvaluator behind three calls::

    blacklist = await create_provider_blacklist(get_settings())

    if not await blacklist.is_blacklisted("openai", "primary"):
        try:
            ...
        except UpstreamError:
            await blacklist.record_failure("openai", "primary")
        else:
            await blacklist.record_success("openai", "primary")

``is_blacklisted`` answers may be served from an in-process cache for up
to ``status_cache_ttl_seconds``.  Local writes drop the affected entries,
so the staleness bound only applies to changes made by other processes.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from provider_guard.blacklist.escalation import EscalationPolicy
from provider_guard.blacklist.recovery import RecoveryEvaluator
from provider_guard.blacklist.settings import SettingsProvider
from provider_guard.blacklist.tracker import FailureTracker
from provider_guard.domain.entities import BlacklistSettings, utcnow
from provider_guard.domain.enums import SettingKey
from provider_guard.ports.outbound import BlacklistRepository, SettingsRepository

logger = structlog.get_logger(__name__)


class ProviderBlacklist:
    def __init__(
        self,
        blacklist_repository: BlacklistRepository,
        settings_repository: SettingsRepository,
        *,
        max_level: int = 5,
        max_backoff_multiplier: int = 16,
        max_update_retries: int = 5,
        status_cache_ttl_seconds: float = 0.5,
        settings_cache_ttl_seconds: float = 30.0,
        settings_read_timeout_seconds: float = 2.0,
        clock: Callable[[], datetime] = utcnow,
        engine: AsyncEngine | None = None,
    ) -> None:
        self._clock = clock
        self._engine = engine
        self._status_ttl = timedelta(seconds=status_cache_ttl_seconds)
        self._status_cache: dict[tuple[str, str], tuple[bool, datetime]] = {}

        self.settings = SettingsProvider(
            settings_repository,
            cache_ttl_seconds=settings_cache_ttl_seconds,
            read_timeout_seconds=settings_read_timeout_seconds,
        )
        self.policy = EscalationPolicy(
            max_level=max_level,
            max_backoff_multiplier=max_backoff_multiplier,
        )
        self.tracker = FailureTracker(
            blacklist_repository,
            self.settings,
            self.policy,
            clock=clock,
            max_retries=max_update_retries,
        )
        self.recovery = RecoveryEvaluator(
            blacklist_repository,
            self.settings,
            clock=clock,
            max_retries=max_update_retries,
        )

    # ── Routing-layer surface ────────────────────────────────
    async def is_blacklisted(self, platform: str, provider_name: str) -> bool:
        key = (platform, provider_name)
        if self._status_ttl:
            hit = self._status_cache.get(key)
            if hit is not None and hit[1] > self._clock():
                return hit[0]

        result = await self.recovery.is_blacklisted(platform, provider_name)
        if self._status_ttl:
            self._remember(key, result)
        return result

    async def record_failure(self, platform: str, provider_name: str) -> None:
        self._status_cache.pop((platform, provider_name), None)
        try:
            await self.tracker.record_failure(platform, provider_name)
        finally:
            self._status_cache.pop((platform, provider_name), None)

    async def record_success(self, platform: str, provider_name: str) -> None:
        await self.tracker.record_success(platform, provider_name)

    # ── Operator surface ─────────────────────────────────────
    async def get_settings(self) -> BlacklistSettings:
        return await self.settings.get_settings()

    async def set_setting(self, key: SettingKey | str, value: object) -> None:
        await self.settings.set_setting(key, value)
        self._status_cache.clear()

    async def close(self) -> None:
        self._status_cache.clear()
        await self.settings.close()
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("provider_blacklist_closed")

    def _remember(self, key: tuple[str, str], result: bool) -> None:
        now = self._clock()
        # Expired answers are dropped here; nothing else evicts them.
        self._status_cache = {k: v for k, v in self._status_cache.items() if v[1] > now}
        self._status_cache[key] = (result, now + self._status_ttl)
