"""Recovery evaluator — answers "is this provider blacklisted right now?".

There is no background sweep: an expired cooldown is cleared by the first
read that notices it.  The level survives recovery so the next blacklisting
backs off further.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import structlog

from provider_guard.blacklist.retry import VersionConflict, conflict_retrying
from provider_guard.blacklist.settings import SettingsProvider
from provider_guard.domain.entities import utcnow
from provider_guard.domain.exceptions import ConcurrentUpdateError
from provider_guard.ports.outbound import BlacklistRepository
from provider_guard.shared.observability.metrics import (
    BLACKLIST_RECOVERIES,
    BLACKLIST_UPDATE_CONFLICTS,
)

logger = structlog.get_logger(__name__)


class RecoveryEvaluator:
    def __init__(
        self,
        repository: BlacklistRepository,
        settings: SettingsProvider,
        *,
        clock: Callable[[], datetime] = utcnow,
        max_retries: int = 5,
    ) -> None:
        self._repository = repository
        self._settings = settings
        self._clock = clock
        self._max_retries = max_retries

    async def is_blacklisted(self, platform: str, provider_name: str) -> bool:
        settings = await self._settings.get_settings()
        if not settings.enabled:
            return False

        try:
            async for attempt in conflict_retrying(self._max_retries):
                with attempt:
                    blacklisted = await self._evaluate(
                        platform, provider_name, attempt.retry_state.attempt_number
                    )
        except VersionConflict:
            raise ConcurrentUpdateError(platform, provider_name, self._max_retries) from None
        return blacklisted

    async def _evaluate(self, platform: str, provider_name: str, attempt: int) -> bool:
        record = await self._repository.get(platform, provider_name)
        if record is None or record.blacklisted_until is None:
            return False

        now = self._clock()
        if not record.cooldown_expired_at(now):
            return True

        expected_version = record.version
        level = record.blacklist_level
        record.recover(now)
        if not await self._repository.compare_and_save(record, expected_version):
            # Someone else recovered or re-blacklisted it; look again.
            BLACKLIST_UPDATE_CONFLICTS.labels(operation="recover").inc()
            logger.debug(
                "blacklist_update_conflict",
                operation="recover",
                platform=platform,
                provider=provider_name,
                attempt=attempt,
            )
            raise VersionConflict

        BLACKLIST_RECOVERIES.labels(platform=platform, provider=provider_name).inc()
        logger.info(
            "provider_auto_recovered",
            platform=platform,
            provider=provider_name,
            level=level,
        )
        return False
