"""Failure tracker — counts failures per provider and trips the blacklist.

Failures are counted in a rolling window as long as the configured
blacklist duration.  Once the count in the current window reaches the
threshold the escalation policy is consulted.  The whole read-modify-write
runs against a versioned record and is retried from scratch when another
writer wins the race.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

import structlog

from provider_guard.blacklist.escalation import EscalationPolicy
from provider_guard.blacklist.retry import VersionConflict, conflict_retrying
from provider_guard.blacklist.settings import SettingsProvider
from provider_guard.domain.entities import ProviderHealthRecord, utcnow
from provider_guard.domain.exceptions import ConcurrentUpdateError
from provider_guard.ports.outbound import BlacklistRepository
from provider_guard.shared.observability.metrics import (
    BLACKLIST_ESCALATIONS,
    BLACKLIST_UPDATE_CONFLICTS,
    PROVIDER_FAILURES_TOTAL,
)

logger = structlog.get_logger(__name__)


class FailureTracker:
    def __init__(
        self,
        repository: BlacklistRepository,
        settings: SettingsProvider,
        policy: EscalationPolicy,
        *,
        clock: Callable[[], datetime] = utcnow,
        max_retries: int = 5,
    ) -> None:
        self._repository = repository
        self._settings = settings
        self._policy = policy
        self._clock = clock
        self._max_retries = max_retries

    async def record_failure(self, platform: str, provider_name: str) -> ProviderHealthRecord:
        """Count one failed attempt, escalating when the threshold is reached."""
        PROVIDER_FAILURES_TOTAL.labels(platform=platform, provider=provider_name).inc()
        settings = await self._settings.get_settings()

        try:
            async for attempt in conflict_retrying(self._max_retries):
                with attempt:
                    record = await self._repository.get_or_create(platform, provider_name)
                    expected_version = record.version
                    now = self._clock()

                    record.register_failure(now, settings.duration)
                    escalated = False
                    if settings.enabled and record.failure_count >= settings.failure_threshold:
                        escalated = self._policy.escalate(record, now, settings)

                    if not await self._repository.compare_and_save(record, expected_version):
                        BLACKLIST_UPDATE_CONFLICTS.labels(operation="record_failure").inc()
                        logger.debug(
                            "blacklist_update_conflict",
                            operation="record_failure",
                            platform=platform,
                            provider=provider_name,
                            attempt=attempt.retry_state.attempt_number,
                        )
                        raise VersionConflict
        except VersionConflict:
            raise ConcurrentUpdateError(platform, provider_name, self._max_retries) from None

        self._log_saved(record, escalated)
        return record

    async def record_success(self, platform: str, provider_name: str) -> None:
        """Note a successful attempt.

        Successes never shorten a cooldown and never reset the failure
        window, so an intermittently failing provider cannot flap back to
        healthy on one lucky call.
        """
        record = await self._repository.get(platform, provider_name)
        if record is not None and record.is_blacklisted_at(self._clock()):
            logger.debug(
                "provider_success_ignored",
                platform=platform,
                provider=provider_name,
                reason="cooldown_active",
                until=record.blacklisted_until.isoformat() if record.blacklisted_until else None,
            )
            return

        logger.debug(
            "provider_success_recorded",
            platform=platform,
            provider=provider_name,
            failures_in_window=record.failure_count if record else 0,
        )

    @staticmethod
    def _log_saved(record: ProviderHealthRecord, escalated: bool) -> None:
        if not escalated:
            logger.debug(
                "provider_failure_recorded",
                platform=record.platform,
                provider=record.provider_name,
                failures=record.failure_count,
                level=record.blacklist_level,
            )
            return

        BLACKLIST_ESCALATIONS.labels(
            platform=record.platform,
            provider=record.provider_name,
            level=str(record.blacklist_level),
        ).inc()
        logger.warning(
            "provider_blacklisted",
            platform=record.platform,
            provider=record.provider_name,
            level=record.blacklist_level,
            failures=record.failure_count,
            until=record.blacklisted_until.isoformat() if record.blacklisted_until else None,
        )
