"""Escalation policy — how long a provider stays blacklisted.

Each escalation raises the provider's level by one (up to ``max_level``)
and blacklists it for ``duration × backoff(level)``, where::

    backoff(level) = min(2 ** (level - 1), max_backoff_multiplier)

so a 30-minute base gives 30, 60, 120, 240, 480 minutes at levels 1-5.
At most one escalation happens per calendar hour (UTC), however many
failures arrive in it.
"""

from __future__ import annotations

from datetime import datetime, timedelta

import structlog

from provider_guard.domain.entities import (
    BlacklistSettings,
    ProviderHealthRecord,
    hour_bucket,
)

logger = structlog.get_logger(__name__)


class EscalationPolicy:
    """Computes the next level and cooldown for a provider over threshold."""

    def __init__(self, *, max_level: int = 5, max_backoff_multiplier: int = 16) -> None:
        if max_level < 1:
            raise ValueError("max_level must be >= 1")
        if max_backoff_multiplier < 1:
            raise ValueError("max_backoff_multiplier must be >= 1")
        self._max_level = max_level
        self._max_multiplier = max_backoff_multiplier

    @property
    def max_level(self) -> int:
        return self._max_level

    def backoff(self, level: int) -> int:
        if level <= 1:
            return 1
        return min(2 ** (level - 1), self._max_multiplier)

    def cooldown(self, level: int, settings: BlacklistSettings) -> timedelta:
        return settings.duration * self.backoff(level)

    def escalate(
        self,
        record: ProviderHealthRecord,
        now: datetime,
        settings: BlacklistSettings,
    ) -> bool:
        """Blacklist ``record`` in place; False if this hour already escalated."""
        current_hour = hour_bucket(now)
        if record.last_degrade_hour == current_hour:
            logger.debug(
                "provider_escalation_skipped",
                platform=record.platform,
                provider=record.provider_name,
                level=record.blacklist_level,
                reason="already_escalated_this_hour",
            )
            return False

        level = min(record.blacklist_level + 1, self._max_level)
        record.blacklist(now, now + self.cooldown(level, settings), level, current_hour)
        return True
