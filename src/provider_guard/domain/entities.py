"""Domain entities — objects with identity and lifecycle.

``ProviderHealthRecord`` is mutable but only the blacklist components
change it, and only inside a version-checked save.  ``BlacklistSettings``
is an immutable snapshot so a reader can never observe half of an update.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from provider_guard.domain.enums import ProviderState, SettingKey

HOUR_SECONDS = 3600


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def hour_bucket(moment: datetime) -> int:
    """Whole hours since the Unix epoch (UTC)."""
    return int(moment.timestamp() // HOUR_SECONDS)


# ═══════════════════════════════════════════════════════════════
#  Settings snapshot
# ═══════════════════════════════════════════════════════════════
@dataclass(frozen=True, slots=True)
class BlacklistSettings:
    """Process-wide blacklist tunables."""

    enabled: bool = True
    failure_threshold: int = 3
    duration_minutes: int = 30

    @property
    def duration(self) -> timedelta:
        return timedelta(minutes=self.duration_minutes)

    def as_rows(self) -> dict[str, str]:
        """Storage representation, as written to ``app_settings``."""
        return {
            SettingKey.ENABLE_BLACKLIST.value: "true" if self.enabled else "false",
            SettingKey.FAILURE_THRESHOLD.value: str(self.failure_threshold),
            SettingKey.DURATION_MINUTES.value: str(self.duration_minutes),
        }


DEFAULT_SETTINGS = BlacklistSettings()


# ═══════════════════════════════════════════════════════════════
#  Provider health record
# ═══════════════════════════════════════════════════════════════
@dataclass(slots=True)
class ProviderHealthRecord:
    """Failure and blacklist bookkeeping for one (platform, provider) pair."""

    platform: str
    provider_name: str
    id: int | None = None
    failure_count: int = 0
    failure_window_start: datetime | None = None
    last_failure_at: datetime | None = None
    blacklist_level: int = 0
    blacklisted_at: datetime | None = None
    blacklisted_until: datetime | None = None
    last_degrade_hour: int = 0
    last_recovered_at: datetime | None = None
    auto_recovered: bool = False
    version: int = 0

    @property
    def key(self) -> tuple[str, str]:
        return (self.platform, self.provider_name)

    def is_blacklisted_at(self, now: datetime) -> bool:
        return self.blacklisted_until is not None and self.blacklisted_until > now

    def cooldown_expired_at(self, now: datetime) -> bool:
        return self.blacklisted_until is not None and now >= self.blacklisted_until

    def window_expired_at(self, now: datetime, window: timedelta) -> bool:
        if self.failure_window_start is None:
            return True
        return now - self.failure_window_start > window

    def state_at(self, now: datetime) -> ProviderState:
        if self.is_blacklisted_at(now):
            return ProviderState.BLACKLISTED
        if self.auto_recovered:
            return ProviderState.AUTO_RECOVERED
        return ProviderState.HEALTHY

    # ── Mutations ────────────────────────────────────────────
    def register_failure(self, now: datetime, window: timedelta) -> None:
        """Count one failure, restarting the window when it has aged out."""
        if self.window_expired_at(now, window):
            self.failure_window_start = now
            self.failure_count = 0
        self.failure_count += 1
        self.last_failure_at = now

    def blacklist(self, now: datetime, until: datetime, level: int, hour: int) -> None:
        if not self.is_blacklisted_at(now):
            self.blacklisted_at = now
        self.blacklisted_until = until
        self.blacklist_level = level
        self.last_degrade_hour = hour
        self.auto_recovered = False

    def recover(self, now: datetime) -> None:
        """End an expired cooldown; the level is kept for future backoff."""
        self.blacklisted_at = None
        self.blacklisted_until = None
        self.auto_recovered = True
        self.last_recovered_at = now
