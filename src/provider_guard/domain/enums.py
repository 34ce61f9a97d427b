"""Domain enumerations."""

from __future__ import annotations

import enum


class SettingKey(str, enum.Enum):
    """Keys of the ``app_settings`` table that tune the blacklist."""

    ENABLE_BLACKLIST = "enable_blacklist"
    FAILURE_THRESHOLD = "blacklist_failure_threshold"
    DURATION_MINUTES = "blacklist_duration_minutes"


class ProviderState(str, enum.Enum):
    """Where a provider record sits in the blacklist state machine."""

    HEALTHY = "healthy"
    BLACKLISTED = "blacklisted"
    AUTO_RECOVERED = "auto_recovered"
