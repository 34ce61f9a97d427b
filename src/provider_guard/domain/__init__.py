"""Blacklist domain model: entities, enums and the exception hierarchy."""

from provider_guard.domain.entities import (
    DEFAULT_SETTINGS,
    BlacklistSettings,
    ProviderHealthRecord,
    hour_bucket,
    utcnow,
)
from provider_guard.domain.enums import ProviderState, SettingKey
from provider_guard.domain.exceptions import (
    BlacklistPersistenceError,
    ConcurrentUpdateError,
    DomainError,
    UnknownSettingError,
)

__all__ = [
    "DEFAULT_SETTINGS",
    "BlacklistPersistenceError",
    "BlacklistSettings",
    "ConcurrentUpdateError",
    "DomainError",
    "ProviderHealthRecord",
    "ProviderState",
    "SettingKey",
    "UnknownSettingError",
    "hour_bucket",
    "utcnow",
]
