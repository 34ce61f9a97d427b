"""Provider Guard — persistent blacklist for failing upstream providers."""

from provider_guard.blacklist import ProviderBlacklist
from provider_guard.config import Settings, get_settings
from provider_guard.dependencies import create_provider_blacklist
from provider_guard.domain import (
    BlacklistPersistenceError,
    BlacklistSettings,
    ConcurrentUpdateError,
    SettingKey,
    UnknownSettingError,
)

__version__ = "0.1.0"

__all__ = [
    "BlacklistPersistenceError",
    "BlacklistSettings",
    "ConcurrentUpdateError",
    "ProviderBlacklist",
    "Settings",
    "SettingKey",
    "UnknownSettingError",
    "create_provider_blacklist",
    "get_settings",
]
