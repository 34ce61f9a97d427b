"""Persistent provider blacklist.

Counts upstream failures per (platform, provider), blacklists a provider
that crosses the threshold with an escalating cooldown, and lazily
restores it when the cooldown expires.
"""

from provider_guard.blacklist.escalation import EscalationPolicy
from provider_guard.blacklist.recovery import RecoveryEvaluator
from provider_guard.blacklist.service import ProviderBlacklist
from provider_guard.blacklist.settings import SettingsProvider, parse_settings
from provider_guard.blacklist.tracker import FailureTracker

__all__ = [
    "EscalationPolicy",
    "FailureTracker",
    "ProviderBlacklist",
    "RecoveryEvaluator",
    "SettingsProvider",
    "parse_settings",
]
