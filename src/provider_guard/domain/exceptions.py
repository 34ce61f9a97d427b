"""Domain-specific exception hierarchy.

All exceptions inherit from ``DomainError`` so callers can catch the entire
family in one clause while still discriminating on subclass.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for all domain-layer errors."""

    def __init__(self, message: str, *, code: str = "DOMAIN_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


# ── Persistence ──────────────────────────────────────────────
class BlacklistPersistenceError(DomainError):
    """The blacklist store could not complete an operation.

    Always safe to retry: every write the store issues is an idempotent
    upsert or a version-checked update that rolled back on failure.
    """

    retryable = True

    def __init__(self, message: str, *, code: str = "PERSISTENCE_ERROR") -> None:
        super().__init__(message, code=code)


class ConcurrentUpdateError(BlacklistPersistenceError):
    def __init__(self, platform: str, provider_name: str, attempts: int) -> None:
        self.platform = platform
        self.provider_name = provider_name
        self.attempts = attempts
        super().__init__(
            f"Gave up updating {platform}/{provider_name} after {attempts} conflicting writes",
            code="CONCURRENT_UPDATE",
        )


# ── Settings ─────────────────────────────────────────────────
class UnknownSettingError(DomainError):
    def __init__(self, key: str, reason: str = "not a recognised blacklist setting") -> None:
        self.key = key
        super().__init__(f"Setting {key!r}: {reason}", code="UNKNOWN_SETTING")
