"""Outbound ports — interfaces that infrastructure adapters must implement.

The blacklist components depend only on these abstractions, never on a
concrete database driver.  Every method is one short transaction on the
adapter side; none of them holds a lock across caller code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from provider_guard.domain.entities import ProviderHealthRecord


# ═══════════════════════════════════════════════════════════════
#  Repository ports
# ═══════════════════════════════════════════════════════════════
class BlacklistRepository(ABC):
    """One health record per (platform, provider_name)."""

    @abstractmethod
    async def get(self, platform: str, provider_name: str) -> ProviderHealthRecord | None: ...

    @abstractmethod
    async def get_or_create(self, platform: str, provider_name: str) -> ProviderHealthRecord:
        """Return the stored record, inserting a healthy one if absent.

        Two callers racing to insert the same key both get the single row
        that won the unique constraint.
        """

    @abstractmethod
    async def compare_and_save(
        self, record: ProviderHealthRecord, expected_version: int
    ) -> bool:
        """Persist ``record`` iff its stored version is still ``expected_version``.

        On success ``record.version`` is bumped to the stored value.
        Returns ``False`` when another writer got there first.
        """


class SettingsRepository(ABC):
    """Key/value rows of ``app_settings``."""

    @abstractmethod
    async def get_all(self) -> dict[str, str]: ...

    @abstractmethod
    async def upsert(self, key: str, value: str) -> None: ...

    @abstractmethod
    async def insert_missing(self, defaults: dict[str, str]) -> None:
        """Insert each key that does not exist yet; existing rows are untouched."""
