"""Unit tests for the failure tracker."""

from __future__ import annotations

from datetime import timedelta

import pytest

from provider_guard.blacklist.escalation import EscalationPolicy
from provider_guard.blacklist.settings import SettingsProvider
from provider_guard.blacklist.tracker import FailureTracker
from provider_guard.domain.exceptions import BlacklistPersistenceError, ConcurrentUpdateError

from fakes import (
    T0,
    ConflictingBlacklistRepository,
    FakeClock,
    InMemoryBlacklistRepository,
    InMemorySettingsRepository,
)


def _tracker(
    repo: InMemoryBlacklistRepository,
    clock: FakeClock,
    *,
    settings: dict[str, str] | None = None,
    max_retries: int = 5,
) -> FailureTracker:
    provider = SettingsProvider(InMemorySettingsRepository(settings))
    return FailureTracker(
        repo,
        provider,
        EscalationPolicy(),
        clock=clock,
        max_retries=max_retries,
    )


class FailingRepository(InMemoryBlacklistRepository):
    async def get_or_create(self, platform: str, provider_name: str):
        raise BlacklistPersistenceError("database is locked")


# ═══════════════════════════════════════════════════════════════
#  record_failure
# ═══════════════════════════════════════════════════════════════
class TestRecordFailure:
    @pytest.mark.asyncio
    async def test_creates_record_on_first_failure(self, clock: FakeClock) -> None:
        repo = InMemoryBlacklistRepository()
        record = await _tracker(repo, clock).record_failure("claude", "relay-a")
        assert record.failure_count == 1
        assert record.failure_window_start == T0
        assert record.last_failure_at == T0
        assert record.version == 1
        assert ("claude", "relay-a") in repo.rows

    @pytest.mark.asyncio
    async def test_below_threshold_never_blacklists(self, clock: FakeClock) -> None:
        repo = InMemoryBlacklistRepository()
        tracker = _tracker(repo, clock)
        for minute in (1, 2):
            clock.set(minute)
            record = await tracker.record_failure("claude", "relay-a")
        assert record.failure_count == 2
        assert record.blacklisted_until is None
        assert record.blacklist_level == 0

    @pytest.mark.asyncio
    async def test_threshold_blacklists_at_level_one(self, clock: FakeClock) -> None:
        repo = InMemoryBlacklistRepository()
        tracker = _tracker(repo, clock)
        for minute in (1, 2, 3):
            clock.set(minute)
            record = await tracker.record_failure("claude", "relay-a")
        assert record.blacklist_level == 1
        assert record.blacklisted_at == T0 + timedelta(minutes=3)
        assert record.blacklisted_until == record.blacklisted_at + timedelta(minutes=30)

    @pytest.mark.asyncio
    async def test_custom_threshold_and_duration(self, clock: FakeClock) -> None:
        repo = InMemoryBlacklistRepository()
        tracker = _tracker(
            repo,
            clock,
            settings={"blacklist_failure_threshold": "1", "blacklist_duration_minutes": "5"},
        )
        record = await tracker.record_failure("gemini", "relay-b")
        assert record.blacklist_level == 1
        assert record.blacklisted_until == T0 + timedelta(minutes=5)

    @pytest.mark.asyncio
    async def test_aged_out_window_restarts_count(self, clock: FakeClock) -> None:
        repo = InMemoryBlacklistRepository()
        tracker = _tracker(repo, clock)
        clock.set(0)
        await tracker.record_failure("claude", "relay-a")
        clock.set(20)
        await tracker.record_failure("claude", "relay-a")
        clock.set(31)
        record = await tracker.record_failure("claude", "relay-a")
        assert record.failure_count == 1
        assert record.failure_window_start == T0 + timedelta(minutes=31)
        assert record.blacklisted_until is None

    @pytest.mark.asyncio
    async def test_disabled_counts_but_never_escalates(self, clock: FakeClock) -> None:
        repo = InMemoryBlacklistRepository()
        tracker = _tracker(repo, clock, settings={"enable_blacklist": "false"})
        for _ in range(10):
            record = await tracker.record_failure("claude", "relay-a")
        assert record.failure_count == 10
        assert record.blacklist_level == 0
        assert record.blacklisted_until is None

    @pytest.mark.asyncio
    async def test_extra_failures_same_hour_do_not_escalate(self, clock: FakeClock) -> None:
        repo = InMemoryBlacklistRepository()
        tracker = _tracker(repo, clock)
        for minute in (1, 2, 3):
            clock.set(minute)
            await tracker.record_failure("claude", "relay-a")
        for minute in range(4, 20):
            clock.set(minute)
            record = await tracker.record_failure("claude", "relay-a")
        assert record.blacklist_level == 1
        assert record.blacklisted_until == T0 + timedelta(minutes=33)
        assert record.failure_count == 19

    @pytest.mark.asyncio
    async def test_providers_are_tracked_independently(self, clock: FakeClock) -> None:
        repo = InMemoryBlacklistRepository()
        tracker = _tracker(repo, clock)
        for _ in range(3):
            await tracker.record_failure("claude", "relay-a")
        other = await tracker.record_failure("codex", "relay-a")
        assert other.failure_count == 1
        assert other.blacklisted_until is None

    @pytest.mark.asyncio
    async def test_retries_after_conflict(self, clock: FakeClock) -> None:
        repo = ConflictingBlacklistRepository(conflicts=2)
        record = await _tracker(repo, clock).record_failure("claude", "relay-a")
        assert repo.attempts == 3
        assert record.failure_count == 1
        assert repo.rows[("claude", "relay-a")].failure_count == 1

    @pytest.mark.asyncio
    async def test_gives_up_after_bounded_retries(self, clock: FakeClock) -> None:
        repo = ConflictingBlacklistRepository(conflicts=100)
        with pytest.raises(ConcurrentUpdateError) as exc_info:
            await _tracker(repo, clock, max_retries=3).record_failure("claude", "relay-a")
        assert repo.attempts == 3
        assert exc_info.value.retryable is True
        assert exc_info.value.code == "CONCURRENT_UPDATE"

    @pytest.mark.asyncio
    async def test_persistence_errors_propagate(self, clock: FakeClock) -> None:
        with pytest.raises(BlacklistPersistenceError):
            await _tracker(FailingRepository(), clock).record_failure("claude", "relay-a")


# ═══════════════════════════════════════════════════════════════
#  record_success
# ═══════════════════════════════════════════════════════════════
class TestRecordSuccess:
    @pytest.mark.asyncio
    async def test_unknown_provider_is_noop(self, clock: FakeClock) -> None:
        repo = InMemoryBlacklistRepository()
        await _tracker(repo, clock).record_success("claude", "relay-a")
        assert repo.rows == {}

    @pytest.mark.asyncio
    async def test_does_not_reset_failure_count(self, clock: FakeClock) -> None:
        repo = InMemoryBlacklistRepository()
        tracker = _tracker(repo, clock)
        await tracker.record_failure("claude", "relay-a")
        await tracker.record_failure("claude", "relay-a")
        await tracker.record_success("claude", "relay-a")
        record = await tracker.record_failure("claude", "relay-a")
        assert record.failure_count == 3
        assert record.blacklist_level == 1

    @pytest.mark.asyncio
    async def test_does_not_shorten_cooldown(self, clock: FakeClock) -> None:
        repo = InMemoryBlacklistRepository()
        tracker = _tracker(repo, clock)
        for _ in range(3):
            await tracker.record_failure("claude", "relay-a")
        before = await repo.get("claude", "relay-a")

        clock.set(5)
        for _ in range(3):
            await tracker.record_success("claude", "relay-a")

        after = await repo.get("claude", "relay-a")
        assert after == before
        assert repo.saves == 3
