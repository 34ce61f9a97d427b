"""Unit tests for domain entities."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from provider_guard.domain.entities import (
    BlacklistSettings,
    ProviderHealthRecord,
    hour_bucket,
)
from provider_guard.domain.enums import ProviderState

from fakes import T0

WINDOW = timedelta(minutes=30)


def _record() -> ProviderHealthRecord:
    return ProviderHealthRecord(platform="claude", provider_name="relay-a")


# ── Settings snapshot ────────────────────────────────────────
class TestBlacklistSettings:
    def test_defaults(self) -> None:
        s = BlacklistSettings()
        assert s.enabled is True
        assert s.failure_threshold == 3
        assert s.duration_minutes == 30
        assert s.duration == timedelta(minutes=30)

    def test_storage_rows(self) -> None:
        rows = BlacklistSettings(enabled=False, failure_threshold=5, duration_minutes=10).as_rows()
        assert rows == {
            "enable_blacklist": "false",
            "blacklist_failure_threshold": "5",
            "blacklist_duration_minutes": "10",
        }


# ── Hour bucket ──────────────────────────────────────────────
class TestHourBucket:
    def test_same_hour_same_bucket(self) -> None:
        assert hour_bucket(T0) == hour_bucket(T0 + timedelta(minutes=59, seconds=59))

    def test_next_hour_next_bucket(self) -> None:
        assert hour_bucket(T0 + timedelta(hours=1)) == hour_bucket(T0) + 1

    def test_timezone_independent(self) -> None:
        ist = timezone(timedelta(hours=5, minutes=30))
        assert hour_bucket(T0.astimezone(ist)) == hour_bucket(T0)

    def test_epoch_is_zero(self) -> None:
        assert hour_bucket(datetime(1970, 1, 1, 0, 30, tzinfo=timezone.utc)) == 0


# ── Provider health record ───────────────────────────────────
class TestProviderHealthRecord:
    def test_starts_healthy(self) -> None:
        r = _record()
        assert r.failure_count == 0
        assert r.blacklist_level == 0
        assert r.is_blacklisted_at(T0) is False
        assert r.state_at(T0) == ProviderState.HEALTHY

    def test_first_failure_opens_window(self) -> None:
        r = _record()
        r.register_failure(T0, WINDOW)
        assert r.failure_count == 1
        assert r.failure_window_start == T0
        assert r.last_failure_at == T0

    def test_failures_accumulate_inside_window(self) -> None:
        r = _record()
        r.register_failure(T0, WINDOW)
        r.register_failure(T0 + timedelta(minutes=30), WINDOW)  # exactly at the edge
        assert r.failure_count == 2
        assert r.failure_window_start == T0

    def test_window_restarts_once_aged_out(self) -> None:
        r = _record()
        r.register_failure(T0, WINDOW)
        r.register_failure(T0 + timedelta(minutes=10), WINDOW)
        later = T0 + timedelta(minutes=31)
        r.register_failure(later, WINDOW)
        assert r.failure_count == 1
        assert r.failure_window_start == later

    def test_blacklisted_strictly_before_until(self) -> None:
        r = _record()
        until = T0 + timedelta(minutes=30)
        r.blacklist(T0, until, level=1, hour=hour_bucket(T0))
        assert r.is_blacklisted_at(until - timedelta(seconds=1)) is True
        assert r.is_blacklisted_at(until) is False
        assert r.cooldown_expired_at(until) is True

    def test_reblacklist_keeps_original_start(self) -> None:
        r = _record()
        r.blacklist(T0, T0 + timedelta(minutes=30), level=1, hour=1)
        r.blacklist(T0 + timedelta(minutes=5), T0 + timedelta(minutes=65), level=2, hour=2)
        assert r.blacklisted_at == T0
        assert r.blacklisted_until == T0 + timedelta(minutes=65)

    def test_recover_keeps_level(self) -> None:
        r = _record()
        r.blacklist(T0, T0 + timedelta(minutes=30), level=3, hour=1)
        later = T0 + timedelta(minutes=31)
        r.recover(later)
        assert r.blacklisted_at is None
        assert r.blacklisted_until is None
        assert r.blacklist_level == 3
        assert r.auto_recovered is True
        assert r.last_recovered_at == later
        assert r.state_at(later) == ProviderState.AUTO_RECOVERED

    def test_blacklist_clears_auto_recovered(self) -> None:
        r = _record()
        r.auto_recovered = True
        r.blacklist(T0, T0 + timedelta(minutes=30), level=1, hour=1)
        assert r.auto_recovered is False
        assert r.state_at(T0) == ProviderState.BLACKLISTED
