"""Read-through cache for the blacklist tunables in ``app_settings``.

The failure path must keep working while the settings store is degraded,
so reads never raise: a failed or slow refresh falls back to the last
good snapshot, or to the defaults if there has never been one.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping
from typing import TypeVar

import structlog
from sqlalchemy.exc import SQLAlchemyError

from provider_guard.domain.entities import DEFAULT_SETTINGS, BlacklistSettings
from provider_guard.domain.enums import SettingKey
from provider_guard.domain.exceptions import DomainError, UnknownSettingError
from provider_guard.ports.outbound import SettingsRepository
from provider_guard.shared.observability.metrics import SETTINGS_FALLBACKS

logger = structlog.get_logger(__name__)

T = TypeVar("T")

# After a failed refresh the fallback is served for this long before the
# store is tried again, so an outage costs one timeout, not one per call.
FAILED_REFRESH_BACKOFF_SECONDS = 5.0

_TRUE = frozenset({"true", "1", "yes", "on"})
_FALSE = frozenset({"false", "0", "no", "off"})


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"not a boolean: {raw!r}")


def _parse_positive_int(raw: str) -> int:
    value = int(raw.strip())
    if value < 1:
        raise ValueError(f"must be >= 1, got {value}")
    return value


def _read(rows: Mapping[str, str], key: SettingKey, parser: Callable[[str], T], default: T) -> T:
    raw = rows.get(key.value)
    if raw is None:
        return default
    try:
        return parser(raw)
    except ValueError as exc:
        logger.warning("blacklist_setting_invalid", key=key.value, value=raw, error=str(exc))
        return default


def parse_settings(rows: Mapping[str, str]) -> BlacklistSettings:
    """Build a snapshot from raw rows; bad or missing values use the default."""
    return BlacklistSettings(
        enabled=_read(rows, SettingKey.ENABLE_BLACKLIST, _parse_bool, DEFAULT_SETTINGS.enabled),
        failure_threshold=_read(
            rows,
            SettingKey.FAILURE_THRESHOLD,
            _parse_positive_int,
            DEFAULT_SETTINGS.failure_threshold,
        ),
        duration_minutes=_read(
            rows,
            SettingKey.DURATION_MINUTES,
            _parse_positive_int,
            DEFAULT_SETTINGS.duration_minutes,
        ),
    )


class SettingsProvider:
    """Cached access to :class:`BlacklistSettings`.

    Only the very first read waits on the store. After that a stale or
    invalidated cache serves the last good snapshot and reloads it in a
    background task, so callers on the failure path never wait on the
    settings store.
    """

    def __init__(
        self,
        repository: SettingsRepository,
        *,
        cache_ttl_seconds: float = 0.0,
        read_timeout_seconds: float = 2.0,
    ) -> None:
        self._repository = repository
        self._ttl = cache_ttl_seconds
        self._timeout = read_timeout_seconds

        self._cached: BlacklistSettings | None = None
        self._loaded_at: float = 0.0
        self._last_known: BlacklistSettings | None = None
        self._retry_at: float = 0.0
        self._seeded = False
        self._refresh_lock = asyncio.Lock()
        self._refresh_task: asyncio.Task[None] | None = None

    async def get_settings(self) -> BlacklistSettings:
        cached = self._cached
        if cached is not None and not self._stale():
            return cached
        if self._last_known is not None:
            self._refresh_in_background()
            return self._last_known
        if time.monotonic() < self._retry_at:
            return DEFAULT_SETTINGS

        async with self._refresh_lock:
            # Another task may have loaded the first snapshot while we waited.
            if self._last_known is not None:
                return self._last_known
            if time.monotonic() < self._retry_at:
                return DEFAULT_SETTINGS
            return await self._refresh()

    async def refresh(self) -> BlacklistSettings:
        """Reload from the store now, bounded by the read timeout."""
        async with self._refresh_lock:
            return await self._refresh()

    async def set_setting(self, key: SettingKey | str, value: object) -> None:
        """Validate and write one tunable, then reload the cache."""
        try:
            setting = SettingKey(key)
        except ValueError:
            raise UnknownSettingError(str(key)) from None

        raw = _to_storage(setting, value)
        await self._repository.upsert(setting.value, raw)
        self.invalidate()
        logger.info("blacklist_setting_updated", key=setting.value, value=raw)
        await self.refresh()

    def invalidate(self) -> None:
        self._cached = None
        self._retry_at = 0.0

    async def close(self) -> None:
        task = self._refresh_task
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        self._refresh_task = None

    # ── Internals ────────────────────────────────────────────
    def _stale(self) -> bool:
        return self._ttl > 0 and time.monotonic() - self._loaded_at >= self._ttl

    def _fallback(self) -> BlacklistSettings:
        return self._last_known or DEFAULT_SETTINGS

    def _refresh_in_background(self) -> None:
        if time.monotonic() < self._retry_at:
            return
        if self._refresh_task is not None and not self._refresh_task.done():
            return
        self._refresh_task = asyncio.create_task(self._background_refresh())
        self._refresh_task.add_done_callback(_log_refresh_crash)

    async def _background_refresh(self) -> None:
        async with self._refresh_lock:
            if self._cached is not None and not self._stale():
                return
            await self._refresh()

    async def _refresh(self) -> BlacklistSettings:
        try:
            rows = await asyncio.wait_for(self._load(), timeout=self._timeout)
        except (asyncio.TimeoutError, DomainError, SQLAlchemyError, OSError) as exc:
            SETTINGS_FALLBACKS.inc()
            self._retry_at = time.monotonic() + FAILED_REFRESH_BACKOFF_SECONDS
            logger.warning(
                "blacklist_settings_degraded",
                error=repr(exc),
                using="last_known" if self._last_known else "defaults",
                retry_in_s=FAILED_REFRESH_BACKOFF_SECONDS,
            )
            return self._fallback()

        settings = parse_settings(rows)
        self._cached = settings
        self._last_known = settings
        self._loaded_at = time.monotonic()
        self._retry_at = 0.0
        return settings

    async def _load(self) -> dict[str, str]:
        if not self._seeded:
            await self._repository.insert_missing(DEFAULT_SETTINGS.as_rows())
            self._seeded = True
        return await self._repository.get_all()


def _log_refresh_crash(task: asyncio.Task[None]) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("blacklist_settings_refresh_crashed", error=repr(exc))


def _to_storage(key: SettingKey, value: object) -> str:
    if key is SettingKey.ENABLE_BLACKLIST:
        if isinstance(value, bool):
            return "true" if value else "false"
        try:
            return "true" if _parse_bool(str(value)) else "false"
        except ValueError as exc:
            raise UnknownSettingError(key.value, str(exc)) from None

    try:
        return str(_parse_positive_int(str(value)))
    except ValueError as exc:
        raise UnknownSettingError(key.value, str(exc)) from None
