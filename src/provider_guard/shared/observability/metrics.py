"""Prometheus metrics for the provider blacklist."""

from __future__ import annotations

from prometheus_client import Counter


# ── Failure tracking ─────────────────────────────────────────
PROVIDER_FAILURES_TOTAL = Counter(
    "provider_failures_total",
    "Failures reported by the routing layer",
    ["platform", "provider"],
)

BLACKLIST_UPDATE_CONFLICTS = Counter(
    "provider_blacklist_update_conflicts_total",
    "Optimistic-concurrency conflicts on blacklist records",
    ["operation"],
)

# ── Blacklist lifecycle ──────────────────────────────────────
BLACKLIST_ESCALATIONS = Counter(
    "provider_blacklist_escalations_total",
    "Providers placed on the blacklist",
    ["platform", "provider", "level"],
)

BLACKLIST_RECOVERIES = Counter(
    "provider_blacklist_recoveries_total",
    "Blacklist cooldowns that expired and were lazily recovered",
    ["platform", "provider"],
)

# ── Settings ─────────────────────────────────────────────────
SETTINGS_FALLBACKS = Counter(
    "blacklist_settings_fallbacks_total",
    "Settings reads that fell back to cached or default values",
)
