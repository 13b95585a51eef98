# src/cache/ttl_policy.py - v2
"""Pure TTL and priority-tier rules shared by every cache read/write path."""

from __future__ import annotations

from contentgate.cache.models import CachePriority, CacheStrategy

HIGH_ACCESS_THRESHOLD = 100
MEDIUM_ACCESS_THRESHOLD = 50
LOW_ACCESS_THRESHOLD = 10

HIGH_PRIORITY_TTL_FACTOR = 4.0
LOW_PRIORITY_TTL_FACTOR = 0.5

HIGH_ACCESS_EXTENSION_SECONDS = 4 * 3600
MEDIUM_ACCESS_EXTENSION_SECONDS = 2 * 3600

_TIER_REASONS = {
    3: "High access frequency",
    2: "Medium access frequency",
    1: "Low access frequency",
    0: "Minimal access",
}


def ttl_for_priority(
    strategy: CacheStrategy, priority: CachePriority | str | None = None
) -> float:
    """TTL in seconds for a write at the given priority.

    high = 4x base, medium or unspecified = 1x, low = 0.5x. The factors are
    fixed; strategy.priority_multiplier does not scale them.
    """
    base = strategy.default_ttl_seconds
    priority = CachePriority(priority) if priority else CachePriority.MEDIUM
    if priority is CachePriority.HIGH:
        return base * HIGH_PRIORITY_TTL_FACTOR
    if priority is CachePriority.LOW:
        return base * LOW_PRIORITY_TTL_FACTOR
    return float(base)


def extension_for(access_count: int) -> int:
    """Seconds to add to an entry's expiry after a read."""
    if access_count >= HIGH_ACCESS_THRESHOLD:
        return HIGH_ACCESS_EXTENSION_SECONDS
    if access_count >= MEDIUM_ACCESS_THRESHOLD:
        return MEDIUM_ACCESS_EXTENSION_SECONDS
    return 0


def priority_tier(access_count: int) -> tuple[int, str]:
    """Advisory tier 0..3 and its reason."""
    if access_count >= HIGH_ACCESS_THRESHOLD:
        tier = 3
    elif access_count >= MEDIUM_ACCESS_THRESHOLD:
        tier = 2
    elif access_count >= LOW_ACCESS_THRESHOLD:
        tier = 1
    else:
        tier = 0
    return tier, _TIER_REASONS[tier]
