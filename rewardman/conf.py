"""
Rewardman configuration.

Usage in settings.py:
    REWARDMAN = {
        "CLAIM_LOCK_TTL_SECONDS": 30,
        "LOCK_STORE_BACKEND": "rewardman.adapters.redis_lock.RedisLockStore",
        "REDIS_URL": "redis://cache:6379/2",
        "DEFAULT_PROGRAM": {"points_per_dollar": "0.5"},
    }
"""

from dataclasses import dataclass, field
from typing import Any

from django.conf import settings


def _default_tiers() -> list[tuple[int, str]]:
    return [
        (5000, "platinum"),
        (2000, "gold"),
        (500, "silver"),
        (0, "bronze"),
    ]


@dataclass
class RewardmanSettings:
    """Rewardman configuration settings."""

    # Claim lock must outlive the slowest claim workflow
    CLAIM_LOCK_TTL_SECONDS: int = 30

    # Lock store
    LOCK_STORE_BACKEND: str = "rewardman.adapters.cache_lock.CacheLockStore"
    LOCK_KEY_PREFIX: str = "rewardman:"
    LOCK_CACHE_ALIAS: str = "default"
    # Allow a process-local LocMemCache as lock store (tests, single process)
    LOCK_ALLOW_LOCAL_CACHE: bool = False
    REDIS_URL: str = "redis://localhost:6379/0"

    # Optional order existence check (dotted path to an OrderLookup)
    ORDER_LOOKUP_BACKEND: str = ""

    # Overrides for new LoyaltyProgram rows (field name -> value)
    DEFAULT_PROGRAM: dict[str, Any] = field(default_factory=dict)

    # (minimum lifetime points, tier), highest first
    TIER_THRESHOLDS: list[tuple[int, str]] = field(default_factory=_default_tiers)


def get_rewardman_settings() -> RewardmanSettings:
    """Load settings from Django settings."""
    user_settings: dict[str, Any] = getattr(settings, "REWARDMAN", {})
    return RewardmanSettings(**user_settings)


class _LazySettings:
    """Lazy proxy that re-reads settings on every attribute access."""

    def __getattr__(self, name):
        return getattr(get_rewardman_settings(), name)


rewardman_settings = _LazySettings()
