"""Lock store protocol."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class LockStore(Protocol):
    """
    Shared key-value store used for claim locks and cooldown markers.

    Never the source of truth for balances. Every method talks to a shared
    store and may block; implementations raise LockStoreUnavailable when the
    store cannot be reached, never a falsy "not acquired" result.

    Implemented by:
    - rewardman.adapters.cache_lock.CacheLockStore (Django cache framework)
    - rewardman.adapters.redis_lock.RedisLockStore (redis-py)

    Configuration in settings.py:
        REWARDMAN = {
            "LOCK_STORE_BACKEND": "rewardman.adapters.redis_lock.RedisLockStore",
        }
    """

    def try_acquire(self, key: str, ttl_seconds: int, token: str = "1") -> bool:
        """
        Atomically set key to token if absent, expiring after ttl_seconds.

        Returns:
            True if this call created the key, False if it already existed
        """
        ...

    def release(self, key: str, token: str | None = None) -> bool:
        """
        Delete key. When token is given, delete only if the key still holds it.

        Returns:
            True if a key was deleted
        """
        ...

    def set_marker(self, key: str, ttl_seconds: int) -> None:
        """Set (or overwrite) key with an expiry of ttl_seconds."""
        ...

    def remaining_ttl(self, key: str) -> int | None:
        """
        Seconds until key expires.

        Returns:
            None if the key is absent, else remaining seconds (>= 1)
        """
        ...
