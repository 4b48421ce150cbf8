"""Django cache LockStore adapter."""

import math
import time

from django.core.cache import caches
from django.core.cache.backends.dummy import DummyCache
from django.core.cache.backends.locmem import LocMemCache
from django.core.exceptions import ImproperlyConfigured

from rewardman.conf import rewardman_settings
from rewardman.exceptions import LockStoreUnavailable


class CacheLockStore:
    """
    LockStore backed by the Django cache framework.

    cache.add() is set-if-absent with expiry. It is atomic on the Redis and
    Memcached backends, which is what a multi-instance deployment needs;
    LocMemCache only serializes within one process, so it is refused unless
    LOCK_ALLOW_LOCAL_CACHE is set (tests, single-process deployments).
    DummyCache is always refused: every add() would succeed.

    Values are {"token": ..., "expires_at": ...} so the remaining TTL can be
    read back without backend-specific TTL commands.

    Configuration in settings.py:
        REWARDMAN = {
            "LOCK_STORE_BACKEND": "rewardman.adapters.cache_lock.CacheLockStore",
            "LOCK_CACHE_ALIAS": "locks",
        }
    """

    def __init__(self, alias: str | None = None):
        self.alias = alias or rewardman_settings.LOCK_CACHE_ALIAS
        self._check_backend()

    @property
    def cache(self):
        return caches[self.alias]

    def _check_backend(self) -> None:
        backend = self.cache
        if isinstance(backend, DummyCache):
            raise ImproperlyConfigured(
                f"Cache '{self.alias}' is a DummyCache and cannot hold claim locks. "
                "Point LOCK_CACHE_ALIAS at a real cache or use RedisLockStore."
            )
        if isinstance(backend, LocMemCache) and not rewardman_settings.LOCK_ALLOW_LOCAL_CACHE:
            raise ImproperlyConfigured(
                f"Cache '{self.alias}' is process-local (LocMemCache); claim locks "
                "would not be shared between instances. Set "
                "REWARDMAN[\"LOCK_ALLOW_LOCAL_CACHE\"] = True to allow it."
            )

    def try_acquire(self, key: str, ttl_seconds: int, token: str = "1") -> bool:
        value = {"token": token, "expires_at": time.time() + ttl_seconds}
        return bool(self._call("add", key, value, timeout=ttl_seconds))

    def release(self, key: str, token: str | None = None) -> bool:
        if token is not None:
            # get + delete is not atomic here; RedisLockStore does compare-and-delete.
            current = self._call("get", key)
            if not current or current.get("token") != token:
                return False
        return bool(self._call("delete", key))

    def set_marker(self, key: str, ttl_seconds: int) -> None:
        value = {"token": "1", "expires_at": time.time() + ttl_seconds}
        self._call("set", key, value, timeout=ttl_seconds)

    def remaining_ttl(self, key: str) -> int | None:
        current = self._call("get", key)
        if current is None:
            return None
        # Reported as at least 1s while the key is present
        return max(1, math.ceil(current["expires_at"] - time.time()))

    def _call(self, method: str, *args, **kwargs):
        """Invoke a cache method, surfacing backend failures as LockStoreUnavailable."""
        try:
            return getattr(self.cache, method)(*args, **kwargs)
        except Exception as exc:
            # Backend exception types vary (redis, pymemcache, database).
            raise LockStoreUnavailable(
                f"Cache '{self.alias}' failed on {method}",
                alias=self.alias,
                operation=method,
            ) from exc
