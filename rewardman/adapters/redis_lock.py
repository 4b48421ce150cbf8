"""Redis LockStore adapter (redis-py)."""

import logging

import redis

from rewardman.conf import rewardman_settings
from rewardman.exceptions import LockStoreUnavailable

logger = logging.getLogger(__name__)


# Delete only if the caller still owns the key.
_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
end
return 0
"""


class RedisLockStore:
    """
    LockStore backed by Redis: SET NX EX to acquire, TTL to read cooldowns,
    a Lua compare-and-delete to release.

    Configuration in settings.py:
        REWARDMAN = {
            "LOCK_STORE_BACKEND": "rewardman.adapters.redis_lock.RedisLockStore",
            "REDIS_URL": "redis://cache:6379/2",
        }
    """

    def __init__(self, client: redis.Redis | None = None, url: str | None = None):
        if client is None:
            client = redis.Redis.from_url(
                url or rewardman_settings.REDIS_URL,
                decode_responses=True,
            )
        self.client = client
        self._release_script = client.register_script(_RELEASE_SCRIPT)

    def try_acquire(self, key: str, ttl_seconds: int, token: str = "1") -> bool:
        try:
            return bool(self.client.set(key, token, ex=ttl_seconds, nx=True))
        except redis.RedisError as exc:
            raise LockStoreUnavailable(f"SET NX failed for {key}", key=key) from exc

    def release(self, key: str, token: str | None = None) -> bool:
        try:
            if token is None:
                return bool(self.client.delete(key))
            return bool(self._release_script(keys=[key], args=[token]))
        except redis.RedisError as exc:
            raise LockStoreUnavailable(f"DEL failed for {key}", key=key) from exc

    def set_marker(self, key: str, ttl_seconds: int) -> None:
        try:
            self.client.set(key, "1", ex=ttl_seconds)
        except redis.RedisError as exc:
            raise LockStoreUnavailable(f"SET failed for {key}", key=key) from exc

    def remaining_ttl(self, key: str) -> int | None:
        try:
            ttl = self.client.ttl(key)
        except redis.RedisError as exc:
            raise LockStoreUnavailable(f"TTL failed for {key}", key=key) from exc

        if ttl == -2:
            return None
        if ttl == -1:
            # Present without expiry; markers are always written with one.
            logger.warning("Lock store key %s has no expiry", key)
            return 1
        return max(1, ttl)
