"""
Tests for ClaimGuard: claim lock, cooldown and failure handling.

Most tests run against the in-memory LockStore from conftest, which has a
manually advanced clock. CacheLockStore and RedisLockStore have their own
adapter tests at the bottom.
"""

import threading
import time
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import redis
from django.core.exceptions import ImproperlyConfigured

from rewardman.adapters import cache_lock
from rewardman.adapters.cache_lock import CacheLockStore
from rewardman.adapters.redis_lock import RedisLockStore
from rewardman.exceptions import LockStoreUnavailable, RewardmanError
from rewardman.protocols import ClaimOutcome, LockStore
from rewardman.services.claims import ClaimGuard, ClaimStatus, get_lock_store
from rewardman.signals import reward_claimed

USER = 7
REWARD = 99


def granting(cooldown_hours=24, calls=None):
    def workflow(user_id, venue_reward_id):
        if calls is not None:
            calls.append((user_id, venue_reward_id))
        return ClaimOutcome(cooldown_hours=cooldown_hours, data={"claim_id": 1})
    return workflow


def rejecting(code="OUTSIDE_GEOFENCE"):
    def workflow(user_id, venue_reward_id):
        raise RewardmanError(code, message="You are too far from the venue")
    return workflow


@pytest.fixture
def guard(lock_store):
    return ClaimGuard(store=lock_store, lock_ttl_seconds=30, key_prefix="t:")


# ═══════════════════════════════════════════════════════════════════
# Primitives
# ═══════════════════════════════════════════════════════════════════


class TestPrimitives:
    def test_keys(self, guard):
        assert guard.lock_key(1, 2) == "t:claim_lock:1:2"
        assert guard.cooldown_key(1, 2) == "t:claim_cooldown:1:2"

    def test_acquire_once(self, guard):
        first = guard.acquire_claim_lock(USER, REWARD)
        second = guard.acquire_claim_lock(USER, REWARD)

        assert first.acquired
        assert first.token
        assert not second.acquired
        assert second.retry_after == 30

    def test_lock_is_per_user_and_reward(self, guard):
        assert guard.acquire_claim_lock(USER, REWARD).acquired
        assert guard.acquire_claim_lock(USER, REWARD + 1).acquired
        assert guard.acquire_claim_lock(USER + 1, REWARD).acquired

    def test_lock_expires(self, guard, clock):
        guard.acquire_claim_lock(USER, REWARD)
        clock.advance(31)
        assert guard.acquire_claim_lock(USER, REWARD).acquired

    def test_release_with_stale_token_keeps_new_owner(self, guard, clock, lock_store):
        stale = guard.acquire_claim_lock(USER, REWARD)
        clock.advance(31)
        fresh = guard.acquire_claim_lock(USER, REWARD)

        guard.release_lock(USER, REWARD, stale.token)

        assert guard.lock_key(USER, REWARD) in lock_store.keys
        guard.release_lock(USER, REWARD, fresh.token)
        assert guard.lock_key(USER, REWARD) not in lock_store.keys

    def test_cooldown_inactive_by_default(self, guard):
        status = guard.check_cooldown(USER, REWARD)
        assert not status.active
        assert status.remaining_seconds == 0

    def test_release_with_cooldown(self, guard, clock):
        lock = guard.acquire_claim_lock(USER, REWARD)
        armed = guard.release_lock(USER, REWARD, lock.token, with_cooldown=True, cooldown_hours=2)

        assert armed
        status = guard.check_cooldown(USER, REWARD)
        assert status.active
        assert status.remaining_seconds == 7200

        clock.advance(7200)
        assert not guard.check_cooldown(USER, REWARD).active

    def test_zero_cooldown_sets_no_marker(self, guard, lock_store):
        lock = guard.acquire_claim_lock(USER, REWARD)
        armed = guard.release_lock(USER, REWARD, lock.token, with_cooldown=True, cooldown_hours=0)
        assert not armed
        assert lock_store.keys == {}

    def test_fractional_hours_round_up(self, guard):
        lock = guard.acquire_claim_lock(USER, REWARD)
        guard.release_lock(USER, REWARD, lock.token, with_cooldown=True, cooldown_hours=0.0001)
        assert guard.check_cooldown(USER, REWARD).remaining_seconds == 1

    def test_cooldown_reports_one_second_until_expiry(self, guard, clock):
        lock = guard.acquire_claim_lock(USER, REWARD)
        guard.release_lock(USER, REWARD, lock.token, with_cooldown=True, cooldown_hours=1)

        clock.advance(3599.5)
        status = guard.check_cooldown(USER, REWARD)
        assert status.active
        assert status.remaining_seconds == 1


# ═══════════════════════════════════════════════════════════════════
# claim()
# ═══════════════════════════════════════════════════════════════════


class TestClaim:
    def test_success_arms_cooldown_and_releases(self, guard, lock_store):
        calls = []
        result = guard.claim(USER, REWARD, granting(calls=calls))

        assert result.claimed
        assert result.status == ClaimStatus.CLAIMED
        assert result.cooldown_armed
        assert result.outcome.data == {"claim_id": 1}
        assert calls == [(USER, REWARD)]
        assert guard.lock_key(USER, REWARD) not in lock_store.keys
        assert guard.cooldown_key(USER, REWARD) in lock_store.keys

    def test_cooldown_armed_before_lock_release(self, guard, lock_store):
        guard.claim(USER, REWARD, granting())

        ops = [op for op, _ in lock_store.calls]
        assert ops.index("set_marker") < ops.index("release")

    def test_cooldown_rejects_then_expires(self, guard, clock):
        guard.claim(USER, REWARD, granting(cooldown_hours=1))

        clock.advance(600)
        calls = []
        blocked = guard.claim(USER, REWARD, granting(calls=calls))

        assert blocked.status == ClaimStatus.COOLDOWN_ACTIVE
        assert blocked.error_code == "COOLDOWN_ACTIVE"
        assert blocked.retry_after == 3000
        assert calls == []

        clock.advance(3000)
        assert guard.claim(USER, REWARD, granting()).claimed

    def test_cooldown_rejection_releases_lock(self, guard, lock_store):
        guard.claim(USER, REWARD, granting())
        guard.claim(USER, REWARD, granting())
        assert guard.lock_key(USER, REWARD) not in lock_store.keys

    def test_in_progress(self, guard):
        guard.acquire_claim_lock(USER, REWARD)
        calls = []

        result = guard.claim(USER, REWARD, granting(calls=calls))

        assert result.status == ClaimStatus.IN_PROGRESS
        assert result.error_code == "CLAIM_IN_PROGRESS"
        assert result.message == "Claim already in progress. Please wait."
        assert result.retry_after == 30
        assert calls == []

    def test_failed_workflow_sets_no_cooldown(self, guard, lock_store):
        result = guard.claim(USER, REWARD, rejecting())

        assert result.status == ClaimStatus.FAILED
        assert result.error_code == "OUTSIDE_GEOFENCE"
        assert result.message == "You are too far from the venue"
        assert lock_store.keys == {}

        assert guard.claim(USER, REWARD, granting()).claimed

    def test_workflow_exception_releases_and_propagates(self, guard, lock_store):
        def broken(user_id, venue_reward_id):
            raise RuntimeError("database down")

        with pytest.raises(RuntimeError, match="database down"):
            guard.claim(USER, REWARD, broken)

        assert lock_store.keys == {}
        assert guard.claim(USER, REWARD, granting()).claimed

    def test_store_down_on_acquire_fails_closed(self, guard, lock_store):
        lock_store.fail_on.add("try_acquire")
        calls = []

        with pytest.raises(LockStoreUnavailable):
            guard.claim(USER, REWARD, granting(calls=calls))
        assert calls == []

    def test_store_down_on_cooldown_check_fails_closed(self, guard, lock_store):
        lock_store.fail_on.add("remaining_ttl")
        calls = []

        with pytest.raises(LockStoreUnavailable):
            guard.claim(USER, REWARD, granting(calls=calls))
        assert calls == []
        assert lock_store.keys == {}

    def test_cooldown_arming_failure_is_reported(self, guard, lock_store):
        lock_store.fail_on.add("set_marker")

        result = guard.claim(USER, REWARD, granting())

        assert result.claimed
        assert not result.cooldown_armed

    def test_release_failure_keeps_original_outcome(self, guard, lock_store):
        lock_store.fail_on.add("release")

        result = guard.claim(USER, REWARD, rejecting())

        assert result.status == ClaimStatus.FAILED
        # Lock left to expire on its own
        assert guard.lock_key(USER, REWARD) in lock_store.keys

    def test_reward_claimed_signal(self, guard):
        received = []

        def receiver(sender, **kwargs):
            received.append(kwargs)

        reward_claimed.connect(receiver)
        try:
            guard.claim(USER, REWARD, granting())
            guard.claim(USER, REWARD + 1, rejecting())
        finally:
            reward_claimed.disconnect(receiver)

        assert len(received) == 1
        assert received[0]["venue_reward_id"] == REWARD

    def test_concurrent_claims_exactly_one_wins(self, guard):
        workers = 10
        barrier = threading.Barrier(workers)
        calls = []
        results = []
        results_lock = threading.Lock()

        def slow_workflow(user_id, venue_reward_id):
            calls.append(user_id)
            time.sleep(0.05)
            return ClaimOutcome(cooldown_hours=1)

        def worker():
            barrier.wait()
            result = guard.claim(USER, REWARD, slow_workflow)
            with results_lock:
                results.append(result.status)

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(ClaimStatus.CLAIMED) == 1
        assert len(calls) == 1
        assert set(results) <= {
            ClaimStatus.CLAIMED,
            ClaimStatus.IN_PROGRESS,
            ClaimStatus.COOLDOWN_ACTIVE,
        }


# ═══════════════════════════════════════════════════════════════════
# Adapters
# ═══════════════════════════════════════════════════════════════════


class TestCacheLockStore:
    def test_protocol(self):
        assert isinstance(CacheLockStore(), LockStore)

    def test_default_backend(self):
        assert isinstance(get_lock_store(), CacheLockStore)

    def test_acquire_release(self):
        store = CacheLockStore()

        assert store.try_acquire("k", 30, "a")
        assert not store.try_acquire("k", 30, "b")
        assert not store.release("k", "b")
        assert store.release("k", "a")
        assert store.try_acquire("k", 30, "b")

    def test_remaining_ttl(self):
        store = CacheLockStore()

        assert store.remaining_ttl("missing") is None
        store.set_marker("cooldown", 3600)
        assert 3599 <= store.remaining_ttl("cooldown") <= 3600

    def test_remaining_ttl_never_zero_while_present(self, monkeypatch):
        store = CacheLockStore()
        store.set_marker("cooldown", 60)
        expires_at = store.cache.get("cooldown")["expires_at"]

        # Our clock runs past expiry before the cache has evicted the key
        monkeypatch.setattr(cache_lock, "time", SimpleNamespace(time=lambda: expires_at + 0.2))
        assert store.remaining_ttl("cooldown") == 1

    def test_dummy_cache_is_refused(self):
        with pytest.raises(ImproperlyConfigured, match="DummyCache"):
            CacheLockStore("dummy")

    def test_dummy_cache_refused_through_settings(self, settings):
        settings.REWARDMAN = {"LOCK_CACHE_ALIAS": "dummy"}
        with pytest.raises(ImproperlyConfigured):
            get_lock_store()

    def test_local_cache_needs_opt_in(self, settings):
        settings.REWARDMAN = {}
        with pytest.raises(ImproperlyConfigured, match="LOCK_ALLOW_LOCAL_CACHE"):
            CacheLockStore()

        settings.REWARDMAN = {"LOCK_ALLOW_LOCAL_CACHE": True}
        assert isinstance(CacheLockStore(), LockStore)

    def test_claim_through_cache(self):
        guard = ClaimGuard(store=CacheLockStore())

        assert guard.claim(USER, REWARD, granting()).claimed
        second = guard.claim(USER, REWARD, granting())
        assert second.status == ClaimStatus.COOLDOWN_ACTIVE
        assert second.retry_after > 0

    def test_backend_error_becomes_unavailable(self, monkeypatch):
        broken = MagicMock()
        broken.add.side_effect = ConnectionError("refused")
        monkeypatch.setattr(CacheLockStore, "cache", property(lambda self: broken))
        store = CacheLockStore()

        with pytest.raises(LockStoreUnavailable) as exc:
            store.try_acquire("k", 30)
        assert exc.value.code == "LOCK_STORE_UNAVAILABLE"
        assert exc.value.data["operation"] == "add"


class TestRedisLockStore:
    @pytest.fixture
    def client(self):
        client = MagicMock(spec=redis.Redis)
        client.register_script.return_value = MagicMock(return_value=1)
        return client

    def test_protocol(self, client):
        assert isinstance(RedisLockStore(client=client), LockStore)

    def test_try_acquire_uses_set_nx_ex(self, client):
        client.set.return_value = True
        store = RedisLockStore(client=client)

        assert store.try_acquire("k", 30, "tok")
        client.set.assert_called_once_with("k", "tok", ex=30, nx=True)

        client.set.return_value = None
        assert not store.try_acquire("k", 30, "tok")

    def test_release_with_token_uses_script(self, client):
        store = RedisLockStore(client=client)

        assert store.release("k", "tok")
        client.register_script.return_value.assert_called_once_with(keys=["k"], args=["tok"])
        client.delete.assert_not_called()

    def test_remaining_ttl(self, client):
        store = RedisLockStore(client=client)

        client.ttl.return_value = -2
        assert store.remaining_ttl("k") is None
        client.ttl.return_value = -1
        assert store.remaining_ttl("k") == 1
        client.ttl.return_value = 0
        assert store.remaining_ttl("k") == 1
        client.ttl.return_value = 120
        assert store.remaining_ttl("k") == 120

    def test_redis_error_becomes_unavailable(self, client):
        client.set.side_effect = redis.ConnectionError("refused")
        store = RedisLockStore(client=client)

        with pytest.raises(LockStoreUnavailable):
            store.try_acquire("k", 30)
        with pytest.raises(LockStoreUnavailable):
            store.set_marker("k", 30)
