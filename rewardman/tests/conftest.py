"""Pytest fixtures for Rewardman tests."""

import math
import threading
from decimal import Decimal

import pytest
from django.core.cache import cache

from rewardman.exceptions import LockStoreUnavailable
from rewardman.services.program import ProgramService


MERCHANT_ID = 1001
USER_ID = 42


class FakeClock:
    """Manually advanced clock (seconds)."""

    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryLockStore:
    """
    Thread-safe LockStore for tests, with a controllable clock.

    Set `fail_on` to a method name to make that operation raise
    LockStoreUnavailable.
    """

    def __init__(self, clock: FakeClock | None = None):
        self.clock = clock or FakeClock()
        self.keys: dict[str, tuple[str, float]] = {}
        self.calls: list[tuple[str, str]] = []
        self.fail_on: set[str] = set()
        self._mutex = threading.Lock()

    def _check(self, op: str, key: str) -> None:
        self.calls.append((op, key))
        if op in self.fail_on:
            raise LockStoreUnavailable(f"{op} failed", key=key)

    def _purge(self, key: str) -> None:
        entry = self.keys.get(key)
        if entry is not None and entry[1] <= self.clock():
            del self.keys[key]

    def try_acquire(self, key, ttl_seconds, token="1"):
        with self._mutex:
            self._check("try_acquire", key)
            self._purge(key)
            if key in self.keys:
                return False
            self.keys[key] = (token, self.clock() + ttl_seconds)
            return True

    def release(self, key, token=None):
        with self._mutex:
            self._check("release", key)
            self._purge(key)
            entry = self.keys.get(key)
            if entry is None or (token is not None and entry[0] != token):
                return False
            del self.keys[key]
            return True

    def set_marker(self, key, ttl_seconds):
        with self._mutex:
            self._check("set_marker", key)
            self.keys[key] = ("1", self.clock() + ttl_seconds)

    def remaining_ttl(self, key):
        with self._mutex:
            self._check("remaining_ttl", key)
            self._purge(key)
            entry = self.keys.get(key)
            if entry is None:
                return None
            return max(1, math.ceil(entry[1] - self.clock()))


@pytest.fixture
def merchant_id():
    return MERCHANT_ID


@pytest.fixture
def user_id():
    return USER_ID


@pytest.fixture
def program(db):
    """Active program with the default configuration (0.4 pts/$, 25 pts = $5)."""
    return ProgramService.initialize(MERCHANT_ID)


@pytest.fixture
def generous_program(db):
    """Second merchant: 1 point per dollar, 10 pts = $1."""
    return ProgramService.initialize(
        2002,
        points_per_dollar=Decimal("1"),
        minimum_redemption=10,
        redemption_value=Decimal("1.00"),
    )


@pytest.fixture
def funded_balance(program):
    """USER_ID holds 60 points at MERCHANT_ID ($150 purchase)."""
    from rewardman.services.ledger import LedgerService

    LedgerService.award(USER_ID, MERCHANT_ID, order_id=500, amount=Decimal("150.00"))
    return LedgerService.get_balance(USER_ID, MERCHANT_ID)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def lock_store(clock):
    return InMemoryLockStore(clock)


@pytest.fixture(autouse=True)
def _clear_cache():
    cache.clear()
    yield
    cache.clear()
