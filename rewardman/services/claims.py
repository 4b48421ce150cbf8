"""Claim guard — distributed claim lock and cooldown for venue rewards.

Per (user_id, venue_reward_id):

    UNLOCKED --try_acquire--> LOCKED --cooldown marker?--> reject COOLDOWN_ACTIVE
                 |                 |
                 | key exists      +--> workflow --ok--> arm cooldown, CLAIMED
                 v                            |
          reject IN_PROGRESS                  +--fail--> FAILED (no cooldown)

The lock is released on every exit path. The lock only serializes concurrent
requests; the cooldown only rate-limits successful repeat claims. Both are
TTL-bounded coordination keys, never the record of what was claimed.
"""

import logging
import math
import uuid
from dataclasses import dataclass
from enum import Enum

from django.utils.module_loading import import_string

from rewardman.conf import rewardman_settings
from rewardman.exceptions import LockStoreUnavailable, RewardmanError
from rewardman.protocols.claims import ClaimOutcome, ClaimWorkflow
from rewardman.protocols.lock import LockStore
from rewardman.signals import reward_claimed

logger = logging.getLogger(__name__)


def get_lock_store() -> LockStore:
    """Instantiate the configured LockStore."""
    backend_class = import_string(rewardman_settings.LOCK_STORE_BACKEND)
    return backend_class()


class ClaimStatus(str, Enum):
    CLAIMED = "claimed"
    IN_PROGRESS = "in_progress"
    COOLDOWN_ACTIVE = "cooldown_active"
    FAILED = "failed"


@dataclass(frozen=True)
class LockAcquisition:
    acquired: bool
    token: str | None = None
    retry_after: int = 0


@dataclass(frozen=True)
class CooldownStatus:
    active: bool
    remaining_seconds: int = 0


@dataclass
class ClaimResult:
    """
    Outcome of a guarded claim.

    retry_after is the lock TTL for IN_PROGRESS and the remaining cooldown
    for COOLDOWN_ACTIVE (seconds).
    """

    status: ClaimStatus
    error_code: str | None = None
    message: str | None = None
    retry_after: int = 0
    outcome: ClaimOutcome | None = None
    cooldown_armed: bool = False

    @property
    def claimed(self) -> bool:
        return self.status == ClaimStatus.CLAIMED


class ClaimGuard:
    """
    At most one in-flight claim per (user, venue reward), plus a cooldown
    between successful claims, across all service instances sharing the
    lock store.

    Lock store failures raise LockStoreUnavailable: the guard fails closed
    and never runs the workflow without holding the lock.

    Usage:
        guard = ClaimGuard()
        result = guard.claim(user_id, venue_reward_id, workflow=claim_venue_reward)
        if not result.claimed:
            return http_429(result.message, retry_after=result.retry_after)
    """

    def __init__(
        self,
        store: LockStore | None = None,
        lock_ttl_seconds: int | None = None,
        key_prefix: str | None = None,
    ):
        self.store = store if store is not None else get_lock_store()
        self.lock_ttl_seconds = lock_ttl_seconds or rewardman_settings.CLAIM_LOCK_TTL_SECONDS
        self.key_prefix = (
            key_prefix if key_prefix is not None else rewardman_settings.LOCK_KEY_PREFIX
        )

    def lock_key(self, user_id: int, venue_reward_id: int) -> str:
        return f"{self.key_prefix}claim_lock:{user_id}:{venue_reward_id}"

    def cooldown_key(self, user_id: int, venue_reward_id: int) -> str:
        return f"{self.key_prefix}claim_cooldown:{user_id}:{venue_reward_id}"

    # ======================================================================
    # Primitives
    # ======================================================================

    def acquire_claim_lock(self, user_id: int, venue_reward_id: int) -> LockAcquisition:
        """Try once to take the claim lock. Never waits."""
        token = uuid.uuid4().hex
        key = self.lock_key(user_id, venue_reward_id)
        if self.store.try_acquire(key, self.lock_ttl_seconds, token):
            return LockAcquisition(acquired=True, token=token)
        return LockAcquisition(acquired=False, retry_after=self.lock_ttl_seconds)

    def check_cooldown(self, user_id: int, venue_reward_id: int) -> CooldownStatus:
        remaining = self.store.remaining_ttl(self.cooldown_key(user_id, venue_reward_id))
        if remaining is None:
            return CooldownStatus(active=False)
        return CooldownStatus(active=True, remaining_seconds=remaining)

    def release_lock(
        self,
        user_id: int,
        venue_reward_id: int,
        token: str | None = None,
        with_cooldown: bool = False,
        cooldown_hours: float = 0,
    ) -> bool:
        """
        Release the claim lock, arming the cooldown first when requested.

        The cooldown marker is written before the lock is dropped so the next
        lock holder always sees it.

        Returns:
            True if a cooldown marker was set
        """
        armed = False
        if with_cooldown and cooldown_hours > 0:
            self.store.set_marker(
                self.cooldown_key(user_id, venue_reward_id),
                math.ceil(cooldown_hours * 3600),
            )
            armed = True
        self.store.release(self.lock_key(user_id, venue_reward_id), token)
        return armed

    # ======================================================================
    # State machine
    # ======================================================================

    def claim(
        self,
        user_id: int,
        venue_reward_id: int,
        workflow: ClaimWorkflow,
    ) -> ClaimResult:
        """
        Run workflow under the claim lock, enforcing the cooldown.

        Args:
            user_id: Claiming user
            venue_reward_id: Reward being claimed
            workflow: Callable(user_id, venue_reward_id) -> ClaimOutcome.
                Raises RewardmanError when the user is not eligible.

        Returns:
            ClaimResult (CLAIMED, IN_PROGRESS, COOLDOWN_ACTIVE or FAILED)

        Raises:
            LockStoreUnavailable: lock store unreachable while acquiring or
                checking the cooldown
            Exception: anything else the workflow raises, after the lock
                is released
        """
        lock = self.acquire_claim_lock(user_id, venue_reward_id)
        if not lock.acquired:
            logger.warning(
                "Claim in progress for user %s reward %s", user_id, venue_reward_id
            )
            return ClaimResult(
                status=ClaimStatus.IN_PROGRESS,
                error_code="CLAIM_IN_PROGRESS",
                message=RewardmanError("CLAIM_IN_PROGRESS").message,
                retry_after=lock.retry_after,
            )

        succeeded = False
        try:
            cooldown = self.check_cooldown(user_id, venue_reward_id)
            if cooldown.active:
                logger.warning(
                    "Cooldown active for user %s reward %s (%ss left)",
                    user_id, venue_reward_id, cooldown.remaining_seconds,
                )
                return ClaimResult(
                    status=ClaimStatus.COOLDOWN_ACTIVE,
                    error_code="COOLDOWN_ACTIVE",
                    message=RewardmanError("COOLDOWN_ACTIVE").message,
                    retry_after=cooldown.remaining_seconds,
                )

            try:
                outcome = workflow(user_id, venue_reward_id)
                succeeded = True
            except RewardmanError as e:
                logger.info(
                    "Claim rejected for user %s reward %s: %s",
                    user_id, venue_reward_id, e.code,
                )
                return ClaimResult(
                    status=ClaimStatus.FAILED,
                    error_code=e.code,
                    message=e.message,
                )
        finally:
            if not succeeded:
                self._release_after_failure(user_id, venue_reward_id, lock.token)

        armed = self._release_after_success(user_id, venue_reward_id, lock.token, outcome)
        reward_claimed.send(
            sender=self.__class__,
            user_id=user_id,
            venue_reward_id=venue_reward_id,
            outcome=outcome,
        )
        return ClaimResult(status=ClaimStatus.CLAIMED, outcome=outcome, cooldown_armed=armed)

    def _release_after_failure(self, user_id, venue_reward_id, token) -> None:
        try:
            self.release_lock(user_id, venue_reward_id, token)
        except LockStoreUnavailable:
            # Lock expires on its own; keep the original outcome/exception.
            logger.exception(
                "Could not release claim lock for user %s reward %s",
                user_id, venue_reward_id,
            )

    def _release_after_success(self, user_id, venue_reward_id, token, outcome) -> bool:
        try:
            return self.release_lock(
                user_id,
                venue_reward_id,
                token,
                with_cooldown=True,
                cooldown_hours=outcome.cooldown_hours,
            )
        except LockStoreUnavailable:
            # The claim itself is already committed by the workflow.
            logger.exception(
                "Could not arm cooldown for user %s reward %s",
                user_id, venue_reward_id,
            )
            return False
