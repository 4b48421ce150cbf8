"""Claim workflow protocol."""

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class ClaimOutcome:
    """Result of a successful claim workflow."""

    cooldown_hours: float
    data: dict[str, Any] = field(default_factory=dict)


@runtime_checkable
class ClaimWorkflow(Protocol):
    """
    The eligibility-and-grant step run while the claim lock is held.

    Owned by the venue reward app: reward lookup, geofence distance check,
    per-user and global claim limits, and writing the durable claim row.

    Success returns a ClaimOutcome (cooldown_hours drives the cooldown
    marker). An ineligible claim raises RewardmanError; the guard turns it
    into a FAILED result and arms no cooldown. Any other exception is a
    system error and propagates after the lock is released.
    """

    def __call__(self, user_id: int, venue_reward_id: int) -> ClaimOutcome:
        ...
