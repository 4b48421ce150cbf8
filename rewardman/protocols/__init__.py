"""Rewardman protocols."""

from rewardman.protocols.lock import LockStore
from rewardman.protocols.orders import OrderLookup
from rewardman.protocols.claims import ClaimOutcome, ClaimWorkflow

__all__ = [
    # Lock store
    "LockStore",
    # Orders
    "OrderLookup",
    # Claims
    "ClaimOutcome",
    "ClaimWorkflow",
]
