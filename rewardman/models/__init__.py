"""Rewardman models.

Ledger store layout:
- LoyaltyProgram: per-merchant configuration
- UserMerchantBalance: per (user, merchant) balance aggregate
- Redemption: points exchanged for a discount
- PointTransaction: append-only log of every balance mutation

Claim locks and cooldown markers live in the lock store, not here.
"""

from rewardman.models.program import LoyaltyProgram
from rewardman.models.balance import UserMerchantBalance, LoyaltyTier
from rewardman.models.redemption import Redemption, RedemptionStatus
from rewardman.models.transaction import PointTransaction, TransactionType

__all__ = [
    "LoyaltyProgram",
    "UserMerchantBalance",
    "LoyaltyTier",
    "Redemption",
    "RedemptionStatus",
    "PointTransaction",
    "TransactionType",
]
