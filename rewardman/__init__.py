"""
Django Rewardman - Merchant loyalty ledger and reward claim guard.

Usage:
    from rewardman import LedgerService, RedemptionService, ClaimGuard

    LedgerService.award(user_id=7, merchant_id=3, order_id=120, amount=Decimal("12.50"))
    RedemptionService.validate(7, 3, 25)
    LedgerService.redeem(7, 3, 25, order_id=121, order_amount=Decimal("30.00"))

    guard = ClaimGuard()
    result = guard.claim(7, venue_reward_id=55, workflow=claim_venue_reward)
"""


def __getattr__(name):
    if name == "LedgerService":
        from rewardman.services.ledger import LedgerService

        return LedgerService
    if name == "RedemptionService":
        from rewardman.services.redemption import RedemptionService

        return RedemptionService
    if name == "ProgramService":
        from rewardman.services.program import ProgramService

        return ProgramService
    if name == "ClaimGuard":
        from rewardman.services.claims import ClaimGuard

        return ClaimGuard
    if name == "RewardmanError":
        from rewardman.exceptions import RewardmanError

        return RewardmanError
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "LedgerService",
    "RedemptionService",
    "ProgramService",
    "ClaimGuard",
    "RewardmanError",
]
__version__ = "0.1.0"
