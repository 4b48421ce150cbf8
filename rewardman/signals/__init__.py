"""
Rewardman signals — public event API.

Emitted signals (ledger signals fire after the transaction commits):
- points_awarded: LedgerService.award()
- points_redeemed: LedgerService.redeem()
- redemption_cancelled: LedgerService.cancel_redemption()
- reward_claimed: ClaimGuard.claim() after a successful workflow
"""

from django.dispatch import Signal

points_awarded = Signal()  # sender=PointTransaction, transaction=PointTransaction
points_redeemed = Signal()  # sender=Redemption, redemption=Redemption, transaction=PointTransaction
redemption_cancelled = Signal()  # sender=Redemption, redemption=Redemption, transaction=PointTransaction
reward_claimed = Signal()  # sender=ClaimGuard, user_id=int, venue_reward_id=int, outcome=ClaimOutcome
