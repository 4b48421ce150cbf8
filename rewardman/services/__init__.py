"""Rewardman services.

- calculator: pure earn/redeem arithmetic
- program: ProgramService (merchant configuration)
- ledger: LedgerService (balances + transaction log)
- redemption: RedemptionService (validation + lifecycle)
- claims: ClaimGuard (claim lock + cooldown)
"""

from rewardman.services import calculator
from rewardman.services import program
from rewardman.services import ledger
from rewardman.services import redemption
from rewardman.services import claims

__all__ = ["calculator", "program", "ledger", "redemption", "claims"]
