"""Ledger service — points balances and the append-only transaction log.

Every mutation runs inside transaction.atomic() with the balance row locked
via select_for_update(), so concurrent award/redeem/cancel calls for the same
(user, merchant) are serialized: balance_before is always read under the lock
and the balance update commits together with its PointTransaction, or not at
all.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from django.db import transaction
from django.utils import timezone
from django.utils.module_loading import import_string

from rewardman.conf import rewardman_settings
from rewardman.exceptions import RewardmanError
from rewardman.models import (
    PointTransaction,
    Redemption,
    RedemptionStatus,
    TransactionType,
    UserMerchantBalance,
)
from rewardman.protocols.orders import OrderLookup
from rewardman.services.calculator import (
    PointCalculation,
    calculate_earned_points,
    calculate_redemption_value,
    to_decimal,
)
from rewardman.services.program import ProgramService
from rewardman.signals import points_awarded, points_redeemed, redemption_cancelled

logger = logging.getLogger(__name__)


def _get_order_lookup() -> OrderLookup | None:
    """Get configured OrderLookup."""
    backend_path = rewardman_settings.ORDER_LOOKUP_BACKEND
    if backend_path:
        backend_class = import_string(backend_path)
        return backend_class()
    return None


def check_order(order_id, user_id, merchant_id) -> None:
    """
    Verify the order via the configured OrderLookup, if any.

    No-op when order_id is None or no backend is configured.

    Raises:
        RewardmanError: ORDER_NOT_FOUND
    """
    if order_id is None:
        return
    lookup = _get_order_lookup()
    if lookup is not None and not lookup.order_exists(order_id, user_id, merchant_id):
        raise RewardmanError(
            "ORDER_NOT_FOUND",
            order_id=order_id,
            user_id=user_id,
            merchant_id=merchant_id,
        )


@dataclass
class AwardResult:
    """Result of awarding points for a purchase."""

    points_earned: int
    calculation: PointCalculation
    message: str
    balance_before: int | None = None
    balance_after: int | None = None
    transaction: PointTransaction | None = None


@dataclass
class RedeemResult:
    """Result of redeeming points for a discount."""

    points_redeemed: int
    discount_value: Decimal
    balance_before: int
    balance_after: int
    remaining_points: int
    redemption: Redemption
    transaction: PointTransaction
    message: str


@dataclass
class CancelResult:
    """Result of cancelling a redemption."""

    points_refunded: int
    balance_before: int
    balance_after: int
    redemption: Redemption
    transaction: PointTransaction
    message: str


@dataclass(frozen=True)
class LoyaltyBalance:
    """Read-only projection of a balance joined with its program config."""

    user_id: int
    merchant_id: int
    current_balance: int
    lifetime_earned: int
    lifetime_redeemed: int
    last_earned_at: datetime | None
    last_redeemed_at: datetime | None
    tier: str | None
    program_config: dict


@dataclass
class TransactionPage:
    transactions: list[PointTransaction]
    total: int
    limit: int
    offset: int
    has_more: bool


@dataclass
class LedgerAudit:
    """Replay of a balance's transaction log against the stored balance."""

    user_id: int
    merchant_id: int
    stored_balance: int
    replayed_balance: int
    transaction_count: int
    chain_breaks: list[int] = field(default_factory=list)

    @property
    def consistent(self) -> bool:
        return self.stored_balance == self.replayed_balance and not self.chain_breaks


class LedgerService:
    """
    Balance manager: earn, redeem, refund.

    Uses @classmethod for extensibility (consistent with other services).
    All point mutations use transaction.atomic() + select_for_update().
    """

    # ======================================================================
    # Mutations
    # ======================================================================

    @classmethod
    def award(
        cls,
        user_id: int,
        merchant_id: int,
        order_id: int | None,
        amount,
        description: str | None = None,
    ) -> AwardResult:
        """
        Award points for a purchase.

        Args:
            user_id: Buyer
            merchant_id: Merchant whose program applies
            order_id: Order the points are earned on (stored as a link)
            amount: Purchase amount (Decimal, str, int or float)
            description: Transaction description (default is generated)

        Returns:
            AwardResult. points_earned == 0 (no transaction written) when the
            amount is too small to earn a whole point.

        Raises:
            RewardmanError: PROGRAM_NOT_FOUND, PROGRAM_INACTIVE,
                MINIMUM_PURCHASE_NOT_MET, ORDER_NOT_FOUND
        """
        amount = to_decimal(amount)
        program = ProgramService.get_active(merchant_id)

        if amount < program.minimum_purchase:
            raise RewardmanError(
                "MINIMUM_PURCHASE_NOT_MET",
                message=f"Minimum purchase of ${program.minimum_purchase} required to earn points",
                minimum_purchase=str(program.minimum_purchase),
                amount=str(amount),
            )

        calculation = calculate_earned_points(amount, program.points_per_dollar)
        points = calculation.points_earned
        if points == 0:
            return AwardResult(
                points_earned=0,
                calculation=calculation,
                message="Purchase amount too small to earn points",
            )

        check_order(order_id, user_id, merchant_id)

        with transaction.atomic():
            balance = cls._get_balance_for_update(user_id, merchant_id, program)

            balance_before = balance.current_balance
            balance.current_balance = balance_before + points
            balance.lifetime_earned += points
            balance.last_earned_at = timezone.now()
            balance.tier = cls._classify_tier(balance.lifetime_earned)
            balance.save(update_fields=[
                "current_balance",
                "lifetime_earned",
                "last_earned_at",
                "tier",
                "updated_at",
            ])

            tx = PointTransaction.objects.create(
                balance=balance,
                user_id=user_id,
                merchant_id=merchant_id,
                program=program,
                transaction_type=TransactionType.EARNED,
                points=points,
                balance_before=balance_before,
                balance_after=balance.current_balance,
                description=description or f"Earned {points} points from ${amount:.2f} purchase",
                metadata={
                    "order_amount": str(amount),
                    "calculation": calculation.calculation,
                },
                order_id=order_id,
            )

            transaction.on_commit(
                lambda: points_awarded.send(sender=PointTransaction, transaction=tx)
            )

        logger.info(
            "Awarded %s points to user %s at merchant %s (%s -> %s)",
            points, user_id, merchant_id, balance_before, balance.current_balance,
        )
        return AwardResult(
            points_earned=points,
            calculation=calculation,
            message=f"Successfully earned {points} points!",
            balance_before=balance_before,
            balance_after=balance.current_balance,
            transaction=tx,
        )

    @classmethod
    def redeem(
        cls,
        user_id: int,
        merchant_id: int,
        points: int,
        order_id: int | None = None,
        order_amount=None,
    ) -> RedeemResult:
        """
        Redeem points for a discount.

        Only whole redemption units are consumed; the rest of the requested
        points stay in the balance and are reported as remaining_points.

        Args:
            user_id: User redeeming
            merchant_id: Merchant whose program applies
            points: Points requested
            order_id: Order the discount applies to (redemption is APPLIED
                when given, PENDING otherwise)
            order_amount: Order total; the discount may not exceed it

        Raises:
            RewardmanError: INSUFFICIENT_POINTS, BELOW_MINIMUM_REDEMPTION,
                DISCOUNT_EXCEEDS_ORDER_AMOUNT, PROGRAM_NOT_FOUND,
                PROGRAM_INACTIVE, ORDER_NOT_FOUND
        """
        from rewardman.services.redemption import RedemptionService

        if order_amount is not None:
            order_amount = to_decimal(order_amount)

        # Advisory pre-check for precise error messages; sufficiency is
        # re-verified below under the row lock.
        validation = RedemptionService.validate(user_id, merchant_id, points, order_amount)
        if not validation.valid:
            raise validation.as_error()

        program = ProgramService.get_active(merchant_id)
        calc = calculate_redemption_value(
            points,
            program.minimum_redemption,
            program.redemption_value,
        )
        consumed = calc.points_consumed

        check_order(order_id, user_id, merchant_id)

        with transaction.atomic():
            balance = cls._get_balance_for_update(user_id, merchant_id, program)

            balance_before = balance.current_balance
            if balance_before < points:
                raise RewardmanError(
                    "INSUFFICIENT_POINTS",
                    message=(
                        f"Insufficient points. You have {balance_before} points, "
                        f"need {points}"
                    ),
                    available=balance_before,
                    requested=points,
                )

            now = timezone.now()
            balance.current_balance = balance_before - consumed
            balance.lifetime_redeemed += consumed
            balance.last_redeemed_at = now
            balance.save(update_fields=[
                "current_balance",
                "lifetime_redeemed",
                "last_redeemed_at",
                "updated_at",
            ])

            applied = order_id is not None
            redemption = Redemption.objects.create(
                user_id=user_id,
                merchant_id=merchant_id,
                program=program,
                balance=balance,
                points_used=consumed,
                discount_value=calc.discount_value,
                order_id=order_id,
                status=RedemptionStatus.APPLIED if applied else RedemptionStatus.PENDING,
                applied_at=now if applied else None,
                metadata={
                    "calculation": calc.calculation,
                    "order_amount": str(order_amount) if order_amount is not None else None,
                },
            )

            tx = PointTransaction.objects.create(
                balance=balance,
                user_id=user_id,
                merchant_id=merchant_id,
                program=program,
                transaction_type=TransactionType.REDEEMED,
                points=-consumed,
                balance_before=balance_before,
                balance_after=balance.current_balance,
                description=f"Redeemed {consumed} points for ${calc.discount_value:.2f} discount",
                metadata={
                    "discount_value": str(calc.discount_value),
                    "calculation": calc.calculation,
                },
                order_id=order_id,
                redemption=redemption,
            )

            transaction.on_commit(
                lambda: points_redeemed.send(
                    sender=Redemption, redemption=redemption, transaction=tx
                )
            )

        logger.info(
            "Redeemed %s points for user %s at merchant %s (redemption %s)",
            consumed, user_id, merchant_id, redemption.pk,
        )
        return RedeemResult(
            points_redeemed=consumed,
            discount_value=calc.discount_value,
            balance_before=balance_before,
            balance_after=balance.current_balance,
            remaining_points=calc.remainder,
            redemption=redemption,
            transaction=tx,
            message=(
                f"Successfully redeemed {consumed} points for "
                f"${calc.discount_value:.2f} discount!"
            ),
        )

    @classmethod
    def cancel_redemption(cls, redemption_id: int, reason: str) -> CancelResult:
        """
        Cancel a redemption and refund its points.

        The only compensating path in the ledger: restores current_balance,
        takes the points back out of lifetime_redeemed and appends a
        REFUNDED transaction pointing at the redemption.

        Raises:
            RewardmanError: REDEMPTION_NOT_FOUND, REDEMPTION_ALREADY_CANCELLED
        """
        balance_id = (
            Redemption.objects.filter(pk=redemption_id)
            .values_list("balance_id", flat=True)
            .first()
        )
        if balance_id is None:
            raise RewardmanError("REDEMPTION_NOT_FOUND", redemption_id=redemption_id)

        with transaction.atomic():
            # Balance row first, same lock order as award/redeem
            balance = UserMerchantBalance.objects.select_for_update().get(pk=balance_id)
            redemption = Redemption.objects.select_for_update().get(pk=redemption_id)

            if redemption.is_cancelled:
                raise RewardmanError(
                    "REDEMPTION_ALREADY_CANCELLED",
                    redemption_id=redemption_id,
                )

            refund = redemption.points_used
            now = timezone.now()

            redemption.status = RedemptionStatus.CANCELLED
            redemption.cancelled_at = now
            redemption.cancellation_reason = reason
            redemption.save(update_fields=["status", "cancelled_at", "cancellation_reason"])

            balance_before = balance.current_balance
            balance.current_balance = balance_before + refund
            balance.lifetime_redeemed -= refund
            balance.save(update_fields=["current_balance", "lifetime_redeemed", "updated_at"])

            tx = PointTransaction.objects.create(
                balance=balance,
                user_id=redemption.user_id,
                merchant_id=redemption.merchant_id,
                program_id=redemption.program_id,
                transaction_type=TransactionType.REFUNDED,
                points=refund,
                balance_before=balance_before,
                balance_after=balance.current_balance,
                description=f"Points refunded from cancelled redemption: {reason}",
                metadata={
                    "original_redemption_id": redemption.pk,
                    "reason": reason,
                },
                redemption=redemption,
            )

            transaction.on_commit(
                lambda: redemption_cancelled.send(
                    sender=Redemption, redemption=redemption, transaction=tx
                )
            )

        logger.info("Redemption %s cancelled, %s points refunded", redemption_id, refund)
        return CancelResult(
            points_refunded=refund,
            balance_before=balance_before,
            balance_after=balance.current_balance,
            redemption=redemption,
            transaction=tx,
            message=f"Redemption cancelled. {refund} points refunded.",
        )

    # ======================================================================
    # Queries
    # ======================================================================

    @classmethod
    def get_balance(cls, user_id: int, merchant_id: int) -> LoyaltyBalance:
        """
        Get (or lazily create) the user's balance at a merchant.

        Raises:
            RewardmanError: PROGRAM_NOT_FOUND, PROGRAM_INACTIVE
        """
        program = ProgramService.get_active(merchant_id)
        balance, _ = UserMerchantBalance.objects.get_or_create(
            user_id=user_id,
            merchant_id=merchant_id,
            defaults={"program": program},
        )
        return cls._project(balance, program)

    @classmethod
    def get_all_balances(cls, user_id: int) -> list[LoyaltyBalance]:
        """All of a user's balances, largest first."""
        balances = (
            UserMerchantBalance.objects.filter(user_id=user_id)
            .select_related("program")
            .order_by("-current_balance", "merchant_id")
        )
        return [cls._project(b, b.program) for b in balances]

    @classmethod
    def get_transactions(
        cls,
        user_id: int,
        merchant_id: int,
        limit: int = 50,
        offset: int = 0,
    ) -> TransactionPage:
        """Transaction history for a (user, merchant), most recent first."""
        qs = PointTransaction.objects.filter(user_id=user_id, merchant_id=merchant_id)
        total = qs.count()
        transactions = list(
            qs.select_related("redemption").order_by("-created_at", "-id")[offset:offset + limit]
        )
        return TransactionPage(
            transactions=transactions,
            total=total,
            limit=limit,
            offset=offset,
            has_more=offset + limit < total,
        )

    @classmethod
    def verify_balance(cls, user_id: int, merchant_id: int) -> LedgerAudit:
        """
        Replay the transaction log of a balance and compare with the stored balance.

        chain_breaks lists transaction ids whose balance_before does not
        follow the previous row or whose balance_after != balance_before + points.
        """
        stored = (
            UserMerchantBalance.objects.filter(user_id=user_id, merchant_id=merchant_id)
            .values_list("current_balance", flat=True)
            .first()
        )

        running = 0
        count = 0
        breaks = []
        rows = (
            PointTransaction.objects.filter(user_id=user_id, merchant_id=merchant_id)
            .order_by("id")
            .values_list("id", "points", "balance_before", "balance_after")
        )
        for tx_id, points, before, after in rows.iterator():
            if before != running or after != before + points:
                breaks.append(tx_id)
            running += points
            count += 1

        return LedgerAudit(
            user_id=user_id,
            merchant_id=merchant_id,
            stored_balance=stored or 0,
            replayed_balance=running,
            transaction_count=count,
            chain_breaks=breaks,
        )

    # ======================================================================
    # Internals
    # ======================================================================

    @classmethod
    def _get_balance_for_update(cls, user_id, merchant_id, program) -> UserMerchantBalance:
        """
        Get (or create) the balance row with a row-level lock.

        MUST be called inside transaction.atomic().
        Prevents lost-update race conditions on concurrent earn/redeem/refund.
        """
        balance, _ = UserMerchantBalance.objects.get_or_create(
            user_id=user_id,
            merchant_id=merchant_id,
            defaults={"program": program},
        )
        return UserMerchantBalance.objects.select_for_update().get(pk=balance.pk)

    @classmethod
    def _classify_tier(cls, lifetime_earned: int) -> str | None:
        for threshold, tier in rewardman_settings.TIER_THRESHOLDS:
            if lifetime_earned >= threshold:
                return tier
        return None

    @classmethod
    def _project(cls, balance: UserMerchantBalance, program) -> LoyaltyBalance:
        return LoyaltyBalance(
            user_id=balance.user_id,
            merchant_id=balance.merchant_id,
            current_balance=balance.current_balance,
            lifetime_earned=balance.lifetime_earned,
            lifetime_redeemed=balance.lifetime_redeemed,
            last_earned_at=balance.last_earned_at,
            last_redeemed_at=balance.last_redeemed_at,
            tier=balance.tier,
            program_config=program.as_config(),
        )
