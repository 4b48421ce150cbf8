"""Redemption service — validation and redemption lifecycle."""

import logging
from dataclasses import dataclass
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from rewardman.exceptions import RewardmanError
from rewardman.models import Redemption, RedemptionStatus, UserMerchantBalance
from rewardman.services.calculator import calculate_redemption_value, to_decimal
from rewardman.services.ledger import CancelResult, LedgerService, RedeemResult, check_order
from rewardman.services.program import ProgramService

logger = logging.getLogger(__name__)


@dataclass
class RedemptionValidation:
    """Redemption validation result."""

    valid: bool
    error_code: str | None = None
    message: str | None = None
    available_points: int | None = None
    minimum_required: int | None = None
    discount_value: Decimal | None = None

    def as_error(self) -> RewardmanError:
        """The failed check as a raisable RewardmanError."""
        return RewardmanError(
            self.error_code,
            message=self.message,
            available=self.available_points,
            minimum_required=self.minimum_required,
            discount_value=str(self.discount_value) if self.discount_value is not None else None,
        )


class RedemptionService:
    """
    Redemption workflow.

    Uses @classmethod for extensibility (consistent with other services).

    CORE:
        validate(...)  - Advisory read-only check, precise failure reason
        redeem(...)    - Validate + LedgerService.redeem
        apply(...)     - PENDING -> APPLIED
        cancel(...)    - PENDING/APPLIED -> CANCELLED + refund
    """

    @classmethod
    def validate(
        cls,
        user_id: int,
        merchant_id: int,
        points: int,
        order_amount=None,
    ) -> RedemptionValidation:
        """
        Check whether a redemption would be accepted, without writing anything.

        Checks, in order: balance covers the requested points, points reach
        the program minimum, discount does not exceed order_amount (when
        given). The result is advisory: LedgerService.redeem re-checks the
        balance under the row lock.

        Returns:
            RedemptionValidation (never raises for domain failures)
        """
        try:
            program = ProgramService.get_active(merchant_id)
        except RewardmanError as e:
            return RedemptionValidation(valid=False, error_code=e.code, message=e.message)

        available = (
            UserMerchantBalance.objects.filter(user_id=user_id, merchant_id=merchant_id)
            .values_list("current_balance", flat=True)
            .first()
        ) or 0

        if available < points:
            return RedemptionValidation(
                valid=False,
                error_code="INSUFFICIENT_POINTS",
                message=f"Insufficient points. You have {available} points, need {points}",
                available_points=available,
                minimum_required=points,
            )

        if points < program.minimum_redemption:
            return RedemptionValidation(
                valid=False,
                error_code="BELOW_MINIMUM_REDEMPTION",
                message=f"Minimum {program.minimum_redemption} points required for redemption",
                available_points=available,
                minimum_required=program.minimum_redemption,
            )

        calc = calculate_redemption_value(
            points,
            program.minimum_redemption,
            program.redemption_value,
        )

        if order_amount is not None and calc.discount_value > to_decimal(order_amount):
            return RedemptionValidation(
                valid=False,
                error_code="DISCOUNT_EXCEEDS_ORDER_AMOUNT",
                message=(
                    f"Discount value (${calc.discount_value}) cannot exceed "
                    f"order amount (${order_amount})"
                ),
                available_points=available,
                discount_value=calc.discount_value,
            )

        return RedemptionValidation(
            valid=True,
            available_points=available,
            discount_value=calc.discount_value,
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
        """Redeem points. See LedgerService.redeem."""
        return LedgerService.redeem(user_id, merchant_id, points, order_id, order_amount)

    @classmethod
    def apply(cls, redemption_id: int, order_id: int) -> Redemption:
        """
        Attach a PENDING redemption to an order.

        Raises:
            RewardmanError: REDEMPTION_NOT_FOUND, REDEMPTION_ALREADY_CANCELLED,
                REDEMPTION_ALREADY_APPLIED, ORDER_NOT_FOUND
        """
        with transaction.atomic():
            redemption = cls._get_for_update(redemption_id)

            if redemption.status == RedemptionStatus.CANCELLED:
                raise RewardmanError("REDEMPTION_ALREADY_CANCELLED", redemption_id=redemption_id)
            if redemption.status == RedemptionStatus.APPLIED:
                raise RewardmanError(
                    "REDEMPTION_ALREADY_APPLIED",
                    redemption_id=redemption_id,
                    order_id=redemption.order_id,
                )

            check_order(order_id, redemption.user_id, redemption.merchant_id)

            redemption.status = RedemptionStatus.APPLIED
            redemption.order_id = order_id
            redemption.applied_at = timezone.now()
            redemption.save(update_fields=["status", "order_id", "applied_at"])

        logger.info("Redemption %s applied to order %s", redemption_id, order_id)
        return redemption

    @classmethod
    def cancel(cls, redemption_id: int, reason: str) -> CancelResult:
        """Cancel and refund. See LedgerService.cancel_redemption."""
        return LedgerService.cancel_redemption(redemption_id, reason)

    @classmethod
    def get(cls, redemption_id: int) -> Redemption | None:
        return Redemption.objects.filter(pk=redemption_id).first()

    @classmethod
    def list_for_user(
        cls,
        user_id: int,
        merchant_id: int,
        status: str | None = None,
        limit: int = 50,
    ) -> list[Redemption]:
        """User's redemptions at a merchant, most recent first."""
        qs = Redemption.objects.filter(user_id=user_id, merchant_id=merchant_id)
        if status:
            qs = qs.filter(status=status)
        return list(qs[:limit])

    @classmethod
    def _get_for_update(cls, redemption_id: int) -> Redemption:
        try:
            return Redemption.objects.select_for_update().get(pk=redemption_id)
        except Redemption.DoesNotExist:
            raise RewardmanError("REDEMPTION_NOT_FOUND", redemption_id=redemption_id)
