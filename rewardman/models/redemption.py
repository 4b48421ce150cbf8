"""Redemption model (points exchanged for a discount)."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class RedemptionStatus(models.TextChoices):
    PENDING = "pending", _("Pending")
    APPLIED = "applied", _("Applied")
    CANCELLED = "cancelled", _("Cancelled")


class Redemption(models.Model):
    """
    One redemption of points for a discount.

    Lifecycle: PENDING -> APPLIED, PENDING/APPLIED -> CANCELLED.
    Cancelling refunds points_used through a REFUNDED PointTransaction.
    CANCELLED is terminal.
    """

    user_id = models.PositiveBigIntegerField(_("user"))
    merchant_id = models.PositiveBigIntegerField(_("merchant"))
    program = models.ForeignKey(
        "rewardman.LoyaltyProgram",
        on_delete=models.PROTECT,
        related_name="redemptions",
        verbose_name=_("program"),
    )
    balance = models.ForeignKey(
        "rewardman.UserMerchantBalance",
        on_delete=models.PROTECT,
        related_name="redemptions",
        verbose_name=_("balance"),
    )

    points_used = models.PositiveIntegerField(_("points used"))
    discount_value = models.DecimalField(_("discount value"), max_digits=10, decimal_places=2)
    order_id = models.PositiveBigIntegerField(_("order"), null=True, blank=True)

    status = models.CharField(
        _("status"),
        max_length=20,
        choices=RedemptionStatus.choices,
        default=RedemptionStatus.PENDING,
    )
    redeemed_at = models.DateTimeField(_("redeemed at"), auto_now_add=True, db_index=True)
    applied_at = models.DateTimeField(_("applied at"), null=True, blank=True)
    cancelled_at = models.DateTimeField(_("cancelled at"), null=True, blank=True)
    cancellation_reason = models.TextField(_("cancellation reason"), blank=True)

    metadata = models.JSONField(_("metadata"), default=dict, blank=True)

    class Meta:
        db_table = "rewardman_redemption"
        verbose_name = _("redemption")
        verbose_name_plural = _("redemptions")
        ordering = ["-redeemed_at", "-id"]
        indexes = [
            models.Index(fields=["user_id", "merchant_id", "redeemed_at"], name="rewardman_redemption_user_idx"),
            models.Index(fields=["merchant_id", "status"], name="rewardman_redeem_status_idx"),
        ]

    def __str__(self):
        return f"{self.points_used}pts -> ${self.discount_value} ({self.status})"

    @property
    def is_cancelled(self) -> bool:
        return self.status == RedemptionStatus.CANCELLED
