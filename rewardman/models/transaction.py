"""PointTransaction model (append-only points ledger)."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class TransactionType(models.TextChoices):
    EARNED = "earned", _("Earned")
    REDEEMED = "redeemed", _("Redeemed")
    REFUNDED = "refunded", _("Refunded")


class PointTransaction(models.Model):
    """
    Immutable record of one balance mutation.

    Every earn, redeem, and refund is logged here. Rows are append-only,
    never modified or deleted.

    Invariant: balance_after == balance_before + points, and replaying all
    rows of a balance in id order reconstructs its current_balance.
    """

    balance = models.ForeignKey(
        "rewardman.UserMerchantBalance",
        on_delete=models.PROTECT,
        related_name="transactions",
        verbose_name=_("balance"),
    )
    user_id = models.PositiveBigIntegerField(_("user"))
    merchant_id = models.PositiveBigIntegerField(_("merchant"))
    program = models.ForeignKey(
        "rewardman.LoyaltyProgram",
        on_delete=models.PROTECT,
        related_name="transactions",
        verbose_name=_("program"),
    )

    transaction_type = models.CharField(
        _("type"),
        max_length=20,
        choices=TransactionType.choices,
    )
    points = models.IntegerField(
        _("points"),
        help_text=_("Positive for earned/refunded, negative for redeemed"),
    )
    balance_before = models.IntegerField(_("balance before"))
    balance_after = models.IntegerField(_("balance after"))

    description = models.TextField(_("description"))
    metadata = models.JSONField(_("metadata"), default=dict, blank=True)

    order_id = models.PositiveBigIntegerField(_("order"), null=True, blank=True)
    redemption = models.ForeignKey(
        "rewardman.Redemption",
        on_delete=models.SET_NULL,
        related_name="transactions",
        null=True,
        blank=True,
        verbose_name=_("redemption"),
    )

    created_at = models.DateTimeField(_("created at"), auto_now_add=True, db_index=True)

    class Meta:
        db_table = "rewardman_point_transaction"
        verbose_name = _("point transaction")
        verbose_name_plural = _("point transactions")
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["user_id", "merchant_id", "created_at"], name="rewardman_tx_user_merchant_idx"),
            models.Index(fields=["merchant_id", "transaction_type"], name="rewardman_tx_merchant_type_idx"),
        ]

    def __str__(self):
        sign = "+" if self.points > 0 else ""
        return f"{sign}{self.points}pts: {self.description}"
