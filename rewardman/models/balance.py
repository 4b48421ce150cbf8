"""UserMerchantBalance model."""

from django.db import models
from django.utils.translation import gettext_lazy as _


class LoyaltyTier(models.TextChoices):
    """Balance tiers, classified from lifetime earned points."""

    BRONZE = "bronze", _("Bronze")
    SILVER = "silver", _("Silver")
    GOLD = "gold", _("Gold")
    PLATINUM = "platinum", _("Platinum")


class UserMerchantBalance(models.Model):
    """
    Points balance of a user at one merchant.

    Created lazily on first earn or balance lookup. Mutated only by
    LedgerService inside transaction.atomic() with the row locked
    (select_for_update), so every mutation has a matching PointTransaction.

    Invariants:
    - current_balance >= 0 (also a DB check constraint)
    - lifetime_earned never decreases
    - current_balance == sum(transactions.points)
    """

    user_id = models.PositiveBigIntegerField(_("user"))
    merchant_id = models.PositiveBigIntegerField(_("merchant"))
    program = models.ForeignKey(
        "rewardman.LoyaltyProgram",
        on_delete=models.PROTECT,
        related_name="balances",
        verbose_name=_("program"),
    )

    current_balance = models.IntegerField(_("current balance"), default=0)
    lifetime_earned = models.IntegerField(
        _("lifetime earned"),
        default=0,
        help_text=_("Total points ever earned (never decreases)"),
    )
    lifetime_redeemed = models.IntegerField(
        _("lifetime redeemed"),
        default=0,
        help_text=_("Points redeemed, net of cancelled redemptions"),
    )
    last_earned_at = models.DateTimeField(_("last earned at"), null=True, blank=True)
    last_redeemed_at = models.DateTimeField(_("last redeemed at"), null=True, blank=True)

    tier = models.CharField(
        _("tier"),
        max_length=20,
        choices=LoyaltyTier.choices,
        null=True,
        blank=True,
    )

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "rewardman_user_merchant_balance"
        verbose_name = _("points balance")
        verbose_name_plural = _("points balances")
        constraints = [
            models.UniqueConstraint(
                fields=["user_id", "merchant_id"],
                name="rewardman_unique_user_merchant_balance",
            ),
            models.CheckConstraint(
                condition=models.Q(current_balance__gte=0),
                name="rewardman_balance_non_negative",
            ),
        ]
        indexes = [
            models.Index(fields=["merchant_id", "current_balance"], name="rewardman_balance_merchant_idx"),
        ]

    def __str__(self):
        return f"user {self.user_id} @ merchant {self.merchant_id}: {self.current_balance}pts"
