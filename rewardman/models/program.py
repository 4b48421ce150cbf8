"""LoyaltyProgram model."""

from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _


class LoyaltyProgram(models.Model):
    """
    Loyalty program configuration for one merchant.

    One program per merchant. Programs are never deleted, only deactivated;
    balances and transactions keep pointing at the program that produced them.

    Default program: $5 spent = 2 points, 25 points = $5 discount.
    """

    merchant_id = models.PositiveBigIntegerField(
        _("merchant"),
        unique=True,
        help_text=_("Merchant identifier in the deals platform"),
    )

    # Earning
    points_per_dollar = models.DecimalField(
        _("points per dollar"),
        max_digits=8,
        decimal_places=4,
        default=Decimal("0.4"),
    )
    minimum_purchase = models.DecimalField(
        _("minimum purchase"),
        max_digits=10,
        decimal_places=2,
        default=Decimal("0.01"),
        help_text=_("Minimum order amount that earns points"),
    )
    earn_on_discounted = models.BooleanField(
        _("earn on discounted amount"),
        default=False,
        help_text=_("If off, points are earned on the original amount"),
    )

    # Redemption
    minimum_redemption = models.PositiveIntegerField(
        _("minimum redemption"),
        default=25,
        help_text=_("Points per redemption unit"),
    )
    redemption_value = models.DecimalField(
        _("redemption value"),
        max_digits=10,
        decimal_places=2,
        default=Decimal("5.00"),
        help_text=_("Discount granted per redemption unit"),
    )
    allow_combine_with_deals = models.BooleanField(
        _("combinable with deals"),
        default=True,
    )
    point_expiration_days = models.PositiveIntegerField(
        _("point expiration (days)"),
        null=True,
        blank=True,
    )

    is_active = models.BooleanField(_("active"), default=True)
    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        db_table = "rewardman_loyalty_program"
        verbose_name = _("loyalty program")
        verbose_name_plural = _("loyalty programs")
        indexes = [
            models.Index(fields=["merchant_id", "is_active"], name="rewardman_program_active_idx"),
        ]

    def __str__(self):
        status = "active" if self.is_active else "inactive"
        return f"merchant {self.merchant_id}: {self.points_per_dollar} pts/$ ({status})"

    def as_config(self) -> dict:
        """Program settings as a plain dict (for balance projections)."""
        return {
            "points_per_dollar": self.points_per_dollar,
            "minimum_purchase": self.minimum_purchase,
            "minimum_redemption": self.minimum_redemption,
            "redemption_value": self.redemption_value,
            "point_expiration_days": self.point_expiration_days,
            "allow_combine_with_deals": self.allow_combine_with_deals,
            "earn_on_discounted": self.earn_on_discounted,
        }
