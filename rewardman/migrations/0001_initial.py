# Generated migration for the loyalty ledger

from decimal import Decimal

import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="LoyaltyProgram",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                (
                    "merchant_id",
                    models.PositiveBigIntegerField(
                        help_text="Merchant identifier in the deals platform",
                        unique=True,
                        verbose_name="merchant",
                    ),
                ),
                (
                    "points_per_dollar",
                    models.DecimalField(
                        decimal_places=4,
                        default=Decimal("0.4"),
                        max_digits=8,
                        verbose_name="points per dollar",
                    ),
                ),
                (
                    "minimum_purchase",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0.01"),
                        help_text="Minimum order amount that earns points",
                        max_digits=10,
                        verbose_name="minimum purchase",
                    ),
                ),
                (
                    "earn_on_discounted",
                    models.BooleanField(
                        default=False,
                        help_text="If off, points are earned on the original amount",
                        verbose_name="earn on discounted amount",
                    ),
                ),
                (
                    "minimum_redemption",
                    models.PositiveIntegerField(
                        default=25,
                        help_text="Points per redemption unit",
                        verbose_name="minimum redemption",
                    ),
                ),
                (
                    "redemption_value",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("5.00"),
                        help_text="Discount granted per redemption unit",
                        max_digits=10,
                        verbose_name="redemption value",
                    ),
                ),
                (
                    "allow_combine_with_deals",
                    models.BooleanField(default=True, verbose_name="combinable with deals"),
                ),
                (
                    "point_expiration_days",
                    models.PositiveIntegerField(
                        blank=True,
                        null=True,
                        verbose_name="point expiration (days)",
                    ),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="active")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "loyalty program",
                "verbose_name_plural": "loyalty programs",
                "db_table": "rewardman_loyalty_program",
                "indexes": [
                    models.Index(
                        fields=["merchant_id", "is_active"],
                        name="rewardman_program_active_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="UserMerchantBalance",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("user_id", models.PositiveBigIntegerField(verbose_name="user")),
                ("merchant_id", models.PositiveBigIntegerField(verbose_name="merchant")),
                ("current_balance", models.IntegerField(default=0, verbose_name="current balance")),
                (
                    "lifetime_earned",
                    models.IntegerField(
                        default=0,
                        help_text="Total points ever earned (never decreases)",
                        verbose_name="lifetime earned",
                    ),
                ),
                (
                    "lifetime_redeemed",
                    models.IntegerField(
                        default=0,
                        help_text="Points redeemed, net of cancelled redemptions",
                        verbose_name="lifetime redeemed",
                    ),
                ),
                (
                    "last_earned_at",
                    models.DateTimeField(blank=True, null=True, verbose_name="last earned at"),
                ),
                (
                    "last_redeemed_at",
                    models.DateTimeField(blank=True, null=True, verbose_name="last redeemed at"),
                ),
                (
                    "tier",
                    models.CharField(
                        blank=True,
                        choices=[
                            ("bronze", "Bronze"),
                            ("silver", "Silver"),
                            ("gold", "Gold"),
                            ("platinum", "Platinum"),
                        ],
                        max_length=20,
                        null=True,
                        verbose_name="tier",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                (
                    "program",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="balances",
                        to="rewardman.loyaltyprogram",
                        verbose_name="program",
                    ),
                ),
            ],
            options={
                "verbose_name": "points balance",
                "verbose_name_plural": "points balances",
                "db_table": "rewardman_user_merchant_balance",
                "indexes": [
                    models.Index(
                        fields=["merchant_id", "current_balance"],
                        name="rewardman_balance_merchant_idx",
                    ),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("user_id", "merchant_id"),
                        name="rewardman_unique_user_merchant_balance",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(current_balance__gte=0),
                        name="rewardman_balance_non_negative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="Redemption",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("user_id", models.PositiveBigIntegerField(verbose_name="user")),
                ("merchant_id", models.PositiveBigIntegerField(verbose_name="merchant")),
                ("points_used", models.PositiveIntegerField(verbose_name="points used")),
                (
                    "discount_value",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=10,
                        verbose_name="discount value",
                    ),
                ),
                (
                    "order_id",
                    models.PositiveBigIntegerField(blank=True, null=True, verbose_name="order"),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("applied", "Applied"),
                            ("cancelled", "Cancelled"),
                        ],
                        default="pending",
                        max_length=20,
                        verbose_name="status",
                    ),
                ),
                (
                    "redeemed_at",
                    models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="redeemed at"),
                ),
                ("applied_at", models.DateTimeField(blank=True, null=True, verbose_name="applied at")),
                (
                    "cancelled_at",
                    models.DateTimeField(blank=True, null=True, verbose_name="cancelled at"),
                ),
                (
                    "cancellation_reason",
                    models.TextField(blank=True, verbose_name="cancellation reason"),
                ),
                ("metadata", models.JSONField(blank=True, default=dict, verbose_name="metadata")),
                (
                    "balance",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemptions",
                        to="rewardman.usermerchantbalance",
                        verbose_name="balance",
                    ),
                ),
                (
                    "program",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemptions",
                        to="rewardman.loyaltyprogram",
                        verbose_name="program",
                    ),
                ),
            ],
            options={
                "verbose_name": "redemption",
                "verbose_name_plural": "redemptions",
                "db_table": "rewardman_redemption",
                "ordering": ["-redeemed_at", "-id"],
                "indexes": [
                    models.Index(
                        fields=["user_id", "merchant_id", "redeemed_at"],
                        name="rewardman_redemption_user_idx",
                    ),
                    models.Index(
                        fields=["merchant_id", "status"],
                        name="rewardman_redeem_status_idx",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PointTransaction",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True,
                        primary_key=True,
                        serialize=False,
                        verbose_name="ID",
                    ),
                ),
                ("user_id", models.PositiveBigIntegerField(verbose_name="user")),
                ("merchant_id", models.PositiveBigIntegerField(verbose_name="merchant")),
                (
                    "transaction_type",
                    models.CharField(
                        choices=[
                            ("earned", "Earned"),
                            ("redeemed", "Redeemed"),
                            ("refunded", "Refunded"),
                        ],
                        max_length=20,
                        verbose_name="type",
                    ),
                ),
                (
                    "points",
                    models.IntegerField(
                        help_text="Positive for earned/refunded, negative for redeemed",
                        verbose_name="points",
                    ),
                ),
                ("balance_before", models.IntegerField(verbose_name="balance before")),
                ("balance_after", models.IntegerField(verbose_name="balance after")),
                ("description", models.TextField(verbose_name="description")),
                ("metadata", models.JSONField(blank=True, default=dict, verbose_name="metadata")),
                (
                    "order_id",
                    models.PositiveBigIntegerField(blank=True, null=True, verbose_name="order"),
                ),
                (
                    "created_at",
                    models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="created at"),
                ),
                (
                    "balance",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="rewardman.usermerchantbalance",
                        verbose_name="balance",
                    ),
                ),
                (
                    "program",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="transactions",
                        to="rewardman.loyaltyprogram",
                        verbose_name="program",
                    ),
                ),
                (
                    "redemption",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="transactions",
                        to="rewardman.redemption",
                        verbose_name="redemption",
                    ),
                ),
            ],
            options={
                "verbose_name": "point transaction",
                "verbose_name_plural": "point transactions",
                "db_table": "rewardman_point_transaction",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(
                        fields=["user_id", "merchant_id", "created_at"],
                        name="rewardman_tx_user_merchant_idx",
                    ),
                    models.Index(
                        fields=["merchant_id", "transaction_type"],
                        name="rewardman_tx_merchant_type_idx",
                    ),
                ],
            },
        ),
    ]
