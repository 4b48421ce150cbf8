"""Rewardman admin.

Ledger rows are read-only here: balances and transactions only change
through LedgerService, so add/delete is disabled everywhere except programs.
"""

from django.contrib import admin
from django.utils.html import format_html

from rewardman.models import (
    LoyaltyProgram,
    PointTransaction,
    Redemption,
    UserMerchantBalance,
)


TIER_COLORS = {
    "bronze": "#cd7f32",
    "silver": "#c0c0c0",
    "gold": "#ffd700",
    "platinum": "#e5e4e2",
}


def _points_html(points):
    if points > 0:
        return format_html('<span style="color:green">+{}</span>', points)
    return format_html('<span style="color:red">{}</span>', points)


# ===========================================
# LoyaltyProgram Admin
# ===========================================


@admin.register(LoyaltyProgram)
class LoyaltyProgramAdmin(admin.ModelAdmin):
    list_display = [
        "merchant_id",
        "points_per_dollar",
        "minimum_redemption",
        "redemption_value",
        "is_active",
        "balance_count",
        "updated_at",
    ]
    list_filter = ["is_active", "allow_combine_with_deals", "earn_on_discounted"]
    search_fields = ["merchant_id"]
    readonly_fields = ["created_at", "updated_at"]

    def has_delete_permission(self, request, obj=None):
        return False

    def balance_count(self, obj):
        return obj.balances.count()

    balance_count.short_description = "Balances"


# ===========================================
# Inline Classes
# ===========================================


class PointTransactionInline(admin.TabularInline):
    model = PointTransaction
    extra = 0
    fields = ["created_at", "transaction_type", "points", "balance_before", "balance_after", "description"]
    readonly_fields = fields
    ordering = ["-created_at", "-id"]
    max_num = 20

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ===========================================
# UserMerchantBalance Admin
# ===========================================


@admin.register(UserMerchantBalance)
class UserMerchantBalanceAdmin(admin.ModelAdmin):
    list_display = [
        "user_id",
        "merchant_id",
        "current_balance",
        "lifetime_earned",
        "lifetime_redeemed",
        "tier_badge",
        "last_earned_at",
    ]
    list_filter = ["tier"]
    search_fields = ["user_id", "merchant_id"]
    readonly_fields = [
        "user_id",
        "merchant_id",
        "program",
        "current_balance",
        "lifetime_earned",
        "lifetime_redeemed",
        "last_earned_at",
        "last_redeemed_at",
        "tier",
        "created_at",
        "updated_at",
    ]
    inlines = [PointTransactionInline]

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def tier_badge(self, obj):
        if not obj.tier:
            return "-"
        color = TIER_COLORS.get(obj.tier, "#6c757d")
        text_color = "#000" if obj.tier in ("gold", "silver", "platinum") else "#fff"
        return format_html(
            '<span style="background:{}; color:{}; padding:2px 8px; '
            'border-radius:3px; font-size:11px;">{}</span>',
            color,
            text_color,
            obj.get_tier_display(),
        )

    tier_badge.short_description = "Tier"


# ===========================================
# PointTransaction Admin
# ===========================================


@admin.register(PointTransaction)
class PointTransactionAdmin(admin.ModelAdmin):
    list_display = [
        "created_at",
        "user_id",
        "merchant_id",
        "transaction_type",
        "points_display",
        "balance_after",
        "description",
    ]
    list_filter = ["transaction_type"]
    search_fields = ["user_id", "merchant_id", "order_id", "description"]
    readonly_fields = [
        "balance",
        "user_id",
        "merchant_id",
        "program",
        "transaction_type",
        "points",
        "balance_before",
        "balance_after",
        "description",
        "metadata",
        "order_id",
        "redemption",
        "created_at",
    ]
    date_hierarchy = "created_at"

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    def points_display(self, obj):
        return _points_html(obj.points)

    points_display.short_description = "Points"


# ===========================================
# Redemption Admin
# ===========================================


@admin.register(Redemption)
class RedemptionAdmin(admin.ModelAdmin):
    list_display = [
        "redeemed_at",
        "user_id",
        "merchant_id",
        "points_used",
        "discount_value",
        "order_id",
        "status",
    ]
    list_filter = ["status"]
    search_fields = ["user_id", "merchant_id", "order_id"]
    readonly_fields = [
        "user_id",
        "merchant_id",
        "program",
        "balance",
        "points_used",
        "discount_value",
        "order_id",
        "status",
        "redeemed_at",
        "applied_at",
        "cancelled_at",
        "cancellation_reason",
        "metadata",
    ]
    date_hierarchy = "redeemed_at"

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
