"""Loyalman admin.

Loyalty state only changes through the services, so ledger entries and
redemption requests are read-only here.
"""

from django.contrib import admin
from django.urls import reverse
from django.utils.html import format_html

from loyalman.models import (
    Customer,
    LoyaltyProgram,
    PointsEntry,
    RedemptionRequest,
    Reward,
)

TIER_COLORS = {
    "bronze": "#cd7f32",
    "silver": "#c0c0c0",
    "gold": "#ffd700",
    "platinum": "#e5e4e2",
}


def signed_points(points):
    if points > 0:
        return format_html('<span style="color:green">+{}</span>', points)
    return format_html('<span style="color:red">{}</span>', points)


class ReadOnlyMixin:
    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ===========================================
# LoyaltyProgram Admin
# ===========================================


@admin.register(LoyaltyProgram)
class LoyaltyProgramAdmin(admin.ModelAdmin):
    list_display = [
        "code",
        "name",
        "is_enabled",
        "earning_rate",
        "redemption_rate",
        "points_expiry_days",
        "customer_count",
    ]
    list_filter = ["is_enabled"]
    search_fields = ["code", "name"]
    readonly_fields = ["created_at", "updated_at"]

    def customer_count(self, obj):
        return obj.customers.count()

    customer_count.short_description = "Customers"


# ===========================================
# Inline Classes (must be defined before CustomerAdmin)
# ===========================================


class PointsEntryInline(admin.TabularInline):
    model = PointsEntry
    fk_name = "customer"
    extra = 0
    fields = ["created_at", "kind", "points", "balance_after", "description", "created_by"]
    readonly_fields = fields
    ordering = ["-created_at", "-id"]
    verbose_name_plural = "Ledger"

    def has_add_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ===========================================
# Customer Admin
# ===========================================


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = [
        "code",
        "name",
        "program",
        "tier_badge",
        "points_balance",
        "total_spent",
        "total_visits",
        "is_active",
    ]
    list_filter = ["program", "tier", "is_active"]
    search_fields = ["code", "first_name", "last_name", "email", "phone"]
    readonly_fields = [
        "uuid",
        "tier",
        "points_balance",
        "total_points_earned",
        "total_points_redeemed",
        "total_spent",
        "total_visits",
        "last_visit_at",
        "created_at",
        "updated_at",
    ]
    inlines = [PointsEntryInline]

    fieldsets = [
        (
            "Identification",
            {"fields": ["program", "code", "uuid", "first_name", "last_name", "birth_date"]},
        ),
        ("Contact", {"fields": ["email", "phone"]}),
        (
            "Loyalty",
            {
                "fields": [
                    "tier",
                    "points_balance",
                    "total_points_earned",
                    "total_points_redeemed",
                    "total_spent",
                    "total_visits",
                    "last_visit_at",
                ]
            },
        ),
        (
            "System",
            {
                "fields": ["is_active", "metadata", "created_at", "updated_at"],
                "classes": ["collapse"],
            },
        ),
    ]

    def tier_badge(self, obj):
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
# PointsEntry Admin
# ===========================================


@admin.register(PointsEntry)
class PointsEntryAdmin(ReadOnlyMixin, admin.ModelAdmin):
    list_display = [
        "created_at",
        "customer_link",
        "kind",
        "points_display",
        "balance_after",
        "description",
        "created_by",
    ]
    list_filter = ["kind", "customer__program"]
    search_fields = ["customer__code", "description", "invoice_ref"]
    date_hierarchy = "created_at"

    def customer_link(self, obj):
        url = reverse("admin:loyalman_customer_change", args=[obj.customer.pk])
        return format_html('<a href="{}">{}</a>', url, obj.customer.code)

    customer_link.short_description = "Customer"

    def points_display(self, obj):
        return signed_points(obj.points)

    points_display.short_description = "Points"


# ===========================================
# Reward Admin
# ===========================================


@admin.register(Reward)
class RewardAdmin(admin.ModelAdmin):
    list_display = [
        "code",
        "title",
        "program",
        "reward_type",
        "points_cost",
        "usage_display",
        "valid_until",
        "is_active",
    ]
    list_filter = ["program", "reward_type", "is_active"]
    search_fields = ["code", "title"]
    readonly_fields = ["usage_count", "created_at"]

    def usage_display(self, obj):
        if obj.usage_limit is None:
            return f"{obj.usage_count}"
        return f"{obj.usage_count}/{obj.usage_limit}"

    usage_display.short_description = "Usage"


# ===========================================
# RedemptionRequest Admin
# ===========================================


@admin.register(RedemptionRequest)
class RedemptionRequestAdmin(ReadOnlyMixin, admin.ModelAdmin):
    list_display = [
        "id",
        "created_at",
        "customer",
        "redemption_type",
        "points",
        "cash_value",
        "status",
        "approved_by",
    ]
    list_filter = ["status", "redemption_type", "program"]
    search_fields = ["customer__code", "invoice_ref", "approved_by"]
    date_hierarchy = "created_at"
