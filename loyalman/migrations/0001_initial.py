# Generated migration for the loyalty engine models

import uuid
from decimal import Decimal

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models

import loyalman.models.program
import loyalman.models.reward


TIER_CHOICES = [
    ("bronze", "Bronze"),
    ("silver", "Silver"),
    ("gold", "Gold"),
    ("platinum", "Platinum"),
]


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="LoyaltyProgram",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "code",
                    models.SlugField(
                        help_text="Tenant identifier (ex: store-01)",
                        unique=True,
                        verbose_name="code",
                    ),
                ),
                ("name", models.CharField(blank=True, max_length=100, verbose_name="name")),
                ("is_enabled", models.BooleanField(default=True, verbose_name="enabled")),
                (
                    "earning_rate",
                    models.DecimalField(
                        decimal_places=4,
                        default=Decimal("1"),
                        help_text="Points earned per currency unit spent",
                        max_digits=10,
                        verbose_name="earning rate",
                    ),
                ),
                (
                    "redemption_rate",
                    models.DecimalField(
                        decimal_places=4,
                        default=Decimal("1"),
                        help_text="Currency value of one point when redeemed",
                        max_digits=10,
                        verbose_name="redemption rate",
                    ),
                ),
                (
                    "minimum_points_to_redeem",
                    models.PositiveIntegerField(default=100, verbose_name="minimum points to redeem"),
                ),
                (
                    "maximum_redemption_percentage",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("50"),
                        help_text="Maximum share of a bill payable with points (0-100)",
                        max_digits=5,
                        verbose_name="maximum redemption percentage",
                    ),
                ),
                (
                    "points_expiry_days",
                    models.PositiveIntegerField(
                        default=365,
                        help_text="0 means points never expire",
                        verbose_name="points expiry (days)",
                    ),
                ),
                (
                    "welcome_bonus_points",
                    models.PositiveIntegerField(default=100, verbose_name="welcome bonus points"),
                ),
                (
                    "tier_thresholds",
                    models.JSONField(
                        default=loyalman.models.program.default_tier_thresholds,
                        verbose_name="tier thresholds",
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
            ],
            options={
                "verbose_name": "loyalty program",
                "verbose_name_plural": "loyalty programs",
                "ordering": ["code"],
            },
        ),
        migrations.CreateModel(
            name="Customer",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "code",
                    models.CharField(
                        help_text="Customer code, unique per program (ex: CUST-001)",
                        max_length=50,
                        verbose_name="code",
                    ),
                ),
                ("uuid", models.UUIDField(default=uuid.uuid4, editable=False, unique=True)),
                ("first_name", models.CharField(max_length=100, verbose_name="first name")),
                ("last_name", models.CharField(blank=True, max_length=100, verbose_name="last name")),
                ("email", models.EmailField(blank=True, max_length=254, verbose_name="email")),
                ("phone", models.CharField(blank=True, db_index=True, max_length=30, verbose_name="phone")),
                ("birth_date", models.DateField(blank=True, null=True, verbose_name="birth date")),
                (
                    "total_spent",
                    models.DecimalField(
                        decimal_places=2,
                        default=Decimal("0"),
                        help_text="Lifetime spend (never decreases)",
                        max_digits=14,
                        verbose_name="total spent",
                    ),
                ),
                ("total_visits", models.PositiveIntegerField(default=0, verbose_name="total visits")),
                ("last_visit_at", models.DateTimeField(blank=True, null=True, verbose_name="last visit")),
                (
                    "tier",
                    models.CharField(
                        choices=TIER_CHOICES,
                        db_index=True,
                        default="bronze",
                        max_length=20,
                        verbose_name="tier",
                    ),
                ),
                (
                    "points_balance",
                    models.IntegerField(
                        default=0,
                        help_text="Cached sum of ledger entries",
                        verbose_name="points balance",
                    ),
                ),
                ("total_points_earned", models.PositiveIntegerField(default=0, verbose_name="points earned")),
                ("total_points_redeemed", models.PositiveIntegerField(default=0, verbose_name="points redeemed")),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                ("metadata", models.JSONField(blank=True, default=dict, verbose_name="metadata")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True, verbose_name="joined at")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="updated at")),
                (
                    "program",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="customers",
                        to="loyalman.loyaltyprogram",
                        verbose_name="program",
                    ),
                ),
            ],
            options={
                "verbose_name": "customer",
                "verbose_name_plural": "customers",
                "ordering": ["first_name", "last_name"],
                "indexes": [
                    models.Index(fields=["program", "-total_spent"], name="loyalman_cust_spent_idx"),
                ],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("program", "code"),
                        name="loyalman_unique_customer_code",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="PointsEntry",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("earned", "Earned"),
                            ("redeemed", "Redeemed"),
                            ("expired", "Expired"),
                            ("bonus", "Bonus"),
                            ("adjustment", "Adjustment"),
                        ],
                        db_index=True,
                        max_length=20,
                        verbose_name="kind",
                    ),
                ),
                (
                    "points",
                    models.IntegerField(
                        help_text="Positive for earned/bonus, negative for redeemed/expired",
                        verbose_name="points",
                    ),
                ),
                (
                    "balance_after",
                    models.IntegerField(
                        help_text="Customer balance right after this entry",
                        verbose_name="balance after",
                    ),
                ),
                ("invoice_ref", models.CharField(blank=True, db_index=True, max_length=100, verbose_name="invoice")),
                (
                    "invoice_amount",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        max_digits=14,
                        null=True,
                        verbose_name="invoice amount",
                    ),
                ),
                ("description", models.CharField(max_length=200, verbose_name="description")),
                (
                    "expires_at",
                    models.DateTimeField(blank=True, db_index=True, null=True, verbose_name="expires at"),
                ),
                (
                    "created_at",
                    models.DateTimeField(
                        db_index=True,
                        default=django.utils.timezone.now,
                        verbose_name="created at",
                    ),
                ),
                ("created_by", models.CharField(blank=True, max_length=100, verbose_name="created by")),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="ledger_entries",
                        to="loyalman.customer",
                        verbose_name="customer",
                    ),
                ),
                (
                    "source_entry",
                    models.ForeignKey(
                        blank=True,
                        help_text="Grant compensated by this expired entry",
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="compensations",
                        to="loyalman.pointsentry",
                        verbose_name="source entry",
                    ),
                ),
            ],
            options={
                "verbose_name": "points entry",
                "verbose_name_plural": "points entries",
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["customer", "-created_at"], name="loyalman_entry_cust_idx"),
                    models.Index(fields=["kind", "expires_at"], name="loyalman_entry_expiry_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="Reward",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=50, verbose_name="code")),
                ("title", models.CharField(max_length=200, verbose_name="title")),
                ("description", models.TextField(blank=True, verbose_name="description")),
                ("points_cost", models.PositiveIntegerField(verbose_name="points cost")),
                (
                    "reward_type",
                    models.CharField(
                        choices=[
                            ("discount_percentage", "Percentage discount"),
                            ("discount_fixed", "Fixed discount"),
                            ("free_product", "Free product"),
                            ("cashback", "Cashback"),
                        ],
                        max_length=30,
                        verbose_name="type",
                    ),
                ),
                (
                    "value",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Percentage, fixed amount, or product value",
                        max_digits=12,
                        verbose_name="value",
                    ),
                ),
                (
                    "product_ref",
                    models.CharField(
                        blank=True,
                        help_text="SKU for free_product rewards",
                        max_length=100,
                        verbose_name="product",
                    ),
                ),
                (
                    "applicable_tiers",
                    models.JSONField(
                        default=loyalman.models.reward.all_tiers,
                        verbose_name="applicable tiers",
                    ),
                ),
                ("is_active", models.BooleanField(db_index=True, default=True, verbose_name="active")),
                (
                    "valid_from",
                    models.DateTimeField(default=django.utils.timezone.now, verbose_name="valid from"),
                ),
                ("valid_until", models.DateTimeField(blank=True, null=True, verbose_name="valid until")),
                (
                    "usage_limit",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Empty means unlimited",
                        null=True,
                        verbose_name="usage limit",
                    ),
                ),
                ("usage_count", models.PositiveIntegerField(default=0, verbose_name="usage count")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="created at")),
                (
                    "program",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="rewards",
                        to="loyalman.loyaltyprogram",
                        verbose_name="program",
                    ),
                ),
            ],
            options={
                "verbose_name": "reward",
                "verbose_name_plural": "rewards",
                "ordering": ["points_cost", "title"],
                "constraints": [
                    models.UniqueConstraint(
                        fields=("program", "code"),
                        name="loyalman_unique_reward_code",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="RedemptionRequest",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("points", models.PositiveIntegerField(verbose_name="points")),
                ("cash_value", models.DecimalField(decimal_places=2, max_digits=14, verbose_name="cash value")),
                (
                    "redemption_type",
                    models.CharField(
                        choices=[
                            ("cash_discount", "Cash discount"),
                            ("reward_redemption", "Reward redemption"),
                        ],
                        default="cash_discount",
                        max_length=30,
                        verbose_name="type",
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("approved", "Approved"),
                            ("redeemed", "Redeemed"),
                            ("cancelled", "Cancelled"),
                        ],
                        db_index=True,
                        default="pending",
                        max_length=20,
                        verbose_name="status",
                    ),
                ),
                ("invoice_ref", models.CharField(blank=True, max_length=100, verbose_name="invoice")),
                (
                    "created_at",
                    models.DateTimeField(
                        db_index=True,
                        default=django.utils.timezone.now,
                        verbose_name="created at",
                    ),
                ),
                ("approved_at", models.DateTimeField(blank=True, null=True, verbose_name="approved at")),
                ("approved_by", models.CharField(blank=True, max_length=100, verbose_name="approved by")),
                ("cancelled_at", models.DateTimeField(blank=True, null=True, verbose_name="cancelled at")),
                ("cancelled_by", models.CharField(blank=True, max_length=100, verbose_name="cancelled by")),
                (
                    "customer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemption_requests",
                        to="loyalman.customer",
                        verbose_name="customer",
                    ),
                ),
                (
                    "ledger_entry",
                    models.OneToOneField(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemption_request",
                        to="loyalman.pointsentry",
                        verbose_name="ledger entry",
                    ),
                ),
                (
                    "program",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemption_requests",
                        to="loyalman.loyaltyprogram",
                        verbose_name="program",
                    ),
                ),
                (
                    "reward",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="redemption_requests",
                        to="loyalman.reward",
                        verbose_name="reward",
                    ),
                ),
            ],
            options={
                "verbose_name": "redemption request",
                "verbose_name_plural": "redemption requests",
                "ordering": ["-created_at", "-id"],
            },
        ),
    ]
