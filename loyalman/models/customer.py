"""Customer model.

Data architecture:
    PointsEntry
        Source of truth for points. Append-only, one row per point movement.

    Customer.points_balance
        Cached sum of the customer's PointsEntry.points. Only PointsLedger
        writes it, in the same transaction as the entry, with the customer
        row locked. total_points_earned / total_points_redeemed follow the
        same rule.

    Customer.tier
        Cached result of tier_for(total_spent). Recomputed on every purchase.
"""

import uuid as uuid_lib
from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _

from loyalman.models.program import LoyaltyTier


class Customer(models.Model):
    """
    Loyalty program member.

    Created on enrollment, never deleted (deactivate instead). Loyalty
    counters are mutated only through the ledger.
    """

    program = models.ForeignKey(
        "loyalman.LoyaltyProgram",
        on_delete=models.PROTECT,
        related_name="customers",
        verbose_name=_("program"),
    )

    # Identification
    code = models.CharField(
        _("code"),
        max_length=50,
        help_text=_("Customer code, unique per program (ex: CUST-001)"),
    )
    uuid = models.UUIDField(default=uuid_lib.uuid4, editable=False, unique=True)

    # Profile
    first_name = models.CharField(_("first name"), max_length=100)
    last_name = models.CharField(_("last name"), max_length=100, blank=True)
    email = models.EmailField(_("email"), blank=True)
    phone = models.CharField(_("phone"), max_length=30, blank=True, db_index=True)
    birth_date = models.DateField(_("birth date"), null=True, blank=True)

    # Spend / visits
    total_spent = models.DecimalField(
        _("total spent"),
        max_digits=14,
        decimal_places=2,
        default=Decimal("0"),
        help_text=_("Lifetime spend (never decreases)"),
    )
    total_visits = models.PositiveIntegerField(_("total visits"), default=0)
    last_visit_at = models.DateTimeField(_("last visit"), null=True, blank=True)

    # Loyalty (ledger-driven)
    tier = models.CharField(
        _("tier"),
        max_length=20,
        choices=LoyaltyTier.choices,
        default=LoyaltyTier.BRONZE,
        db_index=True,
    )
    points_balance = models.IntegerField(
        _("points balance"),
        default=0,
        help_text=_("Cached sum of ledger entries"),
    )
    total_points_earned = models.PositiveIntegerField(_("points earned"), default=0)
    total_points_redeemed = models.PositiveIntegerField(_("points redeemed"), default=0)

    # Status
    is_active = models.BooleanField(_("active"), default=True, db_index=True)

    # Extension point
    metadata = models.JSONField(_("metadata"), default=dict, blank=True)

    # Audit
    created_at = models.DateTimeField(_("joined at"), auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("customer")
        verbose_name_plural = _("customers")
        ordering = ["first_name", "last_name"]
        constraints = [
            models.UniqueConstraint(
                fields=["program", "code"],
                name="loyalman_unique_customer_code",
            ),
        ]
        indexes = [
            models.Index(fields=["program", "-total_spent"], name="loyalman_cust_spent_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.code})"

    @property
    def name(self) -> str:
        """Full name (first + last)."""
        return f"{self.first_name} {self.last_name}".strip()
