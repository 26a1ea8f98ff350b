"""PointsEntry model: the append-only points ledger."""

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class EntryKind(models.TextChoices):
    """Ledger entry kinds."""

    EARNED = "earned", _("Earned")
    REDEEMED = "redeemed", _("Redeemed")
    EXPIRED = "expired", _("Expired")
    BONUS = "bonus", _("Bonus")
    ADJUSTMENT = "adjustment", _("Adjustment")


# Kinds that may carry an expiry date
GRANT_KINDS = (EntryKind.EARNED, EntryKind.BONUS)


class PointsEntry(models.Model):
    """
    Immutable record of a point movement.

    Entries are append-only: written by PointsLedger, never updated or
    deleted. The sum of a customer's entries equals Customer.points_balance.

    Ordered newest first; (created_at, id) gives the total order per
    customer.
    """

    customer = models.ForeignKey(
        "loyalman.Customer",
        on_delete=models.PROTECT,
        related_name="ledger_entries",
        verbose_name=_("customer"),
    )

    kind = models.CharField(
        _("kind"),
        max_length=20,
        choices=EntryKind.choices,
        db_index=True,
    )
    points = models.IntegerField(
        _("points"),
        help_text=_("Positive for earned/bonus, negative for redeemed/expired"),
    )
    balance_after = models.IntegerField(
        _("balance after"),
        help_text=_("Customer balance right after this entry"),
    )

    # Purchase link
    invoice_ref = models.CharField(_("invoice"), max_length=100, blank=True, db_index=True)
    invoice_amount = models.DecimalField(
        _("invoice amount"),
        max_digits=14,
        decimal_places=2,
        null=True,
        blank=True,
    )

    description = models.CharField(_("description"), max_length=200)

    # Expiry (earned/bonus only)
    expires_at = models.DateTimeField(_("expires at"), null=True, blank=True, db_index=True)
    source_entry = models.ForeignKey(
        "self",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="compensations",
        verbose_name=_("source entry"),
        help_text=_("Grant compensated by this expired entry"),
    )

    created_at = models.DateTimeField(_("created at"), default=timezone.now, db_index=True)
    created_by = models.CharField(_("created by"), max_length=100, blank=True)

    class Meta:
        verbose_name = _("points entry")
        verbose_name_plural = _("points entries")
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["customer", "-created_at"], name="loyalman_entry_cust_idx"),
            models.Index(fields=["kind", "expires_at"], name="loyalman_entry_expiry_idx"),
        ]

    def __str__(self):
        sign = "+" if self.points > 0 else ""
        return f"{sign}{self.points}pts: {self.description}"


class ExpiredGrant(models.Model):
    """
    Expiry checkpoint for a grant.

    Written by the expiry sweep for every aged grant it has handled,
    including grants that were fully spent and needed no expired entry,
    so later sweeps never revisit them. The ledger itself stays untouched.
    """

    grant = models.OneToOneField(
        "loyalman.PointsEntry",
        on_delete=models.PROTECT,
        primary_key=True,
        related_name="expiry",
        verbose_name=_("grant"),
    )
    points = models.PositiveIntegerField(
        _("points expired"),
        default=0,
        help_text=_("0 when the grant was spent before it expired"),
    )
    processed_at = models.DateTimeField(_("processed at"), default=timezone.now)

    class Meta:
        verbose_name = _("expired grant")
        verbose_name_plural = _("expired grants")

    def __str__(self):
        return f"grant #{self.grant_id}: -{self.points}pts"
