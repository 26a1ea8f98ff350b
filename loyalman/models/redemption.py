"""RedemptionRequest model: two-phase point redemption."""

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class RedemptionType(models.TextChoices):
    CASH_DISCOUNT = "cash_discount", _("Cash discount")
    REWARD_REDEMPTION = "reward_redemption", _("Reward redemption")


class RedemptionStatus(models.TextChoices):
    """
    Request lifecycle: pending -> approved | cancelled.

    Approval deducts the points, so it is the terminal success state.
    REDEEMED is kept for stored data compatibility and is never assigned.
    """

    PENDING = "pending", _("Pending")
    APPROVED = "approved", _("Approved")
    REDEEMED = "redeemed", _("Redeemed")
    CANCELLED = "cancelled", _("Cancelled")


class RedemptionRequest(models.Model):
    """
    Request to convert points into a discount or a catalog reward.

    Points are not reserved while pending; the balance is checked again at
    approval, which is where the deduction happens.
    """

    program = models.ForeignKey(
        "loyalman.LoyaltyProgram",
        on_delete=models.PROTECT,
        related_name="redemption_requests",
        verbose_name=_("program"),
    )
    customer = models.ForeignKey(
        "loyalman.Customer",
        on_delete=models.PROTECT,
        related_name="redemption_requests",
        verbose_name=_("customer"),
    )
    reward = models.ForeignKey(
        "loyalman.Reward",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="redemption_requests",
        verbose_name=_("reward"),
    )

    points = models.PositiveIntegerField(_("points"))
    cash_value = models.DecimalField(_("cash value"), max_digits=14, decimal_places=2)
    redemption_type = models.CharField(
        _("type"),
        max_length=30,
        choices=RedemptionType.choices,
        default=RedemptionType.CASH_DISCOUNT,
    )
    status = models.CharField(
        _("status"),
        max_length=20,
        choices=RedemptionStatus.choices,
        default=RedemptionStatus.PENDING,
        db_index=True,
    )
    invoice_ref = models.CharField(_("invoice"), max_length=100, blank=True)

    ledger_entry = models.OneToOneField(
        "loyalman.PointsEntry",
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="redemption_request",
        verbose_name=_("ledger entry"),
    )

    created_at = models.DateTimeField(_("created at"), default=timezone.now, db_index=True)
    approved_at = models.DateTimeField(_("approved at"), null=True, blank=True)
    approved_by = models.CharField(_("approved by"), max_length=100, blank=True)
    cancelled_at = models.DateTimeField(_("cancelled at"), null=True, blank=True)
    cancelled_by = models.CharField(_("cancelled by"), max_length=100, blank=True)

    class Meta:
        verbose_name = _("redemption request")
        verbose_name_plural = _("redemption requests")
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"#{self.pk} {self.customer_id}: {self.points}pts [{self.status}]"

    @property
    def is_pending(self) -> bool:
        return self.status == RedemptionStatus.PENDING
