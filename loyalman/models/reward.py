"""Reward model: catalog items redeemable for points."""

from datetime import datetime

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _


class RewardType(models.TextChoices):
    """Effect applied when a reward is redeemed."""

    DISCOUNT_PERCENTAGE = "discount_percentage", _("Percentage discount")
    DISCOUNT_FIXED = "discount_fixed", _("Fixed discount")
    FREE_PRODUCT = "free_product", _("Free product")
    CASHBACK = "cashback", _("Cashback")


def all_tiers() -> list[str]:
    from loyalman.models.program import LoyaltyTier

    return list(LoyaltyTier.values)


class Reward(models.Model):
    """
    Promotional reward redeemable for points.

    usage_count never exceeds usage_limit: RedemptionWorkflow increments it
    with a guarded UPDATE under a row lock.
    """

    program = models.ForeignKey(
        "loyalman.LoyaltyProgram",
        on_delete=models.PROTECT,
        related_name="rewards",
        verbose_name=_("program"),
    )
    code = models.CharField(_("code"), max_length=50)

    title = models.CharField(_("title"), max_length=200)
    description = models.TextField(_("description"), blank=True)

    points_cost = models.PositiveIntegerField(_("points cost"))
    reward_type = models.CharField(
        _("type"),
        max_length=30,
        choices=RewardType.choices,
    )
    value = models.DecimalField(
        _("value"),
        max_digits=12,
        decimal_places=2,
        help_text=_("Percentage, fixed amount, or product value"),
    )
    product_ref = models.CharField(
        _("product"),
        max_length=100,
        blank=True,
        help_text=_("SKU for free_product rewards"),
    )

    applicable_tiers = models.JSONField(
        _("applicable tiers"),
        default=all_tiers,
    )

    # Availability
    is_active = models.BooleanField(_("active"), default=True, db_index=True)
    valid_from = models.DateTimeField(_("valid from"), default=timezone.now)
    valid_until = models.DateTimeField(_("valid until"), null=True, blank=True)
    usage_limit = models.PositiveIntegerField(
        _("usage limit"),
        null=True,
        blank=True,
        help_text=_("Empty means unlimited"),
    )
    usage_count = models.PositiveIntegerField(_("usage count"), default=0)

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)

    class Meta:
        verbose_name = _("reward")
        verbose_name_plural = _("rewards")
        ordering = ["points_cost", "title"]
        constraints = [
            models.UniqueConstraint(
                fields=["program", "code"],
                name="loyalman_unique_reward_code",
            ),
        ]

    def __str__(self):
        return f"{self.title} ({self.points_cost}pts)"

    @property
    def remaining_uses(self) -> int | None:
        """Uses left before the limit, None when unlimited."""
        if self.usage_limit is None:
            return None
        return max(0, self.usage_limit - self.usage_count)

    def is_within_window(self, now: datetime) -> bool:
        if now < self.valid_from:
            return False
        return self.valid_until is None or now <= self.valid_until
