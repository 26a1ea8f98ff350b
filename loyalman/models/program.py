"""LoyaltyProgram model (one per tenant) and tier choices."""

from decimal import Decimal

from django.db import models
from django.utils.translation import gettext_lazy as _


class LoyaltyTier(models.TextChoices):
    """Customer loyalty tiers, declared lowest to highest."""

    BRONZE = "bronze", _("Bronze")
    SILVER = "silver", _("Silver")
    GOLD = "gold", _("Gold")
    PLATINUM = "platinum", _("Platinum")

    @classmethod
    def rank(cls, tier: str) -> int:
        """Position of tier in the ladder (bronze=0)."""
        return cls.values.index(tier)


def default_tier_thresholds() -> dict:
    from loyalman.conf import DEFAULT_TIER_THRESHOLDS

    return {tier: dict(rule) for tier, rule in DEFAULT_TIER_THRESHOLDS.items()}


class LoyaltyProgram(models.Model):
    """
    Loyalty configuration for one tenant.

    Every customer, reward and redemption request belongs to exactly one
    program. Read through ConfigStore, which returns an immutable
    LoyaltyConfig snapshot and validates every update.

    tier_thresholds layout (decimals stored as strings):
        {"bronze": {"min_spent": "0", "multiplier": "1.0"}, ...}
    """

    code = models.SlugField(
        _("code"),
        max_length=50,
        unique=True,
        help_text=_("Tenant identifier (ex: store-01)"),
    )
    name = models.CharField(_("name"), max_length=100, blank=True)

    is_enabled = models.BooleanField(_("enabled"), default=True)

    # Earning / redemption
    earning_rate = models.DecimalField(
        _("earning rate"),
        max_digits=10,
        decimal_places=4,
        default=Decimal("1"),
        help_text=_("Points earned per currency unit spent"),
    )
    redemption_rate = models.DecimalField(
        _("redemption rate"),
        max_digits=10,
        decimal_places=4,
        default=Decimal("1"),
        help_text=_("Currency value of one point when redeemed"),
    )
    minimum_points_to_redeem = models.PositiveIntegerField(
        _("minimum points to redeem"),
        default=100,
    )
    maximum_redemption_percentage = models.DecimalField(
        _("maximum redemption percentage"),
        max_digits=5,
        decimal_places=2,
        default=Decimal("50"),
        help_text=_("Maximum share of a bill payable with points (0-100)"),
    )

    # Expiry / bonus
    points_expiry_days = models.PositiveIntegerField(
        _("points expiry (days)"),
        default=365,
        help_text=_("0 means points never expire"),
    )
    welcome_bonus_points = models.PositiveIntegerField(
        _("welcome bonus points"),
        default=100,
    )

    tier_thresholds = models.JSONField(
        _("tier thresholds"),
        default=default_tier_thresholds,
    )

    created_at = models.DateTimeField(_("created at"), auto_now_add=True)
    updated_at = models.DateTimeField(_("updated at"), auto_now=True)

    class Meta:
        verbose_name = _("loyalty program")
        verbose_name_plural = _("loyalty programs")
        ordering = ["code"]

    def __str__(self):
        return self.name or self.code
