"""Tier calculator: lifetime spend -> loyalty tier."""

from decimal import Decimal
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from loyalman.services.config import LoyaltyConfig


def tier_for(lifetime_spend, config: "LoyaltyConfig") -> str:
    """
    Tier earned by `lifetime_spend` under `config`.

    Walks the ladder from the top and returns the first tier whose
    min_spent <= spend; falls back to the lowest configured tier.
    Pure and monotonic: more spend never yields a lower tier.
    """
    spend = Decimal(str(lifetime_spend))
    for rule in reversed(config.tiers):
        if rule.min_spent <= spend:
            return rule.tier
    return config.base_tier
