"""Reward catalog: rewards redeemable for points."""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation

from django.utils import timezone

from loyalman.db import atomic_unit
from loyalman.exceptions import InvalidReward, RewardNotFound
from loyalman.gates import Gates
from loyalman.models import LoyaltyTier, Reward, RewardType
from loyalman.services.config import ConfigStore
from loyalman.services.directory import CustomerDirectory

logger = logging.getLogger(__name__)


class RewardCatalog:
    """Rewards of one program. Read methods never mutate."""

    def __init__(self, config: ConfigStore, directory: CustomerDirectory):
        self.config = config
        self.directory = directory

    @property
    def program(self):
        return self.config.program

    def create(
        self,
        code: str,
        title: str,
        points_cost: int,
        reward_type: str,
        value,
        description: str = "",
        product_ref: str = "",
        applicable_tiers: list[str] | None = None,
        valid_from: datetime | None = None,
        valid_until: datetime | None = None,
        usage_limit: int | None = None,
        is_active: bool = True,
    ) -> Reward:
        """
        Add a reward to the catalog.

        Args:
            code: Reward code (unique per program)
            title: Display title
            points_cost: Points needed (> 0)
            reward_type: RewardType value
            value: Percentage, fixed amount, or product value
            applicable_tiers: Tiers allowed to redeem (default: all)
            valid_from / valid_until: Availability window (until is optional)
            usage_limit: Max redemptions (None = unlimited)

        Raises:
            InvalidReward: Bad type, cost, tiers, value or window
        """
        if reward_type not in RewardType.values:
            raise InvalidReward(message=f"Unknown reward type: {reward_type}", field="reward_type")
        if isinstance(points_cost, bool) or not isinstance(points_cost, int) or points_cost <= 0:
            raise InvalidReward(message="points_cost must be a positive integer.", field="points_cost")

        tiers = list(applicable_tiers) if applicable_tiers is not None else list(LoyaltyTier.values)
        unknown = [t for t in tiers if t not in LoyaltyTier.values]
        if unknown or not tiers:
            raise InvalidReward(message="applicable_tiers must list known tiers.", tiers=unknown)

        try:
            value = Decimal(str(value))
        except (InvalidOperation, TypeError, ValueError):
            raise InvalidReward(message="value must be a number.", field="value")
        if value < 0:
            raise InvalidReward(message="value must be non-negative.", field="value")

        valid_from = valid_from or timezone.now()
        if valid_until is not None and valid_until < valid_from:
            raise InvalidReward(message="valid_until is before valid_from.", field="valid_until")
        if usage_limit is not None and usage_limit < 0:
            raise InvalidReward(message="usage_limit must be non-negative.", field="usage_limit")

        with atomic_unit("catalog.create", reward_code=code):
            reward = Reward.objects.create(
                program=self.program,
                code=code,
                title=title,
                description=description,
                points_cost=points_cost,
                reward_type=reward_type,
                value=value,
                product_ref=product_ref,
                applicable_tiers=tiers,
                valid_from=valid_from,
                valid_until=valid_until,
                usage_limit=usage_limit,
                is_active=is_active,
            )
        logger.info("Reward created: %s (%s pts)", code, points_cost)
        return reward

    def get(self, code: str) -> Reward | None:
        try:
            return Reward.objects.get(program=self.program, code=code)
        except Reward.DoesNotExist:
            return None

    def require(self, code: str) -> Reward:
        reward = self.get(code)
        if reward is None:
            raise RewardNotFound(reward_code=code)
        return reward

    def deactivate(self, code: str) -> Reward:
        reward = self.require(code)
        reward.is_active = False
        reward.save(update_fields=["is_active"])
        logger.info("Reward deactivated: %s", code)
        return reward

    def eligible_for(self, customer_code: str, now: datetime | None = None) -> list[Reward]:
        """
        Rewards the customer could redeem right now.

        Filters active rewards by tier membership, balance >= points_cost,
        validity window and remaining usage.

        Raises:
            CustomerNotFound: Unknown or inactive customer
        """
        now = now or timezone.now()
        customer = self.directory.require(customer_code)
        return [
            reward
            for reward in Reward.objects.filter(program=self.program, is_active=True)
            if customer.points_balance >= reward.points_cost
            and Gates.check_reward_eligibility(reward, customer.tier, now)
        ]

    def list(self) -> list[Reward]:
        """Active rewards (flag only; window and usage are not checked)."""
        return list(Reward.objects.filter(program=self.program, is_active=True))
