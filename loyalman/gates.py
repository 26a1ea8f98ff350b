"""
Loyalman Gates - Validation rules.

L1: TierThresholdOrdering - min_spent strictly increasing along the tier ladder
L2: MinimumRedeemable - Redemption meets the program minimum
L3: SufficientBalance - Customer holds at least the requested points
L4: RewardEligibility - Reward active, in window, not exhausted, tier applicable
L5: RequestPending - Redemption request can still transition

Each gate raises the matching LoyalmanError subclass. The check_* variants
return a bool instead.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Iterable

from loyalman.exceptions import (
    BelowMinimum,
    InsufficientPoints,
    InvalidConfig,
    LoyalmanError,
    RequestNotPending,
    RewardIneligible,
)

if TYPE_CHECKING:
    from loyalman.models import RedemptionRequest, Reward
    from loyalman.services.config import TierRule


@dataclass
class GateResult:
    """Result of a gate check."""

    passed: bool
    gate_name: str
    message: str = ""


# =============================================================================
# Gates
# =============================================================================


class Gates:
    """Loyalman validation gates."""

    # =========================================================================
    # L1: Tier Threshold Ordering
    # =========================================================================

    @classmethod
    def tier_threshold_ordering(cls, tiers: Iterable["TierRule"]) -> GateResult:
        """
        L1: min_spent strictly increasing along the tier ladder.

        Args:
            tiers: TierRule sequence sorted by tier rank

        Raises:
            InvalidConfig: If the sequence is empty or not strictly increasing
        """
        tiers = list(tiers)
        if not tiers:
            raise InvalidConfig(
                message="At least one tier must be configured.",
                gate="L1_TierThresholdOrdering",
            )

        for lower, upper in zip(tiers, tiers[1:]):
            if upper.min_spent <= lower.min_spent:
                raise InvalidConfig(
                    message=(
                        f"Tier '{upper.tier}' threshold must be greater than "
                        f"'{lower.tier}' threshold."
                    ),
                    gate="L1_TierThresholdOrdering",
                    lower=lower.tier,
                    upper=upper.tier,
                )

        return GateResult(True, "L1_TierThresholdOrdering")

    @classmethod
    def check_tier_threshold_ordering(cls, tiers: Iterable["TierRule"]) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.tier_threshold_ordering(tiers)
            return True
        except LoyalmanError:
            return False

    # =========================================================================
    # L2: Minimum Redeemable
    # =========================================================================

    @classmethod
    def minimum_redeemable(cls, points: int, minimum: int) -> GateResult:
        """
        L2: Redemption must be at least the program minimum.

        Raises:
            BelowMinimum: If points < minimum
        """
        if points < minimum:
            raise BelowMinimum(
                gate="L2_MinimumRedeemable",
                minimum=minimum,
                requested=points,
            )

        return GateResult(True, "L2_MinimumRedeemable")

    @classmethod
    def check_minimum_redeemable(cls, points: int, minimum: int) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.minimum_redeemable(points, minimum)
            return True
        except LoyalmanError:
            return False

    # =========================================================================
    # L3: Sufficient Balance
    # =========================================================================

    @classmethod
    def sufficient_balance(cls, balance: int, points: int) -> GateResult:
        """
        L3: Customer must hold at least the requested points.

        Args:
            balance: Current cached balance
            points: Points to deduct

        Raises:
            InsufficientPoints: If points > balance (carries both values)
        """
        if points > balance:
            raise InsufficientPoints(
                gate="L3_SufficientBalance",
                available=balance,
                requested=points,
            )

        return GateResult(True, "L3_SufficientBalance")

    @classmethod
    def check_sufficient_balance(cls, balance: int, points: int) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.sufficient_balance(balance, points)
            return True
        except LoyalmanError:
            return False

    # =========================================================================
    # L4: Reward Eligibility
    # =========================================================================

    @classmethod
    def reward_eligibility(
        cls,
        reward: "Reward",
        tier: str,
        now: datetime,
        points: int | None = None,
    ) -> GateResult:
        """
        L4: Reward can be redeemed by a customer of `tier` at `now`.

        Args:
            reward: Reward being redeemed
            tier: Customer's current tier
            now: Evaluation time
            points: Points offered (checked against points_cost when given)

        Raises:
            RewardIneligible: With `reason` set to the first failed rule
        """
        reason = None
        if not reward.is_active:
            reason = "inactive"
        elif now < reward.valid_from:
            reason = "not_started"
        elif reward.valid_until is not None and now > reward.valid_until:
            reason = "expired"
        elif reward.usage_limit is not None and reward.usage_count >= reward.usage_limit:
            reason = "usage_exhausted"
        elif tier not in (reward.applicable_tiers or []):
            reason = "tier_not_applicable"
        elif points is not None and points < reward.points_cost:
            reason = "points_below_cost"

        if reason:
            raise RewardIneligible(
                gate="L4_RewardEligibility",
                reason=reason,
                reward_code=reward.code,
                tier=tier,
            )

        return GateResult(True, "L4_RewardEligibility")

    @classmethod
    def check_reward_eligibility(cls, *args, **kwargs) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.reward_eligibility(*args, **kwargs)
            return True
        except LoyalmanError:
            return False

    # =========================================================================
    # L5: Request Pending
    # =========================================================================

    @classmethod
    def request_pending(cls, request: "RedemptionRequest") -> GateResult:
        """
        L5: Only pending requests may be approved or cancelled.

        Raises:
            RequestNotPending: If request left the pending state
        """
        if not request.is_pending:
            raise RequestNotPending(
                gate="L5_RequestPending",
                request_id=request.pk,
                status=request.status,
            )

        return GateResult(True, "L5_RequestPending")

    @classmethod
    def check_request_pending(cls, request: "RedemptionRequest") -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.request_pending(request)
            return True
        except LoyalmanError:
            return False
