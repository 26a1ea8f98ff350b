"""Loyalman models.

- LoyaltyProgram: per-tenant configuration
- Customer: program member with ledger-driven counters
- PointsEntry: append-only points ledger
- ExpiredGrant: grants already handled by the expiry sweep
- Reward: catalog of rewards redeemable for points
- RedemptionRequest: two-phase redemption
"""

from loyalman.models.program import LoyaltyProgram, LoyaltyTier
from loyalman.models.customer import Customer
from loyalman.models.ledger import EntryKind, ExpiredGrant, GRANT_KINDS, PointsEntry
from loyalman.models.reward import Reward, RewardType
from loyalman.models.redemption import (
    RedemptionRequest,
    RedemptionStatus,
    RedemptionType,
)

__all__ = [
    # Configuration
    "LoyaltyProgram",
    "LoyaltyTier",
    # Members and ledger
    "Customer",
    "EntryKind",
    "ExpiredGrant",
    "GRANT_KINDS",
    "PointsEntry",
    # Catalog and redemption
    "Reward",
    "RewardType",
    "RedemptionRequest",
    "RedemptionStatus",
    "RedemptionType",
]
