"""Loyalman services.

One instance of each service is bound to a single LoyaltyProgram (tenant).
LoyaltyEngine (loyalman.engine) wires them together; import the classes
from here to compose them differently.
"""

from loyalman.services.catalog import RewardCatalog
from loyalman.services.config import ConfigStore, LoyaltyConfig, TierRule
from loyalman.services.directory import CustomerDirectory, ProgramStats
from loyalman.services.expiry import ExpiryReaper
from loyalman.services.ledger import PointsLedger, Reconciliation
from loyalman.services.redemption import RedemptionWorkflow

__all__ = [
    "ConfigStore",
    "LoyaltyConfig",
    "TierRule",
    "PointsLedger",
    "Reconciliation",
    "CustomerDirectory",
    "ProgramStats",
    "RewardCatalog",
    "RedemptionWorkflow",
    "ExpiryReaper",
]
