"""
Loyalman public API.

    engine = LoyaltyEngine("store-01")

CORE:
    engine.config       - ConfigStore (get / update)
    engine.ledger       - PointsLedger (append / adjust / balance_of / history / reconcile)
    engine.directory    - CustomerDirectory (enroll / record_purchase / max_redeemable_for)
    engine.catalog      - RewardCatalog (list / eligible_for)
    engine.redemptions  - RedemptionWorkflow (request / approve / cancel)
    engine.reaper       - ExpiryReaper (sweep)

One engine per program. Build it where it is needed and pass it along;
nothing is cached at module level.
"""

from loyalman.conf import loyalman_settings
from loyalman.services import (
    ConfigStore,
    CustomerDirectory,
    ExpiryReaper,
    PointsLedger,
    RedemptionWorkflow,
    RewardCatalog,
)


class LoyaltyEngine:
    """Every loyalty component bound to one program."""

    def __init__(self, program_code: str | None = None):
        self.program_code = program_code or loyalman_settings.DEFAULT_PROGRAM

        self.config = ConfigStore(self.program_code)
        self.ledger = PointsLedger(self.config)
        self.directory = CustomerDirectory(self.config, self.ledger)
        self.catalog = RewardCatalog(self.config, self.directory)
        self.redemptions = RedemptionWorkflow(
            self.config,
            self.ledger,
            self.directory,
            self.catalog,
        )
        self.reaper = ExpiryReaper(self.config, self.ledger)

    def __repr__(self):
        return f"<LoyaltyEngine {self.program_code}>"
