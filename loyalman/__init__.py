"""
Django Loyalman - Customer Loyalty & Rewards Engine.

Usage:
    from loyalman import LoyaltyEngine

    engine = LoyaltyEngine("store-01")
    engine.directory.enroll("CUST-001", first_name="Maria")
    engine.directory.record_purchase("CUST-001", "INV-123", Decimal("250.00"))

    req = engine.redemptions.request("CUST-001", 200)
    engine.redemptions.approve(req.pk, approver="staff:42")

    engine.reaper.sweep()
"""


def __getattr__(name):
    if name == "LoyaltyEngine":
        from loyalman.engine import LoyaltyEngine

        return LoyaltyEngine
    if name == "Gates":
        from loyalman.gates import Gates

        return Gates
    if name == "LoyalmanError":
        from loyalman.exceptions import LoyalmanError

        return LoyalmanError
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["LoyaltyEngine", "Gates", "LoyalmanError"]
__version__ = "0.1.0"
