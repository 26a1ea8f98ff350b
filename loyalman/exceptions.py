"""Loyalman exceptions."""


class LoyalmanError(Exception):
    """
    Structured exception for loyalty operations.

    Carries a machine-readable code, a default message and the data the
    caller needs to render the rejection (current balance, minimum, ...).
    The engine never formats user-facing text beyond the default message.

    Usage:
        try:
            engine.redemptions.approve(request_id, approver="staff:1")
        except InsufficientPoints as e:
            show_rejection(e.data["available"], e.data["requested"])
        except LoyalmanError as e:
            if e.code == "REQUEST_NOT_PENDING":
                ...
    """

    default_code = "LOYALMAN_ERROR"

    _default_messages = {
        "LOYALMAN_ERROR": "Loyalty operation failed",
        "INVALID_CONFIG": "Invalid loyalty configuration",
        "CUSTOMER_NOT_FOUND": "Customer not found",
        "INSUFFICIENT_POINTS": "Insufficient points",
        "BELOW_MINIMUM": "Points below minimum redeemable amount",
        "REWARD_NOT_FOUND": "Reward not found",
        "REWARD_INELIGIBLE": "Reward not available for this customer",
        "REQUEST_NOT_FOUND": "Redemption request not found",
        "REQUEST_NOT_PENDING": "Redemption request is not pending",
        "INVALID_POINTS": "Invalid points amount for entry kind",
        "INVALID_AMOUNT": "Invalid purchase amount",
        "INVALID_REWARD": "Invalid reward definition",
        "INVALID_REDEMPTION": "Redemption type does not match the request",
        "PERSISTENCE_FAILURE": "Storage failure, no changes were applied",
    }

    def __init__(self, code: str | None = None, message: str | None = None, **data):
        self.code = code or self.default_code
        self.message = message or self._default_messages.get(self.code, self.code)
        self.data = data
        super().__init__(f"[{self.code}] {self.message}")

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "data": dict(self.data)}


class InvalidConfig(LoyalmanError):
    default_code = "INVALID_CONFIG"


class CustomerNotFound(LoyalmanError):
    default_code = "CUSTOMER_NOT_FOUND"


class InsufficientPoints(LoyalmanError):
    default_code = "INSUFFICIENT_POINTS"


class BelowMinimum(LoyalmanError):
    default_code = "BELOW_MINIMUM"


class RewardNotFound(LoyalmanError):
    default_code = "REWARD_NOT_FOUND"


class RewardIneligible(LoyalmanError):
    default_code = "REWARD_INELIGIBLE"


class RequestNotFound(LoyalmanError):
    default_code = "REQUEST_NOT_FOUND"


class RequestNotPending(LoyalmanError):
    default_code = "REQUEST_NOT_PENDING"


class InvalidPoints(LoyalmanError):
    default_code = "INVALID_POINTS"


class InvalidAmount(LoyalmanError):
    default_code = "INVALID_AMOUNT"


class PersistenceFailure(LoyalmanError):
    default_code = "PERSISTENCE_FAILURE"


class InvalidReward(LoyalmanError):
    default_code = "INVALID_REWARD"


class InvalidRedemption(LoyalmanError):
    default_code = "INVALID_REDEMPTION"
