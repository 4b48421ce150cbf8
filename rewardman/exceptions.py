"""Rewardman exceptions."""


class BaseError(Exception):
    """
    Structured exception carrying a machine-readable code.

    Subclasses provide ``_default_messages`` so callers can raise with just a
    code and keyword context:

        raise RewardmanError("INSUFFICIENT_POINTS", available=10, requested=25)
    """

    _default_messages: dict[str, str] = {}

    def __init__(self, code: str, message: str | None = None, **data):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(f"[{code}] {self.message}")

    def as_dict(self) -> dict:
        return {"code": self.code, "message": self.message, "data": self.data}


class RewardmanError(BaseError):
    """
    Domain and contention errors for loyalty and claim operations.

    These are expected business outcomes. Callers branch on ``code``:

        try:
            LedgerService.redeem(user_id, merchant_id, 25)
        except RewardmanError as e:
            if e.code == "INSUFFICIENT_POINTS":
                show_top_up(e.data["available"])
    """

    _default_messages = {
        "PROGRAM_NOT_FOUND": "Loyalty program not found for this merchant",
        "PROGRAM_INACTIVE": "Loyalty program is not active",
        "PROGRAM_ALREADY_EXISTS": "Loyalty program already exists for this merchant",
        "INVALID_PROGRAM_CONFIG": "Invalid loyalty program configuration",
        "MINIMUM_PURCHASE_NOT_MET": "Minimum purchase not met to earn points",
        "INSUFFICIENT_POINTS": "Insufficient points for redemption",
        "BELOW_MINIMUM_REDEMPTION": "Points below minimum redemption",
        "DISCOUNT_EXCEEDS_ORDER_AMOUNT": "Discount value cannot exceed order amount",
        "ORDER_NOT_FOUND": "Order not found",
        "REDEMPTION_NOT_FOUND": "Redemption not found",
        "REDEMPTION_ALREADY_CANCELLED": "Redemption already cancelled",
        "REDEMPTION_ALREADY_APPLIED": "Redemption already applied",
        "CLAIM_IN_PROGRESS": "Claim already in progress. Please wait.",
        "COOLDOWN_ACTIVE": "Cooldown period active. You cannot claim this reward yet.",
    }


class LockStoreUnavailable(BaseError):
    """
    The shared lock store could not be reached.

    System error, not a domain outcome. Deliberately outside the
    RewardmanError hierarchy so claim boundaries never treat it as a
    rejected claim or as an acquired lock.
    """

    _default_messages = {
        "LOCK_STORE_UNAVAILABLE": "Lock store unavailable",
    }

    def __init__(self, message: str | None = None, **data):
        super().__init__("LOCK_STORE_UNAVAILABLE", message, **data)
