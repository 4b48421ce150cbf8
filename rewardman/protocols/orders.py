"""Order lookup protocol for cross-app communication."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class OrderLookup(Protocol):
    """
    Protocol for checking that an order exists before linking points to it.

    Optional. When no backend is configured, order ids are stored as given.

    Configuration in settings.py:
        REWARDMAN = {
            "ORDER_LOOKUP_BACKEND": "shop.loyalty.ShopOrderLookup",
        }
    """

    def order_exists(self, order_id: int, user_id: int, merchant_id: int) -> bool:
        """
        Return True if the order exists and belongs to user and merchant.

        Args:
            order_id: Order identifier
            user_id: Buyer
            merchant_id: Seller
        """
        ...
