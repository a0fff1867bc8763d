"""
Error types raised by the ordering core
"""
from typing import Iterable


class OrderingError(Exception):
    """Base class for recoverable ordering failures"""


class ValidationError(OrderingError):
    """Required fields are missing or hold invalid values"""

    def __init__(self, missing_fields: Iterable[str], message: str = ""):
        self.missing_fields = list(missing_fields)
        super().__init__(message or "Missing required fields: " + ", ".join(self.missing_fields))


class EmptyCartError(OrderingError):
    """Order submission attempted with an empty cart"""

    def __init__(self, message: str = "Cart is empty"):
        super().__init__(message)


class RemoteError(OrderingError):
    """The order store failed or rejected the call"""


class OrderNotFound(OrderingError):
    """No order exists with the requested id"""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


class PolicyDenied(OrderingError):
    """An action was refused by policy; reason is shown to the user verbatim"""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)
