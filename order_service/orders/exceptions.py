from typing import Optional


class OrderServiceError(Exception):
    """Base class for errors the order services surface to their callers."""

    default_message = "Order service error"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidOrderItemError(OrderServiceError):
    """One or more items could not be priced, or the item list itself is invalid."""

    default_message = "Order item is invalid"


class OrderNotFoundError(OrderServiceError):
    default_message = "Order not found"


class ForbiddenError(OrderServiceError):
    """The caller may not perform the operation on this order."""

    default_message = "Forbidden"


class AccessDeniedError(ForbiddenError):
    """The caller's role claim does not grant management access."""

    default_message = "Access denied"
