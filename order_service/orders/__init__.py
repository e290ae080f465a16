from order_service.orders.exceptions import (
    AccessDeniedError,
    ForbiddenError,
    InvalidOrderItemError,
    OrderNotFoundError,
    OrderServiceError,
)
from order_service.orders.models import EmailDetails, Order, OrderItem, OrderStatus, OrderView

__all__ = [
    "AccessDeniedError",
    "ForbiddenError",
    "InvalidOrderItemError",
    "OrderNotFoundError",
    "OrderServiceError",
    "EmailDetails",
    "Order",
    "OrderItem",
    "OrderStatus",
    "OrderView",
]
