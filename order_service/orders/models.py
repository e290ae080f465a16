"""
Order domain values.

Everything here is immutable. Wire forms use the camelCase keys the product
and notification services already consume; decimals travel as strings.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Iterable, Tuple

from order_service.orders.exceptions import InvalidOrderItemError


class OrderStatus(str, Enum):
    """Forward-only lifecycle: ORDERED -> SHIPPED -> DELIVERED."""

    ORDERED = "ORDERED"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"


@dataclass(frozen=True)
class OrderItem:
    product_id: str
    qty: int

    def __post_init__(self):
        if not isinstance(self.product_id, str) or not self.product_id.strip():
            raise InvalidOrderItemError("Order item needs a product id")
        # bool is an int subclass; True is not a quantity
        if isinstance(self.qty, bool) or not isinstance(self.qty, int) or self.qty <= 0:
            raise InvalidOrderItemError("Order item quantity must be a positive integer")

    def to_dict(self) -> Dict[str, Any]:
        return {"productId": self.product_id, "qty": self.qty}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderItem":
        try:
            return cls(product_id=data["productId"], qty=data["qty"])
        except (KeyError, TypeError) as exc:
            raise InvalidOrderItemError("Malformed order item") from exc


def items_to_wire(items: Iterable[OrderItem]) -> list:
    return [item.to_dict() for item in items]


@dataclass(frozen=True)
class Order:
    id: str
    status: OrderStatus
    user_id: str
    items: Tuple[OrderItem, ...]
    created_at: datetime
    total_price: Decimal

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))
        if not self.items:
            raise InvalidOrderItemError("An order needs at least one item")
        if self.total_price < 0:
            raise InvalidOrderItemError("Order total cannot be negative")

    def view(self) -> "OrderView":
        return OrderView(items=self.items, total_price=self.total_price, status=self.status)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "status": self.status.value,
            "userId": self.user_id,
            "orderItems": items_to_wire(self.items),
            "orderTime": self.created_at.isoformat(),
            "totalPrice": str(self.total_price),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Order":
        return cls(
            id=data["id"],
            status=OrderStatus(data["status"]),
            user_id=data["userId"],
            items=tuple(OrderItem.from_dict(item) for item in data["orderItems"]),
            created_at=datetime.fromisoformat(data["orderTime"]),
            total_price=Decimal(data["totalPrice"]),
        )


@dataclass(frozen=True)
class OrderView:
    """What callers get back: the items, the total and the current status."""

    items: Tuple[OrderItem, ...]
    total_price: Decimal
    status: OrderStatus

    def to_dict(self) -> Dict[str, Any]:
        return {
            "orderItems": items_to_wire(self.items),
            "totalPrice": str(self.total_price),
            "status": self.status.value,
        }


@dataclass(frozen=True)
class EmailDetails:
    user_id: str
    order_time: str
    total_price: Decimal

    @classmethod
    def for_order(cls, order: Order) -> "EmailDetails":
        return cls(
            user_id=str(order.user_id),
            order_time=order.created_at.date().isoformat(),
            total_price=order.total_price,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"userId": self.user_id, "orderTime": self.order_time, "totalPrice": str(self.total_price)}
