from typing import Iterable, List, Optional

from order_service.orders.exceptions import ForbiddenError
from order_service.orders.lifecycle import OrderLifecycle
from order_service.orders.models import OrderItem, OrderView
from order_service.shared.logger import JohnWickLogger


class OrderService:
    """Customer-facing order operations; every read is checked against the caller's user id."""

    def __init__(self, lifecycle: OrderLifecycle, logger: Optional[JohnWickLogger] = None):
        self.lifecycle = lifecycle
        self.logger = logger or JohnWickLogger("OrderService")

    async def find_all(self, user_id: str) -> List[OrderView]:
        self.logger.info("Fetching all orders of user", extra={"user_id": user_id})
        return [order.view() for order in await self.lifecycle.orders_of_user(user_id)]

    async def find(self, order_id: str, user_id: str) -> OrderView:
        """
        Raises:
            OrderNotFoundError: no such order (checked before ownership).
            ForbiddenError: the order belongs to someone else.
        """
        self.logger.info("Fetching order", extra={"order_id": order_id})
        order = await self.lifecycle.get(order_id)
        if order.user_id != user_id:
            self.logger.warning("UserIDs do not match", extra={"owner": order.user_id, "caller": user_id})
            raise ForbiddenError("UserIDs do not match")
        return order.view()

    async def create(self, items: Iterable[OrderItem], user_id: str) -> OrderView:
        return await self.lifecycle.create(items, user_id)
