from typing import List, Optional

from order_service.orders.exceptions import AccessDeniedError
from order_service.orders.lifecycle import OrderLifecycle
from order_service.orders.models import OrderView
from order_service.shared.logger import JohnWickLogger


class OrderManagementService:
    """
    Administrative order operations. No ownership checks; instead every call
    carries the caller's role claim, which must equal `admin_role`.
    """

    def __init__(self, lifecycle: OrderLifecycle, admin_role: str = "ADMIN", logger: Optional[JohnWickLogger] = None):
        self.lifecycle = lifecycle
        self.admin_role = admin_role
        self.logger = logger or JohnWickLogger("OrderManagementService")

    def _require_admin(self, role: Optional[str]):
        if role != self.admin_role:
            self.logger.warning("Management access denied", extra={"role": role})
            raise AccessDeniedError("Access denied")

    async def find_all_orders(self, role: str) -> List[OrderView]:
        self._require_admin(role)
        self.logger.info("Fetching all orders")
        return [order.view() for order in await self.lifecycle.all_orders()]

    async def find(self, order_id: str, role: str) -> OrderView:
        self._require_admin(role)
        self.logger.info("Fetching order", extra={"order_id": order_id})
        return (await self.lifecycle.get(order_id)).view()

    async def find_all_of_user(self, user_id: str, role: str) -> List[OrderView]:
        self._require_admin(role)
        self.logger.info("Fetching all orders of user", extra={"user_id": user_id})
        return [order.view() for order in await self.lifecycle.orders_of_user(user_id)]

    async def delete(self, order_id: str, role: str) -> None:
        """
        Raises:
            AccessDeniedError: `role` is not the admin role.
            OrderNotFoundError: no such order.
            ForbiddenError: the order was already delivered.
        """
        self._require_admin(role)
        await self.lifecycle.delete(order_id)
