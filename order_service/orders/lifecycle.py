import uuid
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

from order_service.inventory import InventoryPublisher
from order_service.notifications import NotificationService
from order_service.orders.exceptions import ForbiddenError, InvalidOrderItemError, OrderNotFoundError
from order_service.orders.models import Order, OrderItem, OrderStatus, OrderView
from order_service.orders.repository import OrderStore
from order_service.pricing import PricingGateway
from order_service.shared.logger import JohnWickLogger
from order_service.shared.metrics import MetricsCollector, OrderMetrics


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_order_id() -> str:
    return uuid.uuid4().hex


class OrderLifecycle:
    """
    Creates, looks up and deletes orders. No ownership or role checks happen
    here: `OrderService` and `OrderManagementService` wrap these primitives with
    their own access policy.

    Creation runs price -> persist -> notify -> reserve. Pricing failures abort
    before anything is stored or published. Notification and inventory publish
    failures never undo a committed store change; see `InventoryPublisher`.
    """

    def __init__(
        self,
        store: OrderStore,
        pricing: PricingGateway,
        notifications: NotificationService,
        inventory: InventoryPublisher,
        logger: Optional[JohnWickLogger] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_order_id,
    ):
        self.store = store
        self.pricing = pricing
        self.notifications = notifications
        self.inventory = inventory
        self.logger = logger or JohnWickLogger("OrderLifecycle")
        self.metrics = metrics or MetricsCollector(self.logger)
        self.clock = clock
        self.id_factory = id_factory

    # --- Lookup ---
    async def get(self, order_id: str) -> Order:
        order = await self.store.find_by_id(order_id)
        if order is None:
            self.logger.warning("Order not found", extra={"order_id": order_id})
            raise OrderNotFoundError("Order not found")
        return order

    async def orders_of_user(self, user_id: str) -> List[Order]:
        return await self.store.find_by_user_id(user_id)

    async def all_orders(self) -> List[Order]:
        return await self.store.find_all()

    # --- Create ---
    async def create(self, items: Iterable[OrderItem], user_id: str) -> OrderView:
        items = tuple(items)
        self.logger.info("Adding new order", extra={"user_id": user_id, "items": len(items)})

        try:
            self._check_items(items)
            total_price = await self.pricing.calculate_total(items)
        except InvalidOrderItemError:
            self.metrics.increment(OrderMetrics.ORDERS_REJECTED)
            raise

        order = Order(
            id=self.id_factory(),
            status=OrderStatus.ORDERED,
            user_id=user_id,
            items=items,
            created_at=self.clock(),
            total_price=total_price,
        )
        await self.store.save(order)
        self.metrics.increment(OrderMetrics.ORDERS_CREATED)

        await self.notifications.send_order_created(order)
        await self.inventory.reserve(order)

        self.logger.info("Order created", extra={"order_id": order.id, "total_price": str(total_price)})
        return order.view()

    @staticmethod
    def _check_items(items: tuple):
        if not items:
            raise InvalidOrderItemError("Order must contain at least one item")
        if not all(isinstance(item, OrderItem) for item in items):
            raise InvalidOrderItemError("Order item is invalid")

    # --- Delete ---
    async def delete(self, order_id: str) -> None:
        self.logger.info("Deleting order", extra={"order_id": order_id})
        order = await self.get(order_id)
        if order.status == OrderStatus.DELIVERED:
            self.logger.warning("Order has already been delivered and cannot be deleted", extra={"order_id": order_id})
            raise ForbiddenError("Order has already been delivered and cannot be deleted")

        if not await self.store.delete_by_id(order_id):
            # lost a race with another delete; that one restores the stock
            self.logger.warning("Order vanished before delete", extra={"order_id": order_id})
            raise OrderNotFoundError("Order not found")

        self.metrics.increment(OrderMetrics.ORDERS_DELETED)
        await self.inventory.restore(order)
