from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from order_service.inventory import InventoryPublisher
from order_service.notifications import NotificationService
from order_service.orders.lifecycle import OrderLifecycle
from order_service.orders.management_service import OrderManagementService
from order_service.orders.models import Order, OrderItem, OrderStatus
from order_service.orders.order_service import OrderService
from order_service.orders.repository import InMemoryOrderStore
from order_service.pricing import BrokerPricingGateway
from order_service.shared.messaging import Endpoint, RpcClient, RpcResponder
from order_service.shared.messaging.transports import InProcessEventBus
from order_service.shared.metrics import MetricsCollector

PRICING = Endpoint("product-service", "total-price", timeout=0.5)
RESERVE = Endpoint("product-service", "fetch-qty", timeout=0.5)
RESTORE = Endpoint("product-service", "restore-qty", timeout=0.5)
NOTIFY = Endpoint("notification-service", "order-created", timeout=0.5)

FIXED_TIME = datetime(2024, 3, 1, 12, 30, tzinfo=timezone.utc)


class FakeProductService:
    """
    Answers pricing requests from a price table and records the quantity
    events it receives. Unknown products get no reply at all.
    """

    def __init__(self, bus: InProcessEventBus, prices: dict):
        self.bus = bus
        self.prices = prices
        self.reserved = []
        self.restored = []

    async def start(self):
        await RpcResponder(self.bus, PRICING.channel, self.total_price, logger=MagicMock()).start()
        await self.bus.subscribe(RESERVE.channel, self.reserved.append)
        await self.bus.subscribe(RESTORE.channel, self.restored.append)

    def total_price(self, body):
        price = self.prices.get(body["productId"])
        if price is None:
            return None
        if isinstance(price, (int, float, Decimal)) and not isinstance(price, bool):
            return str(Decimal(str(price)) * body["qty"])
        return price


class Harness:
    def __init__(self, prices: dict):
        self.logger = MagicMock()
        self.metrics = MetricsCollector(self.logger)
        self.bus = InProcessEventBus(logger=self.logger, metrics=self.metrics, retry_delay=0)
        self.store = InMemoryOrderStore(logger=self.logger)
        self.product_service = FakeProductService(self.bus, prices)
        self.emails = []
        self.rpc_client = RpcClient(self.bus, logger=self.logger, metrics=self.metrics)
        self.inventory = InventoryPublisher(self.bus, RESERVE, RESTORE, logger=self.logger, metrics=self.metrics)
        self.notifications = NotificationService(self.bus, NOTIFY, logger=self.logger, metrics=self.metrics)
        self.lifecycle = OrderLifecycle(
            store=self.store,
            pricing=BrokerPricingGateway(self.rpc_client, PRICING, logger=self.logger, metrics=self.metrics),
            notifications=self.notifications,
            inventory=self.inventory,
            logger=self.logger,
            metrics=self.metrics,
            clock=lambda: FIXED_TIME,
        )
        self.orders = OrderService(self.lifecycle, logger=self.logger)
        self.management = OrderManagementService(self.lifecycle, admin_role="ADMIN", logger=self.logger)

    async def start(self):
        await self.product_service.start()
        await self.bus.subscribe(NOTIFY.channel, self.emails.append)
        await self.rpc_client.start()
        return self

    async def settle(self):
        await self.bus.join()


@pytest.fixture
def harness():
    return Harness({"sku-1": Decimal("5.998"), "sku-2": 2, "free": 0, "weird": "abc"})


def make_order(order_id="o-1", user_id="u-1", status=OrderStatus.ORDERED, created_at=FIXED_TIME, total="10.00"):
    return Order(
        id=order_id,
        status=status,
        user_id=user_id,
        items=(OrderItem("sku-1", 2),),
        created_at=created_at,
        total_price=Decimal(total),
    )
