import asyncio
from abc import ABC, abstractmethod
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from order_service.orders.exceptions import InvalidOrderItemError
from order_service.orders.models import OrderItem
from order_service.shared.logger import JohnWickLogger
from order_service.shared.messaging import Endpoint, RpcClient
from order_service.shared.metrics import MetricsCollector, OrderMetrics


def decode_price(reply: Any) -> Optional[Decimal]:
    """
    Decimal value of a pricing reply, or None when the reply is not a finite
    number. Floats go through str() so 29.99 stays 29.99.
    """
    if reply is None or isinstance(reply, bool):
        return None
    if isinstance(reply, Decimal):
        price = reply
    elif isinstance(reply, (int, float, str)):
        try:
            price = Decimal(str(reply).strip())
        except InvalidOperation:
            return None
    else:
        return None
    return price if price.is_finite() else None


class PricingGateway(ABC):
    """Prices order items. Any item that cannot be priced raises InvalidOrderItemError."""

    @abstractmethod
    async def price_item(self, item: OrderItem) -> Decimal:
        """Total price for `item` (unit price times quantity), strictly positive."""

    async def calculate_total(self, items: Iterable[OrderItem]) -> Decimal:
        """Price items one by one and sum; the first failure propagates."""
        total = Decimal("0")
        for item in items:
            total += await self.price_item(item)
        return total


class BrokerPricingGateway(PricingGateway):
    """Asks the product service for each item's total over a request/reply channel."""

    def __init__(
        self,
        rpc_client: RpcClient,
        endpoint: Endpoint,
        logger: Optional[JohnWickLogger] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.rpc_client = rpc_client
        self.endpoint = endpoint
        self.logger = logger or JohnWickLogger("PricingGateway")
        self.metrics = metrics or MetricsCollector(self.logger)

    async def price_item(self, item: OrderItem) -> Decimal:
        self.logger.info("Requesting item total price", extra={"product_id": item.product_id, "qty": item.qty})
        self.metrics.increment(OrderMetrics.PRICING_REQUESTS)

        try:
            reply = await self.rpc_client.call(self.endpoint.channel, item.to_dict(), timeout=self.endpoint.timeout)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise self._invalid(item, "pricing request could not be sent") from exc

        if reply is None:
            raise self._invalid(item, "no pricing reply")

        price = decode_price(reply)
        if price is None:
            raise self._invalid(item, "pricing reply is not a decimal")
        if price == 0:
            raise self._invalid(item, "item priced at zero")
        if price < 0:
            raise self._invalid(item, "item priced below zero")
        return price

    def _invalid(self, item: OrderItem, reason: str) -> InvalidOrderItemError:
        self.metrics.increment(OrderMetrics.PRICING_FAILURES)
        self.logger.warning("Order item is invalid", extra={"item": item.to_dict(), "reason": reason})
        return InvalidOrderItemError("Order item is invalid")
