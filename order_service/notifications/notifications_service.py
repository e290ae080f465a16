import asyncio
from typing import Optional

from order_service.orders.models import EmailDetails, Order
from order_service.shared.logger import JohnWickLogger
from order_service.shared.messaging import Endpoint, EventBus
from order_service.shared.metrics import MetricsCollector, OrderMetrics


class NotificationService:
    """
    Publishes the order-confirmation email request. Best effort: a failed
    publish is logged and counted, and never reaches the caller.
    """

    def __init__(
        self,
        event_bus: EventBus,
        endpoint: Endpoint,
        logger: Optional[JohnWickLogger] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.event_bus = event_bus
        self.endpoint = endpoint
        self.logger = logger or JohnWickLogger("NotificationService")
        self.metrics = metrics or MetricsCollector(self.logger)

    async def send_order_created(self, order: Order) -> bool:
        """Returns whether the notification was handed to the broker."""
        details = EmailDetails.for_order(order)
        self.logger.info("Sending order created email", extra={"order_id": order.id})
        try:
            await asyncio.wait_for(
                self.event_bus.publish(self.endpoint.channel, details.to_dict()),
                timeout=self.endpoint.timeout,
            )
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.metrics.increment(OrderMetrics.NOTIFICATIONS_FAILED)
            self.logger.exception(
                "Order created email could not be sent",
                extra={"order_id": order.id, "channel": self.endpoint.channel, "error": str(exc)},
            )
            return False
        self.metrics.increment(OrderMetrics.NOTIFICATIONS_SENT)
        return True
