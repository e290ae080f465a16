import asyncio
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Deque, List, Optional

from order_service.orders.models import Order, items_to_wire
from order_service.shared.logger import JohnWickLogger
from order_service.shared.messaging import Endpoint, EventBus
from order_service.shared.metrics import MetricsCollector, OrderMetrics


@dataclass
class PendingEvent:
    """An inventory event that could not be published after its store change committed."""

    kind: str
    channel: str
    payload: dict
    order_id: str
    error: str
    timeout: float
    failed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    attempts: int = 1


class InventoryPublisher:
    """
    Emits reserve/restore quantity events to the product service.

    The store change has already happened when these run, so a failed publish is
    not raised. It is logged at error level, counted, and parked in `outbox`
    until an operator calls `redeliver()`.
    """

    RESERVE = "reserve"
    RESTORE = "restore"

    def __init__(
        self,
        event_bus: EventBus,
        reserve_endpoint: Endpoint,
        restore_endpoint: Endpoint,
        logger: Optional[JohnWickLogger] = None,
        metrics: Optional[MetricsCollector] = None,
        outbox_limit: int = 10_000,
    ):
        self.event_bus = event_bus
        self.reserve_endpoint = reserve_endpoint
        self.restore_endpoint = restore_endpoint
        self.logger = logger or JohnWickLogger("InventoryPublisher")
        self.metrics = metrics or MetricsCollector(self.logger)
        self.outbox: Deque[PendingEvent] = deque(maxlen=outbox_limit)

    async def reserve(self, order: Order) -> bool:
        """Ask the product service to take the ordered quantities out of stock."""
        return await self._publish(self.RESERVE, self.reserve_endpoint, order)

    async def restore(self, order: Order) -> bool:
        """Ask the product service to put a deleted order's quantities back."""
        return await self._publish(self.RESTORE, self.restore_endpoint, order)

    async def _publish(self, kind: str, endpoint: Endpoint, order: Order) -> bool:
        payload = {"orderId": order.id, "orderItems": items_to_wire(order.items)}
        self.logger.info(f"Sending {kind} quantity message", extra={"order_id": order.id})
        try:
            await self._send(endpoint, payload)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.metrics.increment(OrderMetrics.INVENTORY_FAILED)
            self.outbox.append(
                PendingEvent(
                    kind=kind,
                    channel=endpoint.channel,
                    payload=payload,
                    order_id=order.id,
                    error=str(exc),
                    timeout=endpoint.timeout,
                )
            )
            self.logger.error(
                f"{kind} quantity message lost; inventory out of sync until redelivered",
                extra={"order_id": order.id, "channel": endpoint.channel, "error": str(exc)},
            )
            return False
        self.metrics.increment(OrderMetrics.INVENTORY_PUBLISHED)
        return True

    async def _send(self, endpoint: Endpoint, payload: dict):
        await asyncio.wait_for(self.event_bus.publish(endpoint.channel, payload), timeout=endpoint.timeout)

    def pending(self) -> List[PendingEvent]:
        return list(self.outbox)

    async def redeliver(self) -> int:
        """
        Retry every parked event once, in the order they failed.
        Events that fail again stay in the outbox. Returns how many went out.
        """
        delivered = 0
        for _ in range(len(self.outbox)):
            event = self.outbox.popleft()
            try:
                await asyncio.wait_for(self.event_bus.publish(event.channel, event.payload), timeout=event.timeout)
            except asyncio.CancelledError:
                self.outbox.appendleft(event)
                raise
            except Exception as exc:
                event.attempts += 1
                event.error = str(exc)
                self.outbox.append(event)
                self.logger.warning(
                    "Redelivery failed",
                    extra={"order_id": event.order_id, "kind": event.kind, "attempts": event.attempts},
                )
                continue
            delivered += 1
            self.metrics.increment(OrderMetrics.INVENTORY_REDELIVERED)

        self.logger.info("Outbox redelivery finished", extra={"delivered": delivered, "remaining": len(self.outbox)})
        return delivered
