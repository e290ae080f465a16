import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from order_service.inventory import InventoryPublisher
from order_service.shared.messaging import Endpoint
from order_service.shared.metrics import MetricsCollector, OrderMetrics

from conftest import make_order

FAST_RESERVE = Endpoint("product-service", "fetch-qty", timeout=0.05)
SLOW_RESTORE = Endpoint("product-service", "restore-qty", timeout=2.0)


def make_publisher():
    bus = MagicMock()
    bus.publish = AsyncMock()
    metrics = MetricsCollector(MagicMock())
    publisher = InventoryPublisher(bus, FAST_RESERVE, SLOW_RESTORE, logger=MagicMock(), metrics=metrics)
    return publisher, bus, metrics


@pytest.mark.asyncio
async def test_reserve_and_restore_payloads():
    publisher, bus, _ = make_publisher()
    order = make_order("o-1")

    assert await publisher.reserve(order) is True
    assert await publisher.restore(order) is True

    payload = {"orderId": "o-1", "orderItems": [{"productId": "sku-1", "qty": 2}]}
    assert [c.args for c in bus.publish.await_args_list] == [
        ("product-service.fetch-qty", payload),
        ("product-service.restore-qty", payload),
    ]


@pytest.mark.asyncio
async def test_parked_event_keeps_its_endpoint_timeout():
    publisher, bus, _ = make_publisher()
    bus.publish.side_effect = ConnectionError("broker down")

    assert await publisher.restore(make_order("o-1")) is False

    (pending,) = publisher.pending()
    assert pending.kind == InventoryPublisher.RESTORE
    assert pending.timeout == SLOW_RESTORE.timeout


@pytest.mark.asyncio
async def test_redelivered_restore_uses_restore_timeout():
    publisher, bus, metrics = make_publisher()
    bus.publish.side_effect = ConnectionError("broker down")
    await publisher.restore(make_order("o-1"))

    async def slow_publish(channel, payload):
        # slower than the reserve timeout, well within the restore timeout
        await asyncio.sleep(0.2)

    bus.publish.side_effect = slow_publish

    assert await publisher.redeliver() == 1
    assert publisher.pending() == []
    assert metrics.get(OrderMetrics.INVENTORY_REDELIVERED) == 1
