import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from order_service.orders import InvalidOrderItemError, OrderItem
from order_service.pricing import BrokerPricingGateway, decode_price
from order_service.shared.messaging import Endpoint, RpcClient
from order_service.shared.messaging.transports import InProcessEventBus
from order_service.shared.metrics import MetricsCollector, OrderMetrics

from conftest import PRICING


@pytest.mark.parametrize(
    "reply, expected",
    [
        ("29.99", Decimal("29.99")),
        (29.99, Decimal("29.99")),
        (3, Decimal("3")),
        (Decimal("1.10"), Decimal("1.10")),
        (" 4.5 ", Decimal("4.5")),
    ],
)
def test_decode_price_accepts_numbers(reply, expected):
    assert decode_price(reply) == expected


@pytest.mark.parametrize("reply", [None, True, "abc", "NaN", "Infinity", {"price": 1}, [1]])
def test_decode_price_rejects_non_numbers(reply):
    assert decode_price(reply) is None


def make_gateway(reply=None, side_effect=None):
    rpc_client = MagicMock()
    rpc_client.call = AsyncMock(return_value=reply, side_effect=side_effect)
    metrics = MetricsCollector(MagicMock())
    return BrokerPricingGateway(rpc_client, PRICING, logger=MagicMock(), metrics=metrics), rpc_client, metrics


@pytest.mark.asyncio
async def test_price_item_sends_item_and_returns_decimal():
    gateway, rpc_client, _ = make_gateway(reply="29.99")

    price = await gateway.price_item(OrderItem("sku-1", 5))

    assert price == Decimal("29.99")
    rpc_client.call.assert_awaited_once_with(
        "product-service.total-price", {"productId": "sku-1", "qty": 5}, timeout=PRICING.timeout
    )


@pytest.mark.asyncio
@pytest.mark.parametrize("reply", [None, "0", 0, "-3.00", "abc"])
async def test_unpriceable_reply_is_invalid_item(reply):
    gateway, _, metrics = make_gateway(reply=reply)

    with pytest.raises(InvalidOrderItemError) as exc_info:
        await gateway.price_item(OrderItem("sku-1", 1))

    assert exc_info.value.message == "Order item is invalid"
    assert metrics.get(OrderMetrics.PRICING_FAILURES) == 1


@pytest.mark.asyncio
async def test_publish_failure_is_invalid_item():
    gateway, _, _ = make_gateway(side_effect=ConnectionError("broker down"))

    with pytest.raises(InvalidOrderItemError) as exc_info:
        await gateway.price_item(OrderItem("sku-1", 1))

    assert isinstance(exc_info.value.__cause__, ConnectionError)


@pytest.mark.asyncio
async def test_calculate_total_sums_items():
    gateway, _, _ = make_gateway()
    gateway.rpc_client.call.side_effect = ["10.00", "2.50"]

    total = await gateway.calculate_total([OrderItem("a", 1), OrderItem("b", 5)])

    assert total == Decimal("12.50")


@pytest.mark.asyncio
async def test_calculate_total_stops_at_first_failure():
    gateway, rpc_client, _ = make_gateway()
    rpc_client.call.side_effect = ["10.00", None, "7.00"]

    with pytest.raises(InvalidOrderItemError):
        await gateway.calculate_total([OrderItem("a", 1), OrderItem("b", 1), OrderItem("c", 1)])

    assert rpc_client.call.await_count == 2


@pytest.mark.asyncio
async def test_stalled_broker_publish_is_invalid_item_within_timeout():
    class StalledBus(InProcessEventBus):
        async def publish(self, channel, payload):
            await asyncio.Event().wait()

    rpc_client = RpcClient(StalledBus(logger=MagicMock()), logger=MagicMock())
    gateway = BrokerPricingGateway(
        rpc_client, Endpoint("product-service", "total-price", timeout=0.2), logger=MagicMock()
    )

    with pytest.raises(InvalidOrderItemError):
        await asyncio.wait_for(gateway.price_item(OrderItem("sku-1", 1)), timeout=2)
