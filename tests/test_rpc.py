import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from order_service.shared.messaging import Endpoint, RpcClient, RpcResponder, channel_for
from order_service.shared.messaging.rpc import BODY, CORRELATION_ID, REPLY_TO
from order_service.shared.messaging.transports import InProcessEventBus
from order_service.shared.metrics import BusMetrics, MetricsCollector


def make_bus():
    return InProcessEventBus(logger=MagicMock(), retry_delay=0)


def test_endpoint_channel_and_validation():
    endpoint = Endpoint("product-service", "total-price", timeout=2)
    assert endpoint.channel == channel_for("product-service", "total-price") == "product-service.total-price"
    with pytest.raises(ValueError):
        Endpoint("", "total-price")
    with pytest.raises(ValueError):
        Endpoint("product-service", "total-price", timeout=0)


@pytest.mark.asyncio
async def test_call_returns_reply_body():
    bus = make_bus()
    await RpcResponder(bus, "math.double", lambda body: body["n"] * 2, logger=MagicMock()).start()
    client = RpcClient(bus, logger=MagicMock())

    assert await client.call("math.double", {"n": 21}, timeout=1) == 42
    assert client.pending == 0


@pytest.mark.asyncio
async def test_async_handler_is_awaited():
    bus = make_bus()

    async def handler(body):
        await asyncio.sleep(0)
        return body.upper()

    await RpcResponder(bus, "text.upper", handler, logger=MagicMock()).start()
    client = RpcClient(bus, logger=MagicMock())

    assert await client.call("text.upper", "hi", timeout=1) == "HI"


@pytest.mark.asyncio
async def test_concurrent_calls_get_their_own_replies():
    bus = make_bus()

    async def slow_echo(body):
        await asyncio.sleep(0.01 * (5 - body))
        return body

    await RpcResponder(bus, "echo", slow_echo, logger=MagicMock()).start()
    client = RpcClient(bus, logger=MagicMock())

    results = await asyncio.gather(*(client.call("echo", n, timeout=1) for n in range(5)))

    assert results == [0, 1, 2, 3, 4]


@pytest.mark.asyncio
async def test_no_reply_times_out_to_none():
    metrics = MetricsCollector(MagicMock())
    client = RpcClient(make_bus(), logger=MagicMock(), metrics=metrics)

    assert await client.call("nobody.home", {}, timeout=0.05) is None
    assert client.pending == 0
    assert metrics.get(BusMetrics.RPC_TIMEOUTS) == 1


@pytest.mark.asyncio
async def test_late_reply_is_dropped():
    bus = make_bus()
    metrics = MetricsCollector(MagicMock())
    client = RpcClient(bus, reply_channel="replies", logger=MagicMock(), metrics=metrics)
    requests = []
    await bus.subscribe("slow", requests.append)

    assert await client.call("slow", {}, timeout=0.05) is None

    await bus.publish("replies", {CORRELATION_ID: requests[0][CORRELATION_ID], BODY: "too late"})
    await bus.join()

    assert metrics.get(BusMetrics.RPC_UNMATCHED) == 1
    assert client.pending == 0


@pytest.mark.asyncio
async def test_request_envelope_shape():
    bus = make_bus()
    client = RpcClient(bus, reply_channel="replies", logger=MagicMock())
    requests = []
    await bus.subscribe("inspect", requests.append)

    await client.call("inspect", {"productId": "sku-1", "qty": 1}, timeout=0.05)

    (request,) = requests
    assert request[REPLY_TO] == "replies"
    assert request[BODY] == {"productId": "sku-1", "qty": 1}
    assert isinstance(request[CORRELATION_ID], str)


@pytest.mark.asyncio
async def test_publish_errors_propagate():
    bus = MagicMock()
    bus.subscribe = AsyncMock()
    bus.publish = AsyncMock(side_effect=ConnectionError("down"))
    client = RpcClient(bus, logger=MagicMock())

    with pytest.raises(ConnectionError):
        await client.call("anything", {}, timeout=1)
    assert client.pending == 0


@pytest.mark.asyncio
async def test_start_subscribes_once():
    bus = MagicMock()
    bus.subscribe = AsyncMock()
    client = RpcClient(bus, reply_channel="replies", logger=MagicMock())

    await client.start()
    await client.start()

    bus.subscribe.assert_awaited_once_with("replies", client._on_reply)


@pytest.mark.asyncio
async def test_responder_ignores_malformed_requests():
    bus = make_bus()
    handler = MagicMock()
    await RpcResponder(bus, "svc", handler, logger=MagicMock()).start()

    await bus.publish("svc", {"no": "reply channel"})
    await bus.join()

    handler.assert_not_called()


class StalledBus(InProcessEventBus):
    """Accepts subscriptions but never finishes a publish."""

    async def publish(self, channel, payload):
        await asyncio.Event().wait()


@pytest.mark.asyncio
async def test_timeout_covers_a_publish_that_never_returns():
    metrics = MetricsCollector(MagicMock())
    client = RpcClient(StalledBus(logger=MagicMock()), logger=MagicMock(), metrics=metrics)

    assert await asyncio.wait_for(client.call("stuck", {}, timeout=0.1), timeout=2) is None
    assert client.pending == 0
    assert metrics.get(BusMetrics.RPC_TIMEOUTS) == 1
