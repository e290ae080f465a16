from unittest.mock import AsyncMock, MagicMock

import pytest

from order_service.notifications import NotificationService
from order_service.shared.metrics import MetricsCollector, OrderMetrics

from conftest import NOTIFY, make_order


def make_service(publish):
    bus = MagicMock()
    bus.publish = publish
    metrics = MetricsCollector(MagicMock())
    return NotificationService(bus, NOTIFY, logger=MagicMock(), metrics=metrics), bus, metrics


@pytest.mark.asyncio
async def test_sends_email_details():
    service, bus, metrics = make_service(AsyncMock())

    assert await service.send_order_created(make_order(user_id="u-9", total="12.00")) is True

    bus.publish.assert_awaited_once_with(
        "notification-service.order-created",
        {"userId": "u-9", "orderTime": "2024-03-01", "totalPrice": "12.00"},
    )
    assert metrics.get(OrderMetrics.NOTIFICATIONS_SENT) == 1


@pytest.mark.asyncio
async def test_publish_failure_is_logged_not_raised():
    service, _, metrics = make_service(AsyncMock(side_effect=ConnectionError("down")))

    assert await service.send_order_created(make_order()) is False

    assert metrics.get(OrderMetrics.NOTIFICATIONS_FAILED) == 1
    service.logger.exception.assert_called_once()
