from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Optional

from order_service.config.logger import get_logger
from order_service.config.settings import Settings
from order_service.inventory import InventoryPublisher
from order_service.notifications import NotificationService
from order_service.orders.lifecycle import OrderLifecycle
from order_service.orders.management_service import OrderManagementService
from order_service.orders.order_service import OrderService
from order_service.orders.repository import InMemoryOrderStore, OrderStore, RedisOrderStore
from order_service.pricing import BrokerPricingGateway
from order_service.shared.clients import RedisClient
from order_service.shared.health import HealthChecker
from order_service.shared.messaging import EventBus, RpcClient
from order_service.shared.messaging.event_bus_factory import EventBusFactory
from order_service.shared.metrics import MetricsCollector
from order_service.shared.retry import ExponentialBackoffRetry


@lru_cache
def get_settings() -> Settings:
    return Settings()


# ----------------------------
# Redis client factory
# ----------------------------
@lru_cache
def get_redis_client() -> RedisClient:
    settings = get_settings()
    return RedisClient(
        redis_url=settings.redis.get_url(settings.app.env_mode),
        logger=get_logger("RedisClient"),
        retry_policy=ExponentialBackoffRetry(
            max_retries=settings.redis.max_retries,
            base_delay=settings.redis.retry_backoff,
        ),
    )


# ----------------------------
# EventBus factory
# ----------------------------
def bus_config_from(settings: Settings) -> Dict[str, Any]:
    """EventBusFactory config equivalent to the environment settings."""
    env_mode = settings.app.env_mode
    return {
        "messaging": {"eventbus": {"transport": settings.messaging.transport}},
        "redis": {
            "host": settings.redis.get_host(env_mode),
            "port": settings.redis.port,
            "db": settings.redis.db,
            "max_retries": settings.redis.max_retries,
            "retry_backoff": settings.redis.retry_backoff,
        },
        "kafka": {
            "bootstrap_servers": settings.kafka.get_bootstrap_servers(env_mode),
            "group_id": settings.kafka.group_id,
            "auto_offset_reset": settings.kafka.auto_offset_reset,
            "max_retries": settings.kafka.max_retries,
            "retry_backoff": settings.kafka.retry_backoff,
        },
    }


def get_event_bus() -> EventBus:
    """Messaging config file if present, otherwise the environment settings."""
    config = EventBusFactory.load_config(fallback=bus_config_from(get_settings()))
    return EventBusFactory.create_event_bus(config)


# ----------------------------
# Order store factory
# ----------------------------
def get_order_store(settings: Optional[Settings] = None) -> OrderStore:
    settings = settings or get_settings()
    if settings.messaging.store == "redis":
        return RedisOrderStore(
            redis_client=get_redis_client(),
            key_prefix=settings.redis.key_prefix,
            logger=get_logger("RedisOrderStore"),
        )
    return InMemoryOrderStore(logger=get_logger("InMemoryOrderStore"))


# ----------------------------
# Health
# ----------------------------
def get_health_checker(settings: Optional[Settings] = None) -> HealthChecker:
    settings = settings or get_settings()
    env_mode = settings.app.env_mode
    uses_redis = "redis" in (settings.messaging.transport, settings.messaging.store)
    uses_kafka = settings.messaging.transport == "kafka"
    return HealthChecker(
        logger=get_logger("HealthChecker"),
        redis_client=get_redis_client() if uses_redis else None,
        kafka_address=(settings.kafka.get_host(env_mode), settings.kafka.port) if uses_kafka else None,
    )


# ----------------------------
# Order services
# ----------------------------
@dataclass
class OrderServices:
    event_bus: EventBus
    rpc_client: RpcClient
    inventory: InventoryPublisher
    lifecycle: OrderLifecycle
    orders: OrderService
    management: OrderManagementService
    metrics: MetricsCollector

    async def start(self):
        await self.event_bus.start()
        await self.rpc_client.start()

    async def stop(self):
        await self.event_bus.stop()


def build_order_services(
    settings: Optional[Settings] = None,
    event_bus: Optional[EventBus] = None,
    store: Optional[OrderStore] = None,
) -> OrderServices:
    """Wire the lifecycle engine and both views from settings; any piece can be supplied."""
    settings = settings or get_settings()
    messaging = settings.messaging
    event_bus = event_bus or get_event_bus()
    store = store or get_order_store(settings)

    logger = get_logger("OrderLifecycle")
    metrics = MetricsCollector(logger)

    rpc_client = RpcClient(event_bus, logger=get_logger("RpcClient"), metrics=metrics)
    inventory = InventoryPublisher(
        event_bus,
        reserve_endpoint=messaging.reserve_endpoint(),
        restore_endpoint=messaging.restore_endpoint(),
        logger=get_logger("InventoryPublisher"),
        metrics=metrics,
    )
    lifecycle = OrderLifecycle(
        store=store,
        pricing=BrokerPricingGateway(
            rpc_client, messaging.pricing_endpoint(), logger=get_logger("PricingGateway"), metrics=metrics
        ),
        notifications=NotificationService(
            event_bus, messaging.notification_endpoint(), logger=get_logger("NotificationService"), metrics=metrics
        ),
        inventory=inventory,
        logger=logger,
        metrics=metrics,
    )
    return OrderServices(
        event_bus=event_bus,
        rpc_client=rpc_client,
        inventory=inventory,
        lifecycle=lifecycle,
        orders=OrderService(lifecycle, logger=get_logger("OrderService")),
        management=OrderManagementService(
            lifecycle, admin_role=settings.app.admin_role, logger=get_logger("OrderManagementService")
        ),
        metrics=metrics,
    )
