from order_service.shared.messaging.transports.in_process_bus import InProcessEventBus
from order_service.shared.messaging.transports.kafka_bus import KafkaEventBus
from order_service.shared.messaging.transports.redis_bus import RedisEventBus

__all__ = ["InProcessEventBus", "KafkaEventBus", "RedisEventBus"]
