from order_service.shared.clients.kafka_client import KafkaClient
from order_service.shared.clients.redis_client import RedisClient

__all__ = ["KafkaClient", "RedisClient"]
