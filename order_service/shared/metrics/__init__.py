from order_service.shared.metrics.metrics_collector import MetricsCollector
from order_service.shared.metrics.metrics_schema import (
    BusMetrics,
    KafkaMetrics,
    OrderMetrics,
    RedisMetrics,
)

__all__ = ["MetricsCollector", "BusMetrics", "KafkaMetrics", "OrderMetrics", "RedisMetrics"]
