class OrderMetrics:
    """Metric keys for the order lifecycle"""
    ORDERS_CREATED = "orders_created"
    ORDERS_DELETED = "orders_deleted"
    ORDERS_REJECTED = "orders_rejected"
    PRICING_REQUESTS = "pricing_requests"
    PRICING_FAILURES = "pricing_failures"
    NOTIFICATIONS_SENT = "notifications_sent"
    NOTIFICATIONS_FAILED = "notifications_failed"
    INVENTORY_PUBLISHED = "inventory_events_published"
    INVENTORY_FAILED = "inventory_events_failed"
    INVENTORY_REDELIVERED = "inventory_events_redelivered"


class BusMetrics:
    """Metric keys shared by every EventBus transport"""
    PUBLISHED = "published"
    FAILED_PUBLISH = "failed_publish"
    CONSUMED = "consumed"
    FAILED_CONSUME = "failed_consume"
    RPC_CALLS = "rpc_calls"
    RPC_TIMEOUTS = "rpc_timeouts"
    RPC_UNMATCHED = "rpc_unmatched_replies"
    RPC_SERVED = "rpc_served"


class KafkaMetrics:
    """Metric keys for KafkaClient"""
    PRODUCED = "produced"
    FAILED_PRODUCE = "failed_produce"
    PROCESSED = "processed"
    FAILED_PROCESS = "failed_process"


class RedisMetrics:
    """Metric keys for RedisClient"""
    PING = "redis_ping"
    GET = "redis_get"
    INDEX = "redis_index"
    TRANSACTION = "redis_transaction"
    FAILED_PING = "redis_failed_ping"
    FAILED_GET = "redis_failed_get"
    FAILED_INDEX = "redis_failed_index"
    FAILED_TRANSACTION = "redis_failed_transaction"
