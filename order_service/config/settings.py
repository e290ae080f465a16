from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from order_service.shared.messaging.base import Endpoint


# ----------------------------
# General / App settings
# ----------------------------
class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="APP_", extra="ignore")

    app_name: str = "order-service"
    env_mode: str = "local"  # "local" or "docker"

    log_file: str = "order_service.log"
    log_level: str = "INFO"

    # role claim that unlocks the management operations
    admin_role: str = "ADMIN"


# ----------------------------
# Redis settings
# ----------------------------
class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="REDIS_", extra="ignore")

    host_local: str = "127.0.0.1"
    host_docker: str = "order_redis"
    port: int = 6379
    db: int = 0
    key_prefix: str = "orders"

    max_retries: int = 5
    retry_backoff: float = 0.5

    def get_host(self, env_mode: str) -> str:
        return self.host_docker if env_mode == "docker" else self.host_local

    def get_url(self, env_mode: str) -> str:
        return f"redis://{self.get_host(env_mode)}:{self.port}/{self.db}"


# ----------------------------
# Kafka settings
# ----------------------------
class KafkaSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="KAFKA_", extra="ignore")

    host_local: str = "127.0.0.1"
    host_docker: str = "order_kafka"
    port: int = 9092
    group_id: str = "order-service"
    auto_offset_reset: str = "earliest"

    max_retries: int = 5
    retry_backoff: float = 0.5

    def get_host(self, env_mode: str) -> str:
        return self.host_docker if env_mode == "docker" else self.host_local

    def get_bootstrap_servers(self, env_mode: str) -> str:
        return f"{self.get_host(env_mode)}:{self.port}"


# ----------------------------
# Messaging / collaborator settings
# ----------------------------
class MessagingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="MESSAGING_", extra="ignore")

    transport: str = "memory"  # "memory", "redis" or "kafka"
    store: str = "memory"  # "memory" or "redis"

    product_service_exchange: str = "product-service"
    notification_service_exchange: str = "notification-service"

    total_price_routing_key: str = "total-price"
    fetch_qty_routing_key: str = "fetch-qty"
    restore_qty_routing_key: str = "restore-qty"
    order_created_routing_key: str = "order-created"

    pricing_timeout: float = Field(default=5.0, gt=0)
    publish_timeout: float = Field(default=5.0, gt=0)

    def pricing_endpoint(self) -> Endpoint:
        return Endpoint(self.product_service_exchange, self.total_price_routing_key, self.pricing_timeout)

    def reserve_endpoint(self) -> Endpoint:
        return Endpoint(self.product_service_exchange, self.fetch_qty_routing_key, self.publish_timeout)

    def restore_endpoint(self) -> Endpoint:
        return Endpoint(self.product_service_exchange, self.restore_qty_routing_key, self.publish_timeout)

    def notification_endpoint(self) -> Endpoint:
        return Endpoint(self.notification_service_exchange, self.order_created_routing_key, self.publish_timeout)


# ----------------------------
# Top-level settings
# ----------------------------
class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    app: AppSettings = AppSettings()
    redis: RedisSettings = RedisSettings()
    kafka: KafkaSettings = KafkaSettings()
    messaging: MessagingSettings = MessagingSettings()
