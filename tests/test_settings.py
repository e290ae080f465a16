import pytest

from order_service.config.settings import KafkaSettings, MessagingSettings, RedisSettings, Settings


def test_defaults_match_collaborator_names():
    messaging = MessagingSettings()

    assert messaging.pricing_endpoint().channel == "product-service.total-price"
    assert messaging.reserve_endpoint().channel == "product-service.fetch-qty"
    assert messaging.restore_endpoint().channel == "product-service.restore-qty"
    assert messaging.notification_endpoint().channel == "notification-service.order-created"
    assert messaging.pricing_endpoint().timeout == 5.0


def test_env_mode_selects_host():
    redis = RedisSettings()
    kafka = KafkaSettings()

    assert redis.get_url("local") == "redis://127.0.0.1:6379/0"
    assert redis.get_url("docker") == "redis://order_redis:6379/0"
    assert kafka.get_bootstrap_servers("docker") == "order_kafka:9092"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("MESSAGING_PRICING_TIMEOUT", "1.5")
    monkeypatch.setenv("MESSAGING_TRANSPORT", "redis")
    monkeypatch.setenv("REDIS_PORT", "6390")

    messaging = MessagingSettings()

    assert messaging.pricing_endpoint().timeout == 1.5
    assert messaging.transport == "redis"
    assert RedisSettings().port == 6390


def test_timeouts_must_be_positive(monkeypatch):
    monkeypatch.setenv("MESSAGING_PUBLISH_TIMEOUT", "0")

    with pytest.raises(ValueError):
        MessagingSettings()


def test_settings_aggregate_sections():
    settings = Settings()

    assert settings.app.admin_role == "ADMIN"
    assert settings.messaging.store == "memory"
