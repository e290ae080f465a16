import configparser
import copy
import os
from typing import Any, Dict, Optional

import yaml

from order_service.shared.clients import KafkaClient, RedisClient
from order_service.shared.logger import JohnWickLogger
from order_service.shared.messaging.base import EventBus
from order_service.shared.metrics import MetricsCollector
from order_service.shared.retry import ExponentialBackoffRetry

VALID_TRANSPORTS = {"memory", "redis", "kafka"}

DEFAULT_YAML = "messaging.eventbus.yml"
DEFAULT_PROPERTIES = "messaging.eventbus.properties"

# fields that must exist
REQUIRED = {
    "redis": ["host", "port"],
    "kafka": ["bootstrap_servers"],
}

# fields that can default
DEFAULTS = {
    "redis": {"db": 0, "max_retries": 5, "retry_backoff": 0.5},
    "kafka": {
        "group_id": "order-service",
        "auto_offset_reset": "earliest",
        "max_retries": 5,
        "retry_backoff": 0.5,
    },
}


class EventBusFactory:
    """Builds the configured EventBus once per process and hands out the same instance."""

    _event_bus: Optional[EventBus] = None

    @staticmethod
    def load_config(
        yaml_path: str = DEFAULT_YAML,
        properties_path: str = DEFAULT_PROPERTIES,
        fallback: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Load messaging configuration from YAML, then .properties, then `fallback`
        (or the in-memory transport), and validate it.
        """
        logger = JohnWickLogger("EventBusFactory")

        if os.path.exists(yaml_path):
            with open(yaml_path, "r") as f:
                config = yaml.safe_load(f) or {}
            logger.info("Loaded messaging config from YAML", extra={"path": yaml_path})
        elif os.path.exists(properties_path):
            parser = configparser.ConfigParser()
            parser.read(properties_path)
            config = {}
            # dotted sections nest: [messaging.eventbus] -> config["messaging"]["eventbus"]
            for section in parser.sections():
                node = config
                for part in section.split("."):
                    node = node.setdefault(part, {})
                node.update(dict(parser.items(section)))
            logger.info("Loaded messaging config from properties", extra={"path": properties_path})
        elif fallback is not None:
            config = copy.deepcopy(fallback)
            logger.info("No messaging config file found, using settings")
        else:
            logger.warning("No messaging config file found, defaulting to in-memory transport")
            config = {"messaging": {"eventbus": {"transport": "memory"}}}

        return EventBusFactory.validate(config)

    @staticmethod
    def validate(config: Dict[str, Any]) -> Dict[str, Any]:
        """Check the transport name, required keys, and fill defaults in place."""
        logger = JohnWickLogger("EventBusFactory")

        bus_cfg = config.setdefault("messaging", {}).setdefault("eventbus", {})
        transport = str(bus_cfg.get("transport", "memory")).lower()
        if transport not in VALID_TRANSPORTS:
            raise ValueError(
                f"Invalid transport '{transport}'. Must be one of {', '.join(sorted(VALID_TRANSPORTS))}"
            )
        bus_cfg["transport"] = transport

        if transport in REQUIRED:
            section = config.setdefault(transport, {})
            for key in REQUIRED[transport]:
                if key not in section:
                    raise ValueError(f"Missing required {transport} config: '{key}'")
            for key, default_val in DEFAULTS[transport].items():
                if key not in section:
                    section[key] = default_val
                    logger.debug(f"{transport} config missing '{key}', using default '{default_val}'")

        logger.info("Messaging configuration validated", extra={"transport": transport})
        return config

    @classmethod
    def create_event_bus(cls, config: Optional[Dict[str, Any]] = None) -> EventBus:
        """Return the process-wide EventBus, creating it from `config` on first call."""
        if cls._event_bus is not None:
            return cls._event_bus

        config = cls.validate(copy.deepcopy(config)) if config is not None else cls.load_config()
        logger = JohnWickLogger("EventBusFactory")
        transport = config["messaging"]["eventbus"]["transport"]

        if transport == "redis":
            from order_service.shared.messaging.transports.redis_bus import RedisEventBus

            redis_cfg = config["redis"]
            retry = ExponentialBackoffRetry(
                max_retries=int(redis_cfg["max_retries"]), base_delay=float(redis_cfg["retry_backoff"])
            )
            redis_url = f"redis://{redis_cfg['host']}:{int(redis_cfg['port'])}/{int(redis_cfg['db'])}"
            bus_logger = JohnWickLogger("RedisEventBus")
            cls._event_bus = RedisEventBus(
                redis_client=RedisClient(redis_url=redis_url, retry_policy=retry),
                logger=bus_logger,
                metrics=MetricsCollector(bus_logger),
                retry_policy=retry,
            )
            logger.info("Created RedisEventBus", extra={"redis_url": redis_url})

        elif transport == "kafka":
            from order_service.shared.messaging.transports.kafka_bus import KafkaEventBus

            kafka_cfg = config["kafka"]
            retry = ExponentialBackoffRetry(
                max_retries=int(kafka_cfg["max_retries"]), base_delay=float(kafka_cfg["retry_backoff"])
            )
            bus_logger = JohnWickLogger("KafkaEventBus")
            kafka_client = KafkaClient(
                bootstrap_servers=kafka_cfg["bootstrap_servers"],
                group_id=kafka_cfg["group_id"],
                auto_offset_reset=kafka_cfg["auto_offset_reset"],
                retry_policy=retry,
            )
            cls._event_bus = KafkaEventBus(
                kafka_client=kafka_client,
                logger=bus_logger,
                metrics=MetricsCollector(bus_logger),
                retry_policy=retry,
            )
            logger.info("Created KafkaEventBus", extra={"bootstrap_servers": kafka_cfg["bootstrap_servers"]})

        else:
            from order_service.shared.messaging.transports.in_process_bus import InProcessEventBus

            cls._event_bus = InProcessEventBus()
            logger.info("Created InProcessEventBus")

        return cls._event_bus

    @classmethod
    def reset(cls):
        """Forget the cached bus (tests and reconfiguration)."""
        cls._event_bus = None
