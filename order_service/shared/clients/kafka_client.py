import asyncio
import json
from typing import AsyncIterator, List, Optional, Tuple

from aiokafka import AIOKafkaConsumer, AIOKafkaProducer

from order_service.shared.logger import JohnWickLogger
from order_service.shared.metrics import KafkaMetrics, MetricsCollector
from order_service.shared.retry import FixedDelayRetry, RetryPolicy


class KafkaClient:
    """Async Kafka client with retries, metrics, JSON payloads and late topic subscription."""

    def __init__(
        self,
        bootstrap_servers: str,
        group_id: str = "order-service",
        auto_offset_reset: str = "earliest",
        topics: Optional[List[str]] = None,
        logger: Optional[JohnWickLogger] = None,
        metrics: Optional[MetricsCollector] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.bootstrap_servers = bootstrap_servers
        self.group_id = group_id
        # new topics (such as a per-process reply topic) are read from their start
        self.auto_offset_reset = auto_offset_reset
        self.topics: List[str] = list(topics or [])
        self.logger = logger or JohnWickLogger("KafkaClient")
        self.metrics = metrics or MetricsCollector(self.logger)
        self.retry_policy: RetryPolicy = retry_policy or FixedDelayRetry(max_retries=3)

        self._producer: Optional[AIOKafkaProducer] = None
        self._consumer: Optional[AIOKafkaConsumer] = None
        self._running = False
        self._start_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._running

    async def start(self):
        """Start the producer, and the consumer when topics are already known."""
        async with self._start_lock:
            if self._running:
                return

            async def _start_producer():
                self._producer = AIOKafkaProducer(bootstrap_servers=self.bootstrap_servers)
                await self._producer.start()
                self.logger.info("Kafka producer started", extra={"bootstrap_servers": self.bootstrap_servers})

            try:
                await self.retry_policy.execute(_start_producer)
                if self.topics:
                    await self.retry_policy.execute(self._start_consumer)
                self._running = True
            except Exception as exc:
                self.logger.error("Failed to start KafkaClient", extra={"error": str(exc)})
                raise

    async def _start_consumer(self):
        self._consumer = AIOKafkaConsumer(
            *self.topics,
            bootstrap_servers=self.bootstrap_servers,
            group_id=self.group_id,
            auto_offset_reset=self.auto_offset_reset,
        )
        await self._consumer.start()
        self.logger.info("Kafka consumer started", extra={"group_id": self.group_id, "topics": self.topics})

    async def stop(self):
        if not self._running:
            return
        if self._consumer:
            await self._consumer.stop()
            self._consumer = None
            self.logger.info("Kafka consumer stopped")
        if self._producer:
            await self._producer.stop()
            self._producer = None
            self.logger.info("Kafka producer stopped")
        self._running = False

    async def produce(self, topic: str, value, key: str = "default"):
        """Publish a JSON-encoded message with retry."""
        if not self._running:
            await self.start()

        async def _produce():
            await self._producer.send_and_wait(topic, json.dumps(value).encode("utf-8"), key=key.encode())

        try:
            await self.retry_policy.execute(_produce)
        except Exception as exc:
            self.logger.error("Failed to produce message", extra={"topic": topic, "key": key, "error": str(exc)})
            self.metrics.increment(KafkaMetrics.FAILED_PRODUCE)
            raise
        self.metrics.increment(KafkaMetrics.PRODUCED)
        self.logger.debug("Message produced", extra={"topic": topic, "key": key})

    async def subscribe_to_topics(self, topics: List[str]):
        """Add topics to the consumer subscription, creating the consumer on first use."""
        if not self._running:
            await self.start()

        new_topics = [t for t in topics if t not in self.topics]
        self.topics.extend(new_topics)
        if self._consumer is None:
            await self.retry_policy.execute(self._start_consumer)
        elif new_topics:
            self._consumer.subscribe(self.topics)
        self.logger.info("Consumer subscribed to topics", extra={"topics": self.topics})

    async def consume(self) -> AsyncIterator[Tuple[str, str, object]]:
        """Async generator yielding (topic, key, value) for every consumed message."""
        if not self._running:
            await self.start()
        if self._consumer is None:
            raise RuntimeError("Kafka consumer not initialized")

        try:
            async for msg in self._consumer:
                key = msg.key.decode() if msg.key else "default"
                try:
                    value = json.loads(msg.value)
                except (TypeError, ValueError):
                    self.logger.warning("Skipping undecodable Kafka message", extra={"topic": msg.topic})
                    self.metrics.increment(KafkaMetrics.FAILED_PROCESS)
                    continue
                self.metrics.increment(KafkaMetrics.PROCESSED)
                yield msg.topic, key, value
        except asyncio.CancelledError:
            self.logger.info("Kafka consume task cancelled")
            raise
        except Exception as exc:
            self.logger.error("Kafka consume error", extra={"error": str(exc)})
            self.metrics.increment(KafkaMetrics.FAILED_PROCESS)
            raise
