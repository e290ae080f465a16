import asyncio
import inspect
from typing import Dict, List, Optional, Set

from order_service.shared.clients import KafkaClient
from order_service.shared.logger import JohnWickLogger
from order_service.shared.messaging.base import Callback, EventBus, Payload
from order_service.shared.metrics import BusMetrics, MetricsCollector
from order_service.shared.retry import FixedDelayRetry, RetryPolicy


class KafkaEventBus(EventBus):
    """
    EventBus over Kafka topics. A single consume loop reads every subscribed
    topic from the client's consumer and fans messages out by topic.
    """

    def __init__(
        self,
        kafka_client: KafkaClient,
        logger: Optional[JohnWickLogger] = None,
        metrics: Optional[MetricsCollector] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.kafka_client = kafka_client
        self.logger = logger or JohnWickLogger("KafkaEventBus")
        self.metrics = metrics or self.kafka_client.metrics
        self.retry_policy = retry_policy or FixedDelayRetry(max_retries=3)

        self._subscribers: Dict[str, List[Callback]] = {}
        self._subscriber_tasks: Set[asyncio.Task] = set()
        self._consume_task: Optional[asyncio.Task] = None

        self._running = False
        self._start_lock = asyncio.Lock()

    async def start(self):
        async with self._start_lock:
            if self._running:
                return
            await self.kafka_client.start()
            self._running = True
            self.logger.info("KafkaEventBus started")

    async def stop(self):
        if not self._running:
            return

        for task in list(self._subscriber_tasks):
            task.cancel()
        await asyncio.gather(*self._subscriber_tasks, return_exceptions=True)
        self._subscriber_tasks.clear()

        if self._consume_task:
            self._consume_task.cancel()
            await asyncio.gather(self._consume_task, return_exceptions=True)
            self._consume_task = None

        await self.kafka_client.stop()
        self._running = False
        self.logger.info("KafkaEventBus stopped")

    async def _ensure_started(self):
        if not self._running:
            await self.start()

    async def subscribe(self, topic: str, callback: Callback):
        await self._ensure_started()

        self._subscribers.setdefault(topic, []).append(callback)
        await self.kafka_client.subscribe_to_topics([topic])
        self.logger.info(
            "Subscription registered",
            extra={"topic": topic, "callback": getattr(callback, "__name__", str(callback))},
        )

        if self._consume_task is None or self._consume_task.done():
            self._consume_task = asyncio.create_task(self._consume_loop())

    async def publish(self, topic: str, payload: Payload, key: str = "default"):
        await self._ensure_started()

        async def _publish():
            await self.kafka_client.produce(topic=topic, value=payload, key=key)

        try:
            await self.retry_policy.execute(_publish)
        except Exception as exc:
            self.logger.error("Failed to publish", extra={"topic": topic, "error": str(exc)})
            self.metrics.increment(BusMetrics.FAILED_PUBLISH)
            raise
        self.metrics.increment(BusMetrics.PUBLISHED)

    async def _consume_loop(self):
        self.logger.info("Starting Kafka consume loop")
        async for topic, _key, value in self.kafka_client.consume():
            callbacks = self._subscribers.get(topic, [])
            if callbacks:
                self.metrics.increment(BusMetrics.CONSUMED)
            for callback in list(callbacks):
                task = asyncio.create_task(self._deliver(callback, topic, value))
                self._subscriber_tasks.add(task)
                task.add_done_callback(self._subscriber_tasks.discard)

    async def _deliver(self, callback: Callback, topic: str, value: Payload):
        try:
            result = callback(value)
            if inspect.isawaitable(result):
                await result
        except asyncio.CancelledError:
            raise
        except Exception:
            self.logger.exception("Subscriber failed", extra={"topic": topic})
            self.metrics.increment(BusMetrics.FAILED_CONSUME)
