import asyncio
import inspect
import json
from typing import Dict, List, Optional, Set

from order_service.shared.clients import RedisClient
from order_service.shared.logger import JohnWickLogger
from order_service.shared.messaging.base import Callback, EventBus, Payload
from order_service.shared.metrics import BusMetrics, MetricsCollector
from order_service.shared.retry import FixedDelayRetry, RetryPolicy


class RedisEventBus(EventBus):
    """
    EventBus over Redis pub/sub. One pubsub connection and consume loop per
    channel; the subscription is confirmed before `subscribe()` returns, so
    replies published right after are not missed.
    """

    def __init__(
        self,
        redis_client: RedisClient,
        logger: Optional[JohnWickLogger] = None,
        metrics: Optional[MetricsCollector] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.logger = logger or JohnWickLogger(name="RedisEventBus")
        self.redis_client = redis_client
        self.metrics = metrics or MetricsCollector(self.logger)
        self.retry_policy = retry_policy or FixedDelayRetry(max_retries=3)

        self.subscribers: Dict[str, List[Callback]] = {}
        self._consume_tasks: Dict[str, asyncio.Task] = {}
        self._subscriber_tasks: Set[asyncio.Task] = set()

        self._running = False
        self._start_lock = asyncio.Lock()

    async def start(self):
        async with self._start_lock:
            if not self._running:
                await self.redis_client.connect()
                self._running = True
                self.logger.info("RedisEventBus started")

    async def stop(self):
        if not self._running:
            return
        self._running = False

        for task in list(self._subscriber_tasks):
            task.cancel()
        await asyncio.gather(*self._subscriber_tasks, return_exceptions=True)
        self._subscriber_tasks.clear()

        for task in self._consume_tasks.values():
            task.cancel()
        await asyncio.gather(*self._consume_tasks.values(), return_exceptions=True)
        self._consume_tasks.clear()

        await self.redis_client.close()
        self.logger.info("RedisEventBus stopped")

    async def _ensure_started(self):
        if not self._running:
            await self.start()

    async def publish(self, channel: str, payload: Payload):
        await self._ensure_started()
        message = json.dumps(payload)

        async def _publish():
            await self.redis_client.redis.publish(channel, message)

        try:
            await self.retry_policy.execute(_publish)
        except Exception:
            self.logger.error("Failed to publish", extra={"channel": channel})
            self.metrics.increment(BusMetrics.FAILED_PUBLISH)
            raise
        self.metrics.increment(BusMetrics.PUBLISHED)
        self.logger.debug("Published event", extra={"channel": channel})

    async def subscribe(self, channel: str, callback: Callback):
        await self._ensure_started()
        self.subscribers.setdefault(channel, []).append(callback)

        if channel not in self._consume_tasks:
            pubsub = await self._open_pubsub(channel)
            self._consume_tasks[channel] = asyncio.create_task(self._consume_loop(channel, pubsub))

        self.logger.info("Subscription registered", extra={"channel": channel})

    async def _open_pubsub(self, channel: str):
        pubsub = self.redis_client.redis.pubsub()
        await pubsub.subscribe(channel)
        return pubsub

    async def _consume_loop(self, channel: str, pubsub):
        try:
            while self._running:
                try:
                    async for message in pubsub.listen():
                        if message["type"] == "message":
                            self._dispatch(channel, message["data"])
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    self.logger.warning(
                        f"Consume loop error for channel={channel}, reconnecting",
                        extra={"error": str(exc)},
                    )
                    await self._close_pubsub(pubsub, channel)

                    async def _reconnect():
                        await self.redis_client.connect()
                        return await self._open_pubsub(channel)

                    try:
                        pubsub = await self.retry_policy.execute(_reconnect)
                    except Exception:
                        self.logger.error("Reconnect failed, stopping consumer", extra={"channel": channel})
                        return
        finally:
            await self._close_pubsub(pubsub, channel)

    async def _close_pubsub(self, pubsub, channel: str):
        try:
            await pubsub.unsubscribe(channel)
            await pubsub.aclose()
        except Exception as exc:
            self.logger.debug("Pubsub close failed", extra={"channel": channel, "error": str(exc)})

    def _dispatch(self, channel: str, data):
        try:
            payload = json.loads(data)
        except (TypeError, ValueError):
            self.logger.warning("Dropping undecodable message", extra={"channel": channel})
            self.metrics.increment(BusMetrics.FAILED_CONSUME)
            return

        self.metrics.increment(BusMetrics.CONSUMED)
        for callback in list(self.subscribers.get(channel, [])):
            task = asyncio.create_task(self._deliver(callback, channel, payload))
            self._subscriber_tasks.add(task)
            task.add_done_callback(self._subscriber_tasks.discard)

    async def _deliver(self, callback: Callback, channel: str, payload: Payload):
        async def _invoke():
            result = callback(payload)
            if inspect.isawaitable(result):
                await result

        try:
            await self.retry_policy.execute(_invoke)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.logger.exception("Subscriber failed", extra={"channel": channel, "error": str(exc)})
            self.metrics.increment(BusMetrics.FAILED_CONSUME)
