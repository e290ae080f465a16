import asyncio
import inspect
import json
from typing import Dict, List, Optional, Set

from order_service.shared.logger import JohnWickLogger
from order_service.shared.messaging.base import Callback, EventBus, Payload
from order_service.shared.metrics import BusMetrics, MetricsCollector


class InProcessEventBus(EventBus):
    """
    In-memory pub/sub for local development and tests.

    Payloads go through a JSON round trip so subscribers see exactly what a real
    broker would deliver. Each delivery runs in its own task with retries.
    """

    def __init__(
        self,
        max_retries: int = 3,
        retry_delay: float = 0.05,
        logger: Optional[JohnWickLogger] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.subscribers: Dict[str, List[Callback]] = {}
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.logger = logger or JohnWickLogger("InProcessEventBus")
        self.metrics = metrics or MetricsCollector(self.logger)
        self._tasks: Set[asyncio.Task] = set()

    async def publish(self, channel: str, payload: Payload):
        message = json.loads(json.dumps(payload))
        self.metrics.increment(BusMetrics.PUBLISHED)

        subscribers = self.subscribers.get(channel, [])
        if not subscribers:
            self.logger.debug("No subscribers for channel", extra={"channel": channel})
            return

        self.logger.debug("Publishing event", extra={"channel": channel})
        for callback in list(subscribers):
            task = asyncio.create_task(self._safe_invoke(callback, channel, message))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def subscribe(self, channel: str, callback: Callback):
        self.subscribers.setdefault(channel, []).append(callback)
        self.logger.info(
            "Subscriber added",
            extra={"channel": channel, "callback": getattr(callback, "__name__", str(callback))},
        )

    async def join(self):
        """Wait until every in-flight delivery has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self):
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()

    async def _safe_invoke(self, callback: Callback, channel: str, message: Payload):
        name = getattr(callback, "__name__", str(callback))
        for attempt in range(1, self.max_retries + 1):
            try:
                result = callback(message)
                if inspect.isawaitable(result):
                    await result
                self.metrics.increment(BusMetrics.CONSUMED)
                return
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self.logger.warning(
                    f"Subscriber failed on attempt {attempt}",
                    extra={"channel": channel, "callback": name, "error": str(exc)},
                )
                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_delay * attempt)

        self.metrics.increment(BusMetrics.FAILED_CONSUME)
        self.logger.error(
            "Subscriber permanently failed after retries",
            extra={"channel": channel, "callback": name},
        )
