"""
Request/reply over an EventBus.

A request is published as an envelope ``{"correlationId", "replyTo", "body"}``.
The responder publishes ``{"correlationId", "body"}`` to ``replyTo``. The caller
keeps one future per correlation id and waits on it with a timeout, so a
synchronous-looking call runs over a fire-and-forget transport.
"""

import asyncio
import inspect
import uuid
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from order_service.shared.logger import JohnWickLogger
from order_service.shared.messaging.base import EventBus
from order_service.shared.metrics import BusMetrics, MetricsCollector

CORRELATION_ID = "correlationId"
REPLY_TO = "replyTo"
BODY = "body"

Handler = Callable[[Any], Union[Awaitable[Any], Any]]


class RpcClient:
    """Sends correlated requests and waits for exactly one reply per request."""

    def __init__(
        self,
        event_bus: EventBus,
        reply_channel: Optional[str] = None,
        logger: Optional[JohnWickLogger] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.event_bus = event_bus
        self.reply_channel = reply_channel or f"rpc.reply.{uuid.uuid4().hex}"
        self.logger = logger or JohnWickLogger("RpcClient")
        self.metrics = metrics or MetricsCollector(self.logger)
        self._pending: Dict[str, asyncio.Future] = {}
        self._started = False
        self._start_lock = asyncio.Lock()

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def start(self):
        """Subscribe to the private reply channel (idempotent)."""
        async with self._start_lock:
            if not self._started:
                await self.event_bus.subscribe(self.reply_channel, self._on_reply)
                self._started = True
                self.logger.info("RPC reply channel ready", extra={"reply_channel": self.reply_channel})

    async def call(self, channel: str, body: Any, timeout: float) -> Any:
        """
        Publish `body` to `channel` and wait for the correlated reply body.

        `timeout` bounds the publish and the reply wait together. Returns None
        when it runs out. Publish errors propagate. Cancelling the caller
        abandons the wait.
        """
        await self.start()

        correlation_id = uuid.uuid4().hex
        future = asyncio.get_running_loop().create_future()
        self._pending[correlation_id] = future
        self.metrics.increment(BusMetrics.RPC_CALLS)

        async def _exchange():
            await self.event_bus.publish(
                channel,
                {CORRELATION_ID: correlation_id, REPLY_TO: self.reply_channel, BODY: body},
            )
            return await future

        try:
            return await asyncio.wait_for(_exchange(), timeout)
        except asyncio.TimeoutError:
            self.metrics.increment(BusMetrics.RPC_TIMEOUTS)
            self.logger.warning(
                "No reply within timeout",
                extra={"channel": channel, "correlation_id": correlation_id, "timeout": timeout},
            )
            return None
        finally:
            self._pending.pop(correlation_id, None)

    async def _on_reply(self, message: Any):
        correlation_id = message.get(CORRELATION_ID) if isinstance(message, dict) else None
        future = self._pending.get(correlation_id)
        if future is None or future.done():
            # late reply after a timeout, or someone else's message
            self.metrics.increment(BusMetrics.RPC_UNMATCHED)
            self.logger.debug("Dropping uncorrelated reply", extra={"correlation_id": correlation_id})
            return
        future.set_result(message.get(BODY))


class RpcResponder:
    """
    Serves requests published by an RpcClient: calls `handler(body)` and
    publishes its return value back to the caller's reply channel.
    """

    def __init__(
        self,
        event_bus: EventBus,
        channel: str,
        handler: Handler,
        logger: Optional[JohnWickLogger] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.event_bus = event_bus
        self.channel = channel
        self.handler = handler
        self.logger = logger or JohnWickLogger("RpcResponder")
        self.metrics = metrics or MetricsCollector(self.logger)

    async def start(self):
        await self.event_bus.subscribe(self.channel, self._on_request)

    async def _on_request(self, message: Any):
        if not isinstance(message, dict) or REPLY_TO not in message:
            self.logger.warning("Ignoring malformed request", extra={"channel": self.channel})
            return

        result = self.handler(message.get(BODY))
        if inspect.isawaitable(result):
            result = await result

        await self.event_bus.publish(
            message[REPLY_TO],
            {CORRELATION_ID: message.get(CORRELATION_ID), BODY: result},
        )
        self.metrics.increment(BusMetrics.RPC_SERVED)
