from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

Payload = Union[dict, list]
Callback = Callable[[Any], Union[Awaitable[None], None]]


def channel_for(exchange: str, routing_key: str) -> str:
    """Broker channel/topic name for an exchange and routing key pair."""
    return f"{exchange}.{routing_key}"


@dataclass(frozen=True)
class Endpoint:
    """Where a collaborator is reached: exchange, routing key and reply timeout."""

    exchange: str
    routing_key: str
    timeout: float = 5.0

    def __post_init__(self):
        if not self.exchange or not self.routing_key:
            raise ValueError("Endpoint needs both an exchange and a routing key")
        if self.timeout <= 0:
            raise ValueError("Endpoint timeout must be positive")

    @property
    def channel(self) -> str:
        return channel_for(self.exchange, self.routing_key)


class EventBus(ABC):
    """Publish/subscribe transport. Payloads must be JSON-serialisable."""

    async def start(self):
        """Open connections; transports that need none keep the default."""

    async def stop(self):
        """Cancel consumers and close connections."""

    @abstractmethod
    async def publish(self, channel: str, payload: Payload):
        raise NotImplementedError

    @abstractmethod
    async def subscribe(self, channel: str, callback: Callback):
        raise NotImplementedError
