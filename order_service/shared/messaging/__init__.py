from order_service.shared.messaging.base import Endpoint, EventBus, channel_for
from order_service.shared.messaging.rpc import RpcClient, RpcResponder

__all__ = ["Endpoint", "EventBus", "channel_for", "RpcClient", "RpcResponder"]
