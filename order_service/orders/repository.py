import asyncio
import json
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

from order_service.orders.models import Order
from order_service.shared.clients import RedisClient
from order_service.shared.logger import JohnWickLogger


class OrderStore(ABC):
    """
    Persistence boundary for orders. No business rules live here.

    Implementations must be safe for concurrent use and atomic per call.
    `delete_by_id` is idempotent: it reports whether something was removed.
    """

    @abstractmethod
    async def save(self, order: Order) -> Order:
        ...

    @abstractmethod
    async def find_by_id(self, order_id: str) -> Optional[Order]:
        ...

    @abstractmethod
    async def find_by_user_id(self, user_id: str) -> List[Order]:
        ...

    @abstractmethod
    async def find_all(self) -> List[Order]:
        ...

    @abstractmethod
    async def delete_by_id(self, order_id: str) -> bool:
        ...


class InMemoryOrderStore(OrderStore):
    """Dict-backed store; iteration follows insertion order."""

    def __init__(self, logger: Optional[JohnWickLogger] = None):
        self.logger = logger or JohnWickLogger("InMemoryOrderStore")
        self._orders: Dict[str, Order] = {}
        self._lock = asyncio.Lock()

    async def save(self, order: Order) -> Order:
        async with self._lock:
            self._orders[order.id] = order
        self.logger.debug("Saved order", extra={"order_id": order.id})
        return order

    async def find_by_id(self, order_id: str) -> Optional[Order]:
        return self._orders.get(order_id)

    async def find_by_user_id(self, user_id: str) -> List[Order]:
        async with self._lock:
            return [order for order in self._orders.values() if order.user_id == user_id]

    async def find_all(self) -> List[Order]:
        async with self._lock:
            return list(self._orders.values())

    async def delete_by_id(self, order_id: str) -> bool:
        async with self._lock:
            removed = self._orders.pop(order_id, None)
        return removed is not None


class RedisOrderStore(OrderStore):
    """
    Orders as JSON documents under ``{prefix}:order:{id}``, with sorted-set
    indexes ``{prefix}:all`` and ``{prefix}:user:{user_id}`` scored by creation
    time so listings come back oldest first.
    """

    def __init__(self, redis_client: RedisClient, key_prefix: str = "orders", logger: Optional[JohnWickLogger] = None):
        self.redis_client = redis_client
        self.key_prefix = key_prefix
        self.logger = logger or JohnWickLogger("RedisOrderStore")

    def _order_key(self, order_id: str) -> str:
        return f"{self.key_prefix}:order:{order_id}"

    def _user_index(self, user_id: str) -> str:
        return f"{self.key_prefix}:user:{user_id}"

    @property
    def _all_index(self) -> str:
        return f"{self.key_prefix}:all"

    async def save(self, order: Order) -> Order:
        document = order.to_dict()
        score = order.created_at.timestamp()

        def _queue(pipe):
            pipe.set(self._order_key(order.id), json.dumps(document))
            pipe.zadd(self._all_index, {order.id: score})
            pipe.zadd(self._user_index(order.user_id), {order.id: score})

        await self.redis_client.transaction(_queue)
        self.logger.debug("Saved order", extra={"order_id": order.id})
        return order

    async def find_by_id(self, order_id: str) -> Optional[Order]:
        document = await self.redis_client.get(self._order_key(order_id))
        return Order.from_dict(document) if document else None

    async def find_by_user_id(self, user_id: str) -> List[Order]:
        return await self._load_index(self._user_index(user_id))

    async def find_all(self) -> List[Order]:
        return await self._load_index(self._all_index)

    async def delete_by_id(self, order_id: str) -> bool:
        order = await self.find_by_id(order_id)
        if order is None:
            return False

        def _queue(pipe):
            pipe.delete(self._order_key(order_id))
            pipe.zrem(self._all_index, order_id)
            pipe.zrem(self._user_index(order.user_id), order_id)

        deleted, *_ = await self.redis_client.transaction(_queue)
        return bool(deleted)

    async def _load_index(self, index: str) -> List[Order]:
        order_ids = await self.redis_client.index_members(index)
        documents = await self.redis_client.get_many([self._order_key(order_id) for order_id in order_ids])
        # an index entry can outlive its document briefly under concurrent deletes
        return [Order.from_dict(document) for document in documents if document]
