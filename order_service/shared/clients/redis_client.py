import asyncio
import json
from typing import Any, Callable, List, Optional

from redis.asyncio import Redis
from redis.asyncio.client import Pipeline

from order_service.shared.logger import JohnWickLogger
from order_service.shared.metrics import MetricsCollector, RedisMetrics
from order_service.shared.retry import FixedDelayRetry, RetryPolicy


class RedisClient:
    """Async Redis client with retries, metrics, JSON reads, sorted-set indexes and transactions."""

    def __init__(
        self,
        redis_url: str,
        logger: Optional[JohnWickLogger] = None,
        metrics: Optional[MetricsCollector] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.redis_url = redis_url
        self.logger = logger or JohnWickLogger("RedisClient")
        self.redis: Optional[Redis] = None
        self.metrics = metrics or MetricsCollector(self.logger)
        self.retry_policy: RetryPolicy = retry_policy or FixedDelayRetry(max_retries=3)

    async def connect(self):
        """Connect to Redis and ping to verify connectivity."""
        async def _connect():
            self.redis = Redis.from_url(self.redis_url, decode_responses=True)
            await self.redis.ping()
            self.logger.info("Connected to Redis", extra={"redis_url": self.redis_url})

        try:
            await self.retry_policy.execute(_connect)
        except asyncio.CancelledError:
            self.logger.warning("Redis connect cancelled")
            raise
        except Exception as exc:
            self.logger.error("Failed to connect to Redis after retries", extra={"redis_url": self.redis_url})
            raise ConnectionError(f"Cannot connect to Redis at {self.redis_url}") from exc

    async def _ensure_connected(self):
        if self.redis is None:
            await self.connect()

    async def _run(self, op: str, func: Callable, ok_metric: str, failed_metric: str, **context) -> Any:
        await self._ensure_connected()
        try:
            result = await self.retry_policy.execute(func)
        except Exception:
            self.logger.error(f"Redis {op} failed after retries", extra=context)
            self.metrics.increment(failed_metric)
            raise
        self.metrics.increment(ok_metric)
        return result

    async def ping(self) -> bool:
        """PING the server; connection problems are reported as False."""
        try:
            await self._ensure_connected()
            result = await self.retry_policy.execute(self.redis.ping)
        except Exception:
            self.logger.error("Redis PING failed", extra={"redis_url": self.redis_url})
            self.metrics.increment(RedisMetrics.FAILED_PING)
            return False
        self.metrics.increment(RedisMetrics.PING)
        return bool(result)

    async def get(self, key: str) -> Any:
        async def _get():
            return await self.redis.get(key)

        value = await self._run("GET", _get, RedisMetrics.GET, RedisMetrics.FAILED_GET, key=key)
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value

    async def get_many(self, keys: List[str]) -> List[Any]:
        """MGET; missing keys come back as None, JSON values are decoded."""
        if not keys:
            return []

        async def _mget():
            return await self.redis.mget(keys)

        values = await self._run("MGET", _mget, RedisMetrics.GET, RedisMetrics.FAILED_GET, keys=len(keys))
        decoded = []
        for value in values:
            try:
                decoded.append(json.loads(value) if value is not None else None)
            except json.JSONDecodeError:
                decoded.append(value)
        return decoded

    async def index_members(self, index: str) -> List[str]:
        """Members of a sorted-set index, lowest score first."""
        async def _zrange():
            return await self.redis.zrange(index, 0, -1)

        return list(await self._run("ZRANGE", _zrange, RedisMetrics.INDEX, RedisMetrics.FAILED_INDEX, index=index))

    async def transaction(self, build: Callable[[Pipeline], None]) -> List[Any]:
        """
        Queue commands on a MULTI/EXEC pipeline and execute them atomically.

        `build` receives the pipeline and queues commands on it synchronously.
        """
        async def _tx():
            async with self.redis.pipeline(transaction=True) as pipe:
                build(pipe)
                return await pipe.execute()

        return await self._run("MULTI", _tx, RedisMetrics.TRANSACTION, RedisMetrics.FAILED_TRANSACTION)

    async def close(self):
        if self.redis:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis connection closed")
