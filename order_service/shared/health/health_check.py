import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from order_service.shared.clients import RedisClient
from order_service.shared.logger import JohnWickLogger
from order_service.shared.retry import FixedDelayRetry, RetryPolicy


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class HealthChecker:
    """Connectivity checks for the order store and the message broker."""

    def __init__(
        self,
        logger: Optional[JohnWickLogger] = None,
        redis_client: Optional[RedisClient] = None,
        kafka_address: Optional[tuple] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.logger = logger or JohnWickLogger("HealthChecker")
        self.redis_client = redis_client
        self.kafka_address = kafka_address
        self.retry_policy: RetryPolicy = retry_policy or FixedDelayRetry(max_retries=3, delay=0.5)

    async def check_redis(self) -> Dict[str, Any]:
        """PING through the RedisClient."""
        async def _check():
            if not await self.redis_client.ping():
                raise ConnectionError("Redis did not respond to PING")
            return {"status": "healthy", "checked_at": _now()}

        return await self._run("redis", _check)

    async def check_kafka(self) -> Dict[str, Any]:
        """Plain TCP connect to the bootstrap server."""
        host, port = self.kafka_address

        async def _check():
            _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=5)
            writer.close()
            await writer.wait_closed()
            return {"status": "healthy", "checked_at": _now()}

        return await self._run("kafka", _check)

    async def _run(self, service: str, check) -> Dict[str, Any]:
        try:
            result = await self.retry_policy.execute(check)
            self.logger.info(f"{service} healthy")
            return result
        except (OSError, asyncio.TimeoutError) as exc:
            self.logger.warning(f"{service} check failed", extra={"error": str(exc)})
            return {"status": "unhealthy", "error": str(exc), "checked_at": _now()}

    def configured_services(self) -> List[str]:
        services = []
        if self.redis_client is not None:
            services.append("redis")
        if self.kafka_address is not None:
            services.append("kafka")
        return services

    async def run_all(self, services: Optional[List[str]] = None) -> Dict[str, Any]:
        """Run every configured check (or the named subset) and add a summary."""
        services = services or self.configured_services()
        checks = {"redis": self.check_redis, "kafka": self.check_kafka}

        self.logger.info(f"Running health checks for services: {services}")
        results = await asyncio.gather(*(checks[name]() for name in services))
        report: Dict[str, Any] = dict(zip(services, results))

        healthy = sum(1 for r in results if r["status"] == "healthy")
        report["summary"] = {"total": len(results), "healthy": healthy, "unhealthy": len(results) - healthy}
        return report
