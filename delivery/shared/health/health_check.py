import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from delivery.config.settings import Settings
from delivery.shared.clients import RedisClient
from delivery.shared.logger import JohnWickLogger


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class HealthChecker:
    def __init__(
        self,
        settings: Settings,
        redis_client: RedisClient,
        logger: Optional[JohnWickLogger] = None,
    ):
        """
        :param settings: service settings, for the Kafka address and transport
        :param redis_client: the RedisClient the catalog cache uses
        :param logger: JohnWickLogger instance
        """
        self.settings = settings
        self.redis_client = redis_client
        self.logger = logger or JohnWickLogger("HealthChecker")

    async def check_redis(self) -> Dict[str, Any]:
        """Redis health check via PING."""
        if await self.redis_client.ping():
            return {"status": "healthy", "checked_at": _now()}
        self.logger.warning("Redis check failed")
        return {"status": "unhealthy", "error": "Redis did not respond to PING", "checked_at": _now()}

    async def check_kafka(self) -> Dict[str, Any]:
        """Kafka TCP reachability check."""
        if self.settings.messaging.transport != "kafka":
            return {"status": "skipped", "transport": self.settings.messaging.transport, "checked_at": _now()}

        kafka = self.settings.kafka
        host, port = kafka.get_host(self.settings.app.env_mode), kafka.port
        try:
            _, writer = await asyncio.wait_for(asyncio.open_connection(host, port), timeout=kafka.timeout_seconds)
            writer.close()
            await writer.wait_closed()
            return {"status": "healthy", "checked_at": _now()}
        except (OSError, asyncio.TimeoutError) as e:
            self.logger.warning("Kafka check failed", extra={"error": str(e)})
            return {"status": "unhealthy", "error": str(e), "checked_at": _now()}

    async def run_all(self, services: Optional[List[str]] = None) -> Dict[str, Any]:
        """Run all health checks or a subset of services."""
        checks = {"redis": self.check_redis, "kafka": self.check_kafka}
        services = [s for s in (services or list(checks)) if s in checks]

        self.logger.info(f"Running health checks for services: {services}")
        check_results = await asyncio.gather(*(checks[s]() for s in services))
        results: Dict[str, Any] = dict(zip(services, check_results))

        total = len(results)
        healthy = sum(1 for r in results.values() if r["status"] in ("healthy", "skipped"))
        results["summary"] = {"total": total, "healthy": healthy, "unhealthy": total - healthy}
        return results
