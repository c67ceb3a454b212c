import asyncio
from typing import Optional

from redis.asyncio import Redis
from redis.exceptions import RedisError

from delivery.shared.errors import CacheInfrastructureError
from delivery.shared.logger import JohnWickLogger
from delivery.shared.metrics.metrics_collector import MetricsCollector
from delivery.shared.metrics.metrics_schema import RedisMetrics
from delivery.shared.retry.base import RetryPolicy
from delivery.shared.retry.fixed_delay_retry import FixedDelayRetry


class RedisClient:
    """
    Async Redis client with retries, metrics and TTL.

    Values are stored and returned as strings. ``get`` returns None only when
    Redis reports the key absent; every other failure raises
    CacheInfrastructureError once the retry policy gives up.
    """

    def __init__(
        self,
        redis_url: str,
        timeout: Optional[float] = None,
        logger: Optional[JohnWickLogger] = None,
        metrics: Optional[MetricsCollector] = None,
        retry_policy: Optional[RetryPolicy] = None,
    ):
        self.redis_url = redis_url
        self.timeout = timeout
        self.logger = logger or JohnWickLogger("RedisClient")
        self.redis: Optional[Redis] = None
        self.metrics = metrics or MetricsCollector(self.logger, namespace="redis")
        self.retry_policy: RetryPolicy = retry_policy or FixedDelayRetry(
            max_retries=3, delay=0.2, retry_on=(RedisError, OSError)
        )
        self._connect_lock = asyncio.Lock()

    async def connect(self):
        """Connect to Redis and ping to verify connectivity."""
        async with self._connect_lock:
            if self.redis is not None:
                return

            async def _connect():
                redis = Redis.from_url(
                    self.redis_url,
                    decode_responses=True,
                    socket_timeout=self.timeout,
                    socket_connect_timeout=self.timeout,
                )
                await redis.ping()
                self.redis = redis
                self.logger.info("Connected to Redis", extra={"redis_url": self.redis_url})

            try:
                await self.retry_policy.execute(_connect)
            except asyncio.CancelledError:
                self.logger.warning("Redis connect cancelled")
                raise
            except Exception as exc:
                self.logger.error("Failed to connect to Redis after retries", extra={"redis_url": self.redis_url})
                raise CacheInfrastructureError(f"Cannot connect to Redis at {self.redis_url}") from exc

    async def ping(self) -> bool:
        async def _ping():
            result = await self.redis.ping()
            self.metrics.increment(RedisMetrics.PING)
            return bool(result)

        try:
            if self.redis is None:
                await self.connect()
            return await self.retry_policy.execute(_ping)
        except asyncio.CancelledError:
            raise
        except Exception:
            self.logger.error("Redis PING failed", extra={"redis_url": self.redis_url})
            self.metrics.increment(RedisMetrics.FAILED_PING)
            return False

    async def get(self, key: str) -> Optional[str]:
        if self.redis is None:
            await self.connect()

        async def _get():
            value = await self.redis.get(key)
            self.metrics.increment(RedisMetrics.GET)
            return value

        try:
            return await self.retry_policy.execute(_get)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.logger.error("Redis GET failed after retries", extra={"key": key, "error": str(exc)})
            self.metrics.increment(RedisMetrics.FAILED_GET)
            raise CacheInfrastructureError(f"Redis GET failed for key {key!r}") from exc

    async def set(self, key: str, value: str, ttl: Optional[int] = None) -> bool:
        """SET ``key`` with an optional TTL in seconds."""
        if self.redis is None:
            await self.connect()

        async def _set():
            result = await self.redis.set(key, value, ex=ttl)
            self.metrics.increment(RedisMetrics.SET)
            self.logger.debug("Redis SET", extra={"key": key, "ttl": ttl})
            return bool(result)

        try:
            return await self.retry_policy.execute(_set)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.logger.error("Redis SET failed after retries", extra={"key": key, "error": str(exc)})
            self.metrics.increment(RedisMetrics.FAILED_SET)
            raise CacheInfrastructureError(f"Redis SET failed for key {key!r}") from exc

    async def close(self):
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None
            self.logger.info("Redis connection closed")
