import asyncio
import json
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError as ModelValidationError

from delivery.catalog.models import (
    RESERVED_KEYS,
    RESTAURANT_LIST_KEY,
    RIDER_LIST_KEY,
    Restaurant,
    RestaurantList,
    RestaurantMenu,
    Rider,
    RiderList,
)
from delivery.catalog.store import CatalogStore
from delivery.shared.annotations.logging import LoggerBinding
from delivery.shared.clients import RedisClient
from delivery.shared.errors import CacheInfrastructureError, SourceFetchError, ValidationError
from delivery.shared.logger import JohnWickLogger
from delivery.shared.metrics.metrics_collector import MetricsCollector
from delivery.shared.metrics.metrics_schema import CacheMetrics

Decoder = Callable[[Any], Any]

DEFAULT_TTL_SECONDS = 3600


@LoggerBinding()
class CatalogCache:
    """
    Read-through cache in front of a CatalogStore.

    A hit deserializes the stored JSON. A miss loads the record from the
    store, writes it with a TTL and returns it. Only an explicit "key absent"
    answer from Redis counts as a miss; any other Redis failure raises
    CacheInfrastructureError.

    Concurrent misses on one key share a single in-flight population task.
    Every caller, the one that started it included, awaits it through
    ``asyncio.shield``: a cancelled caller stops waiting but the load runs on
    for the others. Hits never touch the in-flight table.
    """

    def __init__(
        self,
        redis_client: RedisClient,
        store: CatalogStore,
        ttl: int = DEFAULT_TTL_SECONDS,
        logger: JohnWickLogger = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.redis_client = redis_client
        self.store = store
        self.ttl = ttl
        self.logger = logger
        self.metrics = metrics or MetricsCollector(self.logger, namespace="catalog_cache")
        self._inflight: Dict[str, asyncio.Task] = {}

    async def get(self, key: str, decode: Optional[Decoder] = None) -> Any:
        """
        Return the catalog record for ``key``.

        ``decode`` turns the raw JSON record into a typed value. It runs
        before the record is cached, so malformed seed data is rejected with
        SourceFetchError and never stored.
        """
        cached = await self.redis_client.get(key)
        if cached is not None:
            self.metrics.increment(CacheMetrics.HIT)
            self.logger.debug("Catalog cache hit", extra={"key": key})
            return self._decode_cached(key, cached, decode)

        task = self._inflight.get(key)
        if task is None:
            self.metrics.increment(CacheMetrics.MISS)
            self.logger.info("Catalog cache miss, loading from store", extra={"key": key})
            task = asyncio.create_task(self._populate(key, decode), name=f"catalog-populate:{key}")
            self._inflight[key] = task
            task.add_done_callback(lambda done: self._forget(key, done))
        else:
            self.metrics.increment(CacheMetrics.COALESCED)
            self.logger.debug("Joining in-flight population", extra={"key": key})

        record = await asyncio.shield(task)
        return self._decode_loaded(key, record, decode)

    def _forget(self, key: str, task: asyncio.Task):
        if self._inflight.get(key) is task:
            del self._inflight[key]
        # Retrieve the error so a load nobody awaited any more is not reported as unhandled
        if not task.cancelled():
            task.exception()

    async def _populate(self, key: str, decode: Optional[Decoder]) -> Any:
        try:
            record = await self.store.load(key)
        except SourceFetchError:
            self.metrics.increment(CacheMetrics.FAILED_POPULATE)
            raise

        # Reject malformed records before they reach the cache
        self._decode_loaded(key, record, decode)

        try:
            await self.redis_client.set(key, json.dumps(record), ttl=self.ttl)
        except CacheInfrastructureError as exc:
            # The record is still correct; the next call simply misses again
            self.metrics.increment(CacheMetrics.FAILED_WRITE)
            self.logger.warning("Failed to populate catalog cache", extra={"key": key, "error": str(exc)})
        else:
            self.metrics.increment(CacheMetrics.POPULATED)
        return record

    def _decode_cached(self, key: str, cached: str, decode: Optional[Decoder]) -> Any:
        try:
            record = json.loads(cached)
            return decode(record) if decode else record
        except (ValueError, ModelValidationError) as exc:
            self.logger.error("Failed to parse cached value", extra={"key": key, "error": str(exc)})
            raise CacheInfrastructureError(f"failed to parse cached value for {key!r}") from exc

    def _decode_loaded(self, key: str, record: Any, decode: Optional[Decoder]) -> Any:
        if decode is None:
            return record
        try:
            return decode(record)
        except (ValueError, ModelValidationError) as exc:
            self.metrics.increment(CacheMetrics.FAILED_POPULATE)
            self.logger.error("Malformed catalog record", extra={"key": key, "error": str(exc)})
            raise SourceFetchError(f"malformed catalog record for {key!r}") from exc

    # --- Typed lookups ---
    async def get_menu(self, restaurant_id: str) -> RestaurantMenu:
        if restaurant_id in RESERVED_KEYS:
            raise ValidationError(f"invalid restaurant_id {restaurant_id!r}")
        return await self.get(restaurant_id, RestaurantMenu.model_validate)

    async def get_restaurants(self) -> List[Restaurant]:
        return await self.get(RESTAURANT_LIST_KEY, RestaurantList.validate_python)

    async def get_riders(self) -> List[Rider]:
        return await self.get(RIDER_LIST_KEY, RiderList.validate_python)
