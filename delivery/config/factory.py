from redis.exceptions import RedisError

from delivery.catalog.store import JsonCatalogStore
from delivery.config.logger import get_logger
from delivery.config.settings import Settings
from delivery.shared.clients import RedisClient
from delivery.shared.messaging.event_bus_factory import EventBusFactory
from delivery.shared.metrics.metrics_collector import MetricsCollector
from delivery.shared.retry import ExponentialBackoffRetry


# ----------------------------
# Redis client factory
# ----------------------------
def get_redis_client(settings: Settings) -> RedisClient:
    logger = get_logger("RedisClient")
    retry_policy = ExponentialBackoffRetry(
        max_retries=settings.redis.max_retries,
        base_delay=settings.redis.retry_backoff,
        retry_on=(RedisError, OSError),
        logger=logger,
    )
    return RedisClient(
        redis_url=settings.redis.get_url(settings.app.env_mode),
        timeout=settings.redis.timeout_seconds,
        logger=logger,
        metrics=MetricsCollector(logger, namespace="redis"),
        retry_policy=retry_policy,
    )


# ----------------------------
# Event transport factory
# ----------------------------
def get_event_bus_factory(settings: Settings) -> EventBusFactory:
    return EventBusFactory(settings, logger=get_logger("EventBusFactory"))


# ----------------------------
# Catalog seed store
# ----------------------------
def get_catalog_store(settings: Settings) -> JsonCatalogStore:
    catalog = settings.catalog
    return JsonCatalogStore(
        seed_dir=catalog.seed_dir,
        menu_file=catalog.menu_file,
        restaurants_file=catalog.restaurants_file,
        riders_file=catalog.riders_file,
        logger=get_logger("JsonCatalogStore"),
    )
