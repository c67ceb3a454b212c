from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, Request

from delivery.catalog.cache import CatalogCache
from delivery.config.factory import (
    get_catalog_store,
    get_event_bus_factory,
    get_redis_client,
)
from delivery.config.logger import get_logger
from delivery.config.settings import Settings, get_settings
from delivery.notifications.notifications_service import NotificationService
from delivery.notifications.relay import NotificationRelay
from delivery.orders.order_service import OrderService
from delivery.orders.state import OrderStateStore
from delivery.shared.clients import RedisClient
from delivery.shared.health.health_check import HealthChecker
from delivery.shared.logger import JohnWickLogger
from delivery.shared.messaging.base import EventPublisher
from delivery.shared.messaging.event_bus_factory import EventBusFactory
from delivery.shared.messaging.transports.in_memory_log import InMemoryEventLog
from delivery.shared.retry import ExponentialBackoffRetry


@dataclass
class AppContext:
    """
    Every long-lived collaborator of the service, built once at startup and
    handed to components explicitly.
    """

    settings: Settings
    logger: JohnWickLogger
    redis_client: RedisClient
    publisher: EventPublisher
    catalog_cache: CatalogCache
    order_service: OrderService
    notification_service: NotificationService
    relay: NotificationRelay
    health_checker: HealthChecker
    event_bus_factory: Optional[EventBusFactory] = None
    state_store: OrderStateStore = field(default_factory=OrderStateStore)

    async def start(self, start_relay: bool = True):
        if self.event_bus_factory is not None:
            await self.event_bus_factory.ensure_topics()
        await self.publisher.start()
        if start_relay:
            self.relay.start()
        self.logger.info("Application context started", extra={"relay": start_relay})

    async def stop(self):
        await self.relay.stop()
        for component in (self.catalog_cache, self.order_service, self.relay):
            component.metrics.report()
        await self.publisher.stop()
        await self.redis_client.close()
        self.logger.info("Application context stopped")


def build_context(
    settings: Optional[Settings] = None,
    redis_client: Optional[RedisClient] = None,
    publisher: Optional[EventPublisher] = None,
    catalog_store=None,
    source_factory=None,
) -> AppContext:
    """
    Wire the service from settings. Any collaborator passed in replaces the
    one the settings would build, which is how tests swap in doubles.
    """
    settings = settings or get_settings()
    logger = get_logger(settings.app.app_name)

    bus_factory = None
    if isinstance(publisher, InMemoryEventLog) and source_factory is None:
        log = publisher
        source_factory = lambda: log.source(settings.kafka.orders_topic, settings.kafka.group_id)
    if publisher is None or source_factory is None:
        bus_factory = get_event_bus_factory(settings)
        publisher = publisher or bus_factory.create_publisher()
        source_factory = source_factory or bus_factory.create_source_factory(
            settings.kafka.orders_topic, settings.kafka.group_id
        )

    redis_client = redis_client or get_redis_client(settings)
    catalog_cache = CatalogCache(
        redis_client=redis_client,
        store=catalog_store or get_catalog_store(settings),
        ttl=settings.redis.cache_ttl_seconds,
    )
    state_store = OrderStateStore(retired_capacity=settings.orders.retired_order_capacity)
    order_service = OrderService(
        catalog_cache=catalog_cache,
        publisher=publisher,
        state_store=state_store,
        orders_topic=settings.kafka.orders_topic,
        enforce_transitions=settings.orders.enforce_transitions,
        reject_unknown_items=settings.orders.reject_unknown_items,
    )
    relay = NotificationRelay(
        source_factory=source_factory,
        publisher=publisher,
        redis_client=redis_client,
        notification_topic=settings.kafka.notification_topic,
        marker_ttl=settings.redis.relay_marker_ttl_seconds,
        restart_backoff=ExponentialBackoffRetry(
            base_delay=settings.messaging.relay_restart_base_delay,
            max_delay=settings.messaging.relay_restart_max_delay,
        ),
    )

    return AppContext(
        settings=settings,
        logger=logger,
        redis_client=redis_client,
        publisher=publisher,
        catalog_cache=catalog_cache,
        order_service=order_service,
        notification_service=NotificationService(),
        relay=relay,
        health_checker=HealthChecker(settings=settings, redis_client=redis_client),
        event_bus_factory=bus_factory,
        state_store=state_store,
    )


# ----------------------------
# FastAPI dependency functions
# ----------------------------
def get_context(request: Request) -> AppContext:
    return request.app.state.context


def get_catalog_cache(context: AppContext = Depends(get_context)) -> CatalogCache:
    return context.catalog_cache


def get_order_service(context: AppContext = Depends(get_context)) -> OrderService:
    return context.order_service


def get_notification_service(context: AppContext = Depends(get_context)) -> NotificationService:
    return context.notification_service


def get_health_checker(context: AppContext = Depends(get_context)) -> HealthChecker:
    return context.health_checker
