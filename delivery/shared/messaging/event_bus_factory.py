from typing import Callable, Optional

from delivery.config.logger import get_logger
from delivery.config.settings import Settings
from delivery.shared.clients import KafkaClient
from delivery.shared.logger import JohnWickLogger
from delivery.shared.messaging.base import EventPublisher, EventSource
from delivery.shared.metrics.metrics_collector import MetricsCollector
from delivery.shared.retry import ExponentialBackoffRetry

VALID_TRANSPORTS = {"memory", "kafka"}

SourceFactory = Callable[[], EventSource]


class EventBusFactory:
    """Builds the publisher and relay event sources for the configured transport."""

    def __init__(self, settings: Settings, logger: Optional[JohnWickLogger] = None):
        self.settings = settings
        self.logger = logger or get_logger("EventBusFactory")
        self.transport = settings.messaging.transport.lower()
        if self.transport not in VALID_TRANSPORTS:
            raise ValueError(
                f"Invalid transport '{self.transport}'. Must be one of {', '.join(sorted(VALID_TRANSPORTS))}"
            )
        self._publisher: Optional[EventPublisher] = None

    def _kafka_client(self, **kwargs) -> KafkaClient:
        kafka = self.settings.kafka
        logger = get_logger("KafkaClient")
        return KafkaClient(
            bootstrap_servers=kafka.get_bootstrap_servers(self.settings.app.env_mode),
            request_timeout=kafka.timeout_seconds,
            logger=logger,
            metrics=MetricsCollector(logger, namespace="kafka"),
            retry_policy=ExponentialBackoffRetry(
                max_retries=kafka.max_retries, base_delay=kafka.retry_backoff, logger=logger
            ),
            **kwargs,
        )

    def create_publisher(self) -> EventPublisher:
        """Return the single publisher shared by every producer in the process."""
        if self._publisher is not None:
            return self._publisher

        if self.transport == "kafka":
            from delivery.shared.messaging.transports.kafka_bus import KafkaEventPublisher
            self._publisher = KafkaEventPublisher(self._kafka_client(), logger=self.logger)
            self.logger.info(
                "Created KafkaEventPublisher",
                extra={"bootstrap_servers": self.settings.kafka.get_bootstrap_servers(self.settings.app.env_mode)},
            )
        else:
            from delivery.shared.messaging.transports.in_memory_log import InMemoryEventLog
            self._publisher = InMemoryEventLog()
            self.logger.info("Created InMemoryEventLog")

        return self._publisher

    def create_source_factory(self, topic: str, group_id: str) -> SourceFactory:
        """Return a callable producing a fresh EventSource per consumer session."""
        if self.transport == "kafka":
            from delivery.shared.messaging.transports.kafka_bus import KafkaEventSource

            def _kafka_source() -> EventSource:
                return KafkaEventSource(
                    self._kafka_client(group_id=group_id, topics=[topic], enable_producer=False)
                )
            return _kafka_source

        log = self.create_publisher()
        return lambda: log.source(topic, group_id)

    async def ensure_topics(self):
        """Create the order and notification topics when configured to."""
        kafka = self.settings.kafka
        if self.transport != "kafka" or not kafka.auto_create_topics:
            return
        await self._kafka_client(enable_producer=False).create_topics(
            [kafka.orders_topic, kafka.notification_topic], num_partitions=kafka.num_partitions
        )
