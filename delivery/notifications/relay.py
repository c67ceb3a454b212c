import asyncio
from typing import Callable, Optional

from pydantic import ValidationError as ModelValidationError

from delivery.notifications.notifications_service import Recipient
from delivery.orders.events import NotificationEvent, OrderEvent, OrderEventType
from delivery.shared.annotations.logging import LoggerBinding
from delivery.shared.clients import RedisClient
from delivery.shared.errors import ConsumerFatalError, DeliveryError
from delivery.shared.logger import JohnWickLogger
from delivery.shared.messaging.base import ConsumedRecord, EventPublisher, EventSource
from delivery.shared.metrics.metrics_collector import MetricsCollector
from delivery.shared.metrics.metrics_schema import RelayMetrics
from delivery.shared.retry import ExponentialBackoffRetry, FixedDelayRetry, RetryPolicy

MARKER_PREFIX = "relay:processed:"

_TEMPLATES = {
    OrderEventType.CREATED: (Recipient.RESTAURANT, "New order {order_id} is waiting for acceptance"),
    OrderEventType.ACCEPTED: (Recipient.CUSTOMER, "Your order {order_id} was accepted by the restaurant"),
    OrderEventType.PICKED_UP: (Recipient.CUSTOMER, "Your order {order_id} is on its way"),
    OrderEventType.DELIVERED: (Recipient.CUSTOMER, "Your order {order_id} has been delivered"),
}


def derive_notification(event: OrderEvent) -> NotificationEvent:
    recipient, template = _TEMPLATES[event.event_type]
    return NotificationEvent(
        source_event_id=event.event_id,
        order_id=event.order_id,
        recipient=recipient.value,
        message=template.format(order_id=event.order_id),
    )


@LoggerBinding()
class NotificationRelay:
    """
    Background consumer republishing order events as notifications.

    Each record is processed (dedup check, publish, mark) before its offset
    is committed, so a crash at any point means redelivery rather than loss.
    Redelivered events are recognized by their event_id marker in Redis and
    committed without a second publish.

    A read or processing failure ends the current session with
    ConsumerFatalError; ``run_forever`` restarts the session, after any
    failure, with backoff from the last committed offset. The rest of the
    process is unaffected.
    """

    def __init__(
        self,
        source_factory: Callable[[], EventSource],
        publisher: EventPublisher,
        redis_client: RedisClient,
        notification_topic: str = "order-notifications",
        marker_ttl: int = 86400,
        read_retry: Optional[RetryPolicy] = None,
        restart_backoff: Optional[ExponentialBackoffRetry] = None,
        logger: JohnWickLogger = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.source_factory = source_factory
        self.publisher = publisher
        self.redis_client = redis_client
        self.notification_topic = notification_topic
        self.marker_ttl = marker_ttl
        self.logger = logger
        self.metrics = metrics or MetricsCollector(self.logger, namespace="relay")
        self.read_retry: RetryPolicy = read_retry or FixedDelayRetry(max_retries=3, delay=1.0, logger=self.logger)
        self.restart_backoff = restart_backoff or ExponentialBackoffRetry(
            base_delay=1.0, max_delay=30.0, logger=self.logger
        )
        self.committed_count = 0
        self._task: Optional[asyncio.Task] = None

    # --- Lifecycle ---
    def start(self) -> asyncio.Task:
        """Spawn the relay task once; later calls return the running task."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run_forever(), name="notification-relay")
            self.logger.info("Notification relay started", extra={"topic": self.notification_topic})
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        except Exception as exc:
            self.logger.error("Notification relay ended with an error", extra={"error": str(exc)})
        self._task = None
        self.logger.info("Notification relay stopped")

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_forever(self):
        failures = 0
        while True:
            progress = self.committed_count
            try:
                await self.run_session()
                return
            except Exception as exc:
                # Backoff starts over once a session made progress
                failures = 1 if self.committed_count > progress else failures + 1
                delay = self.restart_backoff.delay_for(failures)
                self.metrics.increment(RelayMetrics.RESTARTS)
                self.logger.error(
                    "Relay session failed, restarting",
                    extra={
                        "error": exc.message if isinstance(exc, ConsumerFatalError) else repr(exc),
                        "restart_in": delay,
                        "failures": failures,
                    },
                )
                self.metrics.report()
                await asyncio.sleep(delay)

    async def run_session(self, max_records: Optional[int] = None):
        """
        Consume until cancelled, or until ``max_records`` records have been
        committed when given.
        """
        try:
            source = self.source_factory()
            await source.start()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise ConsumerFatalError(f"cannot start event source: {exc}") from exc

        committed = 0
        try:
            while max_records is None or committed < max_records:
                record = await self._read(source)
                try:
                    await self.process(record)
                    await source.commit(record)
                except asyncio.CancelledError:
                    raise
                except DeliveryError as exc:
                    self.metrics.increment(RelayMetrics.FAILED)
                    raise ConsumerFatalError(
                        f"failed to relay offset {record.offset}: {exc.message}"
                    ) from exc
                except Exception as exc:
                    self.metrics.increment(RelayMetrics.FAILED)
                    raise ConsumerFatalError(f"failed to relay offset {record.offset}: {exc}") from exc
                committed += 1
                self.committed_count += 1
        finally:
            await self._close(source)

    async def _close(self, source: EventSource):
        try:
            await source.stop()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self.logger.warning("Failed to stop event source", extra={"error": str(exc)})

    async def _read(self, source: EventSource) -> ConsumedRecord:
        try:
            return await self.read_retry.execute(source.read)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise ConsumerFatalError(f"error reading message: {exc}") from exc

    # --- Processing ---
    async def process(self, record: ConsumedRecord) -> Optional[NotificationEvent]:
        """Relay one record. Returns the published notification, or None if skipped."""
        try:
            event = OrderEvent.from_bytes(record.value)
        except ModelValidationError as exc:
            # Poison message: nothing downstream could use it either
            self.metrics.increment(RelayMetrics.SKIPPED)
            self.logger.warning(
                "Skipping unparseable order event",
                extra={"topic": record.topic, "offset": record.offset, "error": str(exc)},
            )
            return None

        marker = MARKER_PREFIX + event.event_id
        if await self.redis_client.get(marker) is not None:
            self.metrics.increment(RelayMetrics.DUPLICATE)
            self.logger.info(
                "Order event already relayed",
                extra={"event_id": event.event_id, "order_id": event.order_id, "offset": record.offset},
            )
            return None

        notification = derive_notification(event)
        await self.publisher.publish(self.notification_topic, notification.to_bytes(), key=event.event_id)
        await self.redis_client.set(marker, notification.event_id, ttl=self.marker_ttl)

        self.metrics.increment(RelayMetrics.RELAYED)
        self.logger.info(
            f"Notification: {notification.message}",
            extra={
                "order_id": event.order_id,
                "event_type": event.event_type.value,
                "recipient": notification.recipient,
                "offset": record.offset,
            },
        )
        return notification
