from typing import List, Optional

from delivery.catalog.cache import CatalogCache
from delivery.orders.events import OrderEvent, OrderEventType
from delivery.orders.models import Order, OrderItem, OrderStatus, new_order_id
from delivery.orders.pricing import price
from delivery.orders.state import OrderStateStore
from delivery.shared.annotations.logging import LoggerBinding
from delivery.shared.errors import DeliveryError, PublishError, ValidationError
from delivery.shared.logger import JohnWickLogger
from delivery.shared.messaging.base import EventPublisher, PublishedRecord
from delivery.shared.metrics.metrics_collector import MetricsCollector
from delivery.shared.metrics.metrics_schema import OrderMetrics


@LoggerBinding()
class OrderService:
    """
    Order lifecycle: create, accept, confirm pickup, confirm delivery.

    Every operation validates its input before any side effect, then
    publishes one OrderEvent to the orders topic. The in-process state store
    only advances once the publish has been acknowledged, so a failed
    publish leaves the order where it was.
    """

    def __init__(
        self,
        catalog_cache: CatalogCache,
        publisher: EventPublisher,
        state_store: OrderStateStore,
        orders_topic: str = "orders",
        enforce_transitions: bool = True,
        reject_unknown_items: bool = False,
        logger: JohnWickLogger = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.catalog_cache = catalog_cache
        self.publisher = publisher
        self.state_store = state_store
        self.orders_topic = orders_topic
        self.enforce_transitions = enforce_transitions
        self.reject_unknown_items = reject_unknown_items
        self.logger = logger
        self.metrics = metrics or MetricsCollector(self.logger, namespace="orders")

    async def create(self, restaurant_id: str, items: Optional[List[OrderItem]]) -> Order:
        if not restaurant_id or items is None:
            self.metrics.increment(OrderMetrics.REJECTED)
            raise ValidationError("restaurant_id and items are required")
        for item in items:
            if not item.menu_id:
                self.metrics.increment(OrderMetrics.REJECTED)
                raise ValidationError("every item needs a menu_id")

        menu = await self.catalog_cache.get_menu(restaurant_id)
        total = price(items, menu, strict=self.reject_unknown_items)

        order = Order(
            order_id=new_order_id(),
            restaurant_id=restaurant_id,
            items=list(items),
            total_amount=total,
            status=OrderStatus.CREATED,
        )
        self.logger.info(
            "Order priced",
            extra={
                "order_id": order.order_id,
                "restaurant_id": restaurant_id,
                "items": len(order.items),
                "total_amount": str(total),
            },
        )

        event = OrderEvent(
            event_type=OrderEventType.CREATED,
            order_id=order.order_id,
            details={
                "restaurant_id": restaurant_id,
                "items": [item.model_dump() for item in order.items],
                "total_amount": float(total),
            },
        )
        await self._transition(order.order_id, OrderStatus.CREATED, event)
        self.metrics.increment(OrderMetrics.CREATED)
        return order

    async def accept(self, order_id: str, restaurant_id: str) -> OrderStatus:
        self._require(order_id=order_id, restaurant_id=restaurant_id)
        event = OrderEvent(
            event_type=OrderEventType.ACCEPTED,
            order_id=order_id,
            details={"restaurant_id": restaurant_id},
        )
        await self._transition(order_id, OrderStatus.ACCEPTED, event)
        self.metrics.increment(OrderMetrics.ACCEPTED)
        return OrderStatus.ACCEPTED

    async def confirm_pickup(self, order_id: str, rider_id: str) -> OrderStatus:
        """No field checks here; only the transition guard rejects an unknown order."""
        event = OrderEvent(
            event_type=OrderEventType.PICKED_UP,
            order_id=order_id,
            details={"rider_id": rider_id},
        )
        await self._transition(order_id, OrderStatus.PICKED_UP, event)
        self.metrics.increment(OrderMetrics.PICKED_UP)
        return OrderStatus.PICKED_UP

    async def confirm_delivery(self, order_id: str, rider_id: str) -> OrderStatus:
        self._require(order_id=order_id, rider_id=rider_id)
        event = OrderEvent(
            event_type=OrderEventType.DELIVERED,
            order_id=order_id,
            details={"rider_id": rider_id},
        )
        await self._transition(order_id, OrderStatus.DELIVERED, event)
        self.metrics.increment(OrderMetrics.DELIVERED)
        return OrderStatus.DELIVERED

    # --- Internals ---
    def _require(self, **fields: str):
        missing = [name for name, value in fields.items() if not value]
        if missing:
            self.metrics.increment(OrderMetrics.REJECTED)
            raise ValidationError(f"Missing {' or '.join(missing)}", detail={"missing": missing})

    async def _transition(self, order_id: str, target: OrderStatus, event: OrderEvent) -> PublishedRecord:
        async with self.state_store.lock(order_id):
            if self.enforce_transitions:
                try:
                    self.state_store.check(order_id, target)
                except DeliveryError as exc:
                    self.metrics.increment(OrderMetrics.REJECTED)
                    self.logger.warning(
                        "Transition rejected",
                        extra={"order_id": order_id, "target": target.value, "error": exc.message},
                    )
                    raise

            record = await self._publish(event)
            self.state_store.advance(order_id, target)
            return record

    async def _publish(self, event: OrderEvent) -> PublishedRecord:
        try:
            record = await self.publisher.publish(self.orders_topic, event.to_bytes(), key=event.order_id)
        except PublishError:
            self.metrics.increment(OrderMetrics.FAILED_PUBLISH)
            self.logger.error(
                "Failed to publish order event",
                extra={"order_id": event.order_id, "event_type": event.event_type.value, "event_id": event.event_id},
            )
            raise

        self.logger.info(
            "Order event published",
            extra={
                "order_id": event.order_id,
                "event_type": event.event_type.value,
                "event_id": event.event_id,
                "offset": record.offset,
            },
        )
        return record
