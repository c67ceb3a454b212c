from delivery.shared.messaging.base import ConsumedRecord, EventPublisher, EventSource, PublishedRecord

__all__ = ["ConsumedRecord", "EventPublisher", "EventSource", "PublishedRecord"]
