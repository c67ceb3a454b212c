"""
Wire contracts for the order-event and notification topics.

Both are JSON documents carrying ``schema_version`` so consumers can reject
or upgrade payloads they don't understand. ``event_id`` is unique per
published event and is the idempotency key downstream.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field

SCHEMA_VERSION = 1


def _event_id() -> str:
    return uuid.uuid4().hex


def _now() -> datetime:
    return datetime.now(timezone.utc)


class OrderEventType(str, Enum):
    CREATED = "order.created"
    ACCEPTED = "order.accepted"
    PICKED_UP = "order.picked_up"
    DELIVERED = "order.delivered"


class OrderEvent(BaseModel):
    """One order-lifecycle transition, published to the orders topic."""

    event_id: str = Field(default_factory=_event_id)
    schema_version: int = SCHEMA_VERSION
    event_type: OrderEventType
    order_id: str
    occurred_at: datetime = Field(default_factory=_now)
    details: Dict[str, Any] = Field(default_factory=dict)

    def to_bytes(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def from_bytes(cls, payload: bytes) -> "OrderEvent":
        return cls.model_validate_json(payload)


class NotificationEvent(BaseModel):
    """Notification derived from an OrderEvent, published to the notification topic."""

    event_id: str = Field(default_factory=_event_id)
    schema_version: int = SCHEMA_VERSION
    source_event_id: str
    order_id: str
    recipient: str
    message: str
    occurred_at: datetime = Field(default_factory=_now)

    def to_bytes(self) -> bytes:
        return self.model_dump_json().encode("utf-8")

    @classmethod
    def from_bytes(cls, payload: bytes) -> "NotificationEvent":
        return cls.model_validate_json(payload)
