import uuid
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class OrderStatus(str, Enum):
    CREATED = "created"
    ACCEPTED = "accepted"
    PICKED_UP = "picked_up"
    DELIVERED = "delivered"


class OrderItem(BaseModel):
    menu_id: str = ""
    quantity: int = Field(default=1, gt=0)


class Order(BaseModel):
    order_id: str
    restaurant_id: str
    items: List[OrderItem]
    total_amount: Decimal
    status: OrderStatus = OrderStatus.CREATED


def new_order_id() -> str:
    """Collision-resistant order identifier (random UUID, hex form)."""
    return uuid.uuid4().hex


# ----------------------------
# Request / response bodies
# ----------------------------
class CreateOrderRequest(BaseModel):
    restaurant_id: str = ""
    items: Optional[List[OrderItem]] = None


class CreateOrderResponse(BaseModel):
    order_id: str
    status: str


class AcceptOrderRequest(BaseModel):
    order_id: str = ""
    restaurant_id: str = ""


class PickupRequest(BaseModel):
    order_id: str = ""
    rider_id: str = ""


class DeliverRequest(BaseModel):
    order_id: str = ""
    rider_id: str = ""


class StatusResponse(BaseModel):
    status: str
