from fastapi import APIRouter, Depends

from delivery.config.dependencies import get_order_service
from delivery.orders.models import (
    AcceptOrderRequest,
    CreateOrderRequest,
    CreateOrderResponse,
    DeliverRequest,
    PickupRequest,
    StatusResponse,
)
from delivery.orders.order_service import OrderService

router = APIRouter(tags=["orders"])

# Clients already depend on this exact casing
DELIVERED_STATUS = "Delivered"


@router.post("/order", response_model=CreateOrderResponse)
async def place_order(body: CreateOrderRequest, service: OrderService = Depends(get_order_service)):
    order = await service.create(body.restaurant_id, body.items)
    return CreateOrderResponse(order_id=order.order_id, status=order.status.value)


@router.post("/restaurant/order/accept", response_model=StatusResponse)
async def accept_order(body: AcceptOrderRequest, service: OrderService = Depends(get_order_service)):
    status = await service.accept(body.order_id, body.restaurant_id)
    return StatusResponse(status=status.value)


@router.post("/rider/order/pickup", response_model=StatusResponse)
async def confirm_pickup(body: PickupRequest, service: OrderService = Depends(get_order_service)):
    status = await service.confirm_pickup(body.order_id, body.rider_id)
    return StatusResponse(status=status.value)


@router.post("/rider/order/deliver", response_model=StatusResponse)
async def confirm_delivery(body: DeliverRequest, service: OrderService = Depends(get_order_service)):
    await service.confirm_delivery(body.order_id, body.rider_id)
    return StatusResponse(status=DELIVERED_STATUS)
