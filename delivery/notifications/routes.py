from fastapi import APIRouter, Depends

from delivery.config.dependencies import get_notification_service
from delivery.notifications.notifications_service import NotificationService, SendNotificationRequest

router = APIRouter(tags=["notifications"])


@router.post("/notification/send")
async def send_notification(
    body: SendNotificationRequest,
    service: NotificationService = Depends(get_notification_service),
):
    status = await service.send(body.recipient, body.order_id, body.message)
    return {"status": status}
