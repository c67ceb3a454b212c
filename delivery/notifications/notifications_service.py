from enum import Enum

from pydantic import BaseModel

from delivery.shared.annotations.logging import LoggerBinding
from delivery.shared.errors import ValidationError
from delivery.shared.logger import JohnWickLogger


class Recipient(str, Enum):
    CUSTOMER = "customer"
    RESTAURANT = "restaurant"
    RIDER = "rider"


class SendNotificationRequest(BaseModel):
    recipient: str = ""
    order_id: str = ""
    message: str = ""


@LoggerBinding()
class NotificationService:
    def __init__(self, logger: JohnWickLogger = None):
        self.logger = logger

    async def send(self, recipient: str, order_id: str, message: str) -> str:
        """Validate the recipient and hand the message off; returns "sent"."""
        try:
            target = Recipient(recipient)
        except ValueError:
            raise ValidationError("Invalid recipient", detail={"recipient": recipient}) from None

        self.logger.info(
            f"Sending notification to {target.value} for order {order_id}",
            extra={"recipient": target.value, "order_id": order_id, "message": message},
        )
        return "sent"
