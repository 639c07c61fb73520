# app/services/notification_service.py
from app.celery_worker import celery_app
from app.data.database import SessionLocal
from app.data.models.notification import NotificationModel
from app.utils.logging import get_logger

logger = get_logger(__name__)


class NotificationService:
    """
    Fire-and-forget notifications for order lifecycle events.
    Uses Celery for asynchronous processing; the caller never waits for
    delivery and never fails because of it.
    """

    def notify(self, target_id: int, target_type: str, title: str, message: str) -> None:
        try:
            send_notification_task.delay(target_id, target_type, title, message)
        except Exception as e:
            # broker down etc. - the order operation has already succeeded
            logger.warning(
                f"Notification '{title}' for {target_type} {target_id} not dispatched: {e}"
            )


@celery_app.task(name="app.services.notification_service.send_notification_task")
def send_notification_task(target_id: int, target_type: str, title: str, message: str):
    """
    Celery task - stores the notification so the target can read it
    in its inbox. Push/email delivery is not part of this service.
    """
    logger.info(f"[NOTIFICATION] {target_type} {target_id}: {title} - {message}")

    db = SessionLocal()
    try:
        notification = NotificationModel(
            target_id=target_id,
            target_type=target_type,
            title=title,
            message=message,
            read=False,
        )
        db.add(notification)
        db.commit()
        return {"notification_id": notification.id, "target_id": target_id, "status": "sent"}
    finally:
        db.close()
