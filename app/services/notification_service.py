"""
In-app notification service
Persists a Notification row per message; delivery transports (push/email)
pick rows up from the table and are not part of this service
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models import Notification

logger = logging.getLogger(__name__)


class Notifier:
    """Notification capability injected into the deal engine and sweeps"""

    def __init__(self, db: Session):
        self.db = db

    def notify(
        self,
        user_id: int,
        type: str,
        title: str,
        message: str,
        data: Optional[dict] = None,
        priority: str = "medium",
    ) -> Optional[Notification]:
        """
        Queue a notification for a user.

        Never raises: a notification failure must not affect the caller's
        unit of work. The row is committed with the caller's transaction.
        """
        try:
            notification = Notification(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                data=data or {},
                priority=priority,
            )
            self.db.add(notification)
            logger.info(f"🔔 Notification queued for user {user_id}: {title}")
            return notification
        except Exception as e:
            logger.error(f"❌ Failed to queue notification '{title}' for user {user_id}: {e}")
            return None


def get_notifications_for_user(db: Session, user_id: int, limit: int = 50) -> list[Notification]:
    """Newest notifications first"""
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id)
        .order_by(Notification.id.desc())
        .limit(limit)
        .all()
    )


def mark_notification_as_read(db: Session, user_id: int, notification_id: int) -> dict:
    """Mark one of the user's notifications as read"""
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )
    if not notification:
        return {"success": False, "message": "Notification not found"}

    notification.is_read = True
    db.commit()
    return {"success": True, "message": "Notification marked as read"}
