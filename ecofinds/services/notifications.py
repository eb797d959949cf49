from typing import Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from ecofinds.models.notification import Notification, NotificationType


def create_notification(
    db: Session,
    user_id: int,
    type: NotificationType,
    title: str,
    message: str,
    data: Optional[dict] = None,
) -> Notification:
    """Stage a notification row in the caller's transaction.

    Does not commit: the notification is persisted together with the write
    that caused it.
    """
    notification = Notification(
        user_id=user_id,
        type=NotificationType(type).value,
        title=title,
        message=message,
        data=data,
    )
    db.add(notification)
    return notification


class NotificationService:
    def __init__(self, db: Session):
        self.db = db

    def list_for_user(
        self, user_id: int, page: int = 1, limit: int = 20, unread_only: bool = False
    ) -> list[Notification]:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return (
            query.order_by(Notification.created_at.desc(), Notification.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

    def unread_count(self, user_id: int) -> int:
        return (
            self.db.query(func.count(Notification.id))
            .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
            .scalar()
        )

    def mark_read(self, user_id: int, notification_ids: Optional[list[int]] = None) -> int:
        """Mark the given notifications (or all of them) read; returns rows changed."""
        query = self.db.query(Notification).filter(
            Notification.user_id == user_id, Notification.is_read.is_(False)
        )
        if notification_ids:
            query = query.filter(Notification.id.in_(notification_ids))
        updated = query.update({"is_read": True}, synchronize_session=False)
        self.db.commit()
        return updated
