from typing import Optional

from fastapi import APIRouter, Query, status

from ecofinds.dependencies import CurrentUser, db_dependency
from ecofinds.schemas.common import envelope, pagination
from ecofinds.schemas.notification import MarkNotificationsRead, NotificationResponse
from ecofinds.services.notifications import NotificationService

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", status_code=status.HTTP_200_OK)
def list_notifications(
    db: db_dependency,
    user: CurrentUser,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = False,
):
    notifications = NotificationService(db).list_for_user(user.id, page, limit, unread_only)
    return envelope(
        {
            "notifications": [NotificationResponse.model_validate(n) for n in notifications],
            "pagination": pagination(notifications, page, limit),
        }
    )


@router.get("/unread-count", status_code=status.HTTP_200_OK)
def unread_count(db: db_dependency, user: CurrentUser):
    return envelope({"count": NotificationService(db).unread_count(user.id)})


@router.put("/read", status_code=status.HTTP_200_OK)
def mark_read(
    db: db_dependency,
    user: CurrentUser,
    body: Optional[MarkNotificationsRead] = None,
):
    ids = body.notification_ids if body else None
    updated = NotificationService(db).mark_read(user.id, ids)
    return envelope({"updated": updated}, message="Notifications marked as read")
