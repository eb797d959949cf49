from pydantic import BaseModel, ConfigDict
from typing import Any, List, Optional
from datetime import datetime


class NotificationResponse(BaseModel):
    id: int
    type: str
    title: str
    message: str
    data: Optional[Any] = None
    is_read: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MarkNotificationsRead(BaseModel):
    notification_ids: Optional[List[int]] = None
