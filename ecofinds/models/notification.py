from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Text, JSON
from datetime import datetime, timezone
from ecofinds.database import Base
import enum


def utc_now():
    """Return current UTC timezone-aware datetime."""
    return datetime.now(timezone.utc)


class NotificationType(str, enum.Enum):
    PURCHASE = "purchase"
    ADMIN = "admin"
    REPORT = "report"
    REVIEW = "review"
    FOLLOW = "follow"


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = Column(String(20), nullable=False)
    title = Column(String(200), nullable=False)
    message = Column(Text, nullable=False)
    data = Column(JSON, nullable=True)  # opaque payload, e.g. {"purchase_id": 3}
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utc_now, index=True)
