from sqlalchemy import (
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Text,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from ecofinds.database import Base
import enum


class ReportType(str, enum.Enum):
    USER = "user"
    PRODUCT = "product"
    MESSAGE = "message"


class ReportReason(str, enum.Enum):
    SPAM = "spam"
    INAPPROPRIATE = "inappropriate"
    FRAUD = "fraud"
    FAKE = "fake"
    OTHER = "other"


class ReportStatus(str, enum.Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    RESOLVED = "resolved"
    DISMISSED = "dismissed"


# Forward-only moderation graph
REPORT_TRANSITIONS = {
    ReportStatus.PENDING: {
        ReportStatus.REVIEWED,
        ReportStatus.RESOLVED,
        ReportStatus.DISMISSED,
    },
    ReportStatus.REVIEWED: {ReportStatus.RESOLVED, ReportStatus.DISMISSED},
    ReportStatus.RESOLVED: set(),
    ReportStatus.DISMISSED: set(),
}


def _enum_values(obj):
    return [e.value for e in obj]


class Report(Base):
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, index=True)
    reporter_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    reported_user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    reported_product_id = Column(
        Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True
    )
    report_type = Column(
        Enum(ReportType, values_callable=_enum_values, native_enum=False),
        nullable=False,
    )
    reason = Column(
        Enum(ReportReason, values_callable=_enum_values, native_enum=False),
        nullable=False,
    )
    description = Column(Text, nullable=True)
    status = Column(
        Enum(ReportStatus, values_callable=_enum_values, native_enum=False),
        default=ReportStatus.PENDING,
        nullable=False,
        index=True,
    )
    admin_notes = Column(Text, nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    reporter = relationship("User", foreign_keys=[reporter_id])
    reported_user = relationship("User", foreign_keys=[reported_user_id])
    reported_product = relationship("Product", back_populates="reports")
