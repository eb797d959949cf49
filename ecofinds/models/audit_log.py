from sqlalchemy import (
    JSON,
    Column,
    ForeignKey,
    Integer,
    String,
    DateTime,
    Text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ecofinds.database import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    # Actor
    user_id = Column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)

    # e.g. "auth.login", "product.status", "user.status", "http.request"
    action = Column(String(100), nullable=False, index=True)
    # e.g. "product", "user", "report", "category", "http"
    resource_type = Column(String(50), nullable=False, index=True)
    resource_id = Column(Integer, nullable=True, index=True)

    changes = Column(JSON, nullable=True)  # {field: {"old": value, "new": value}}

    request_method = Column(String(10), nullable=True)
    request_path = Column(String(500), nullable=True)

    status = Column(String(20), nullable=False, index=True)  # success | failure | error
    status_code = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)

    timestamp = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    duration_ms = Column(Integer, nullable=True)

    user = relationship("User", foreign_keys=[user_id])
