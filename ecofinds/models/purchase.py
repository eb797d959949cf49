from sqlalchemy import (
    Column,
    Integer,
    String,
    Numeric,
    DateTime,
    ForeignKey,
    Enum,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from ecofinds.database import Base
import enum


class PurchaseStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    UPI = "upi"
    CARD = "card"
    NETBANKING = "netbanking"


class Purchase(Base):
    __tablename__ = "purchases"

    id = Column(Integer, primary_key=True, index=True)
    buyer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    seller_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # Snapshots taken when the purchase is created
    product_title = Column(String(200), nullable=False)
    price = Column(Numeric(10, 2, asdecimal=False), nullable=False)

    quantity = Column(Integer, default=1, nullable=False)
    payment_method = Column(
        Enum(PaymentMethod, values_callable=lambda obj: [e.value for e in obj], native_enum=False),
        nullable=False,
    )
    transaction_id = Column(String(100), nullable=True)
    status = Column(
        Enum(PurchaseStatus, values_callable=lambda obj: [e.value for e in obj], native_enum=False),
        default=PurchaseStatus.PENDING,
        nullable=False,
        index=True,
    )
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    completed_at = Column(DateTime(timezone=True), nullable=True)

    buyer = relationship("User", foreign_keys=[buyer_id])
    seller = relationship("User", foreign_keys=[seller_id])
    product = relationship("Product", back_populates="purchases")
