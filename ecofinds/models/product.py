from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Numeric,
    DateTime,
    ForeignKey,
    Enum,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from ecofinds.database import Base
import enum


class ProductStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    SOLD = "sold"
    INACTIVE = "inactive"


class ProductCondition(str, enum.Enum):
    LIKE_NEW = "like-new"
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    POOR = "poor"


def _enum_values(obj):
    return [e.value for e in obj]


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2, asdecimal=False), nullable=False)

    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    seller_id = Column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Listing details
    condition = Column(
        Enum(ProductCondition, values_callable=_enum_values, native_enum=False),
        default=ProductCondition.GOOD,
        nullable=False,
    )
    brand = Column(String(100), nullable=True)
    location = Column(String(100), nullable=True)
    pincode = Column(String(10), nullable=True)

    # Moderation
    status = Column(
        Enum(ProductStatus, values_callable=_enum_values, native_enum=False),
        default=ProductStatus.PENDING,
        nullable=False,
        index=True,
    )
    rejection_reason = Column(Text, nullable=True)

    views_count = Column(Integer, default=0, nullable=False)
    favorites_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    # Relationships
    seller = relationship("User", back_populates="products")
    category = relationship("Category", back_populates="products")
    images = relationship(
        "ProductImage",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductImage.id",
    )
    cart_items = relationship(
        "CartItem", back_populates="product", cascade="all, delete-orphan"
    )
    favorites = relationship(
        "Favorite", back_populates="product", cascade="all, delete-orphan"
    )
    # History rows outlive the listing; their product_id is nulled on delete
    purchases = relationship("Purchase", back_populates="product")
    reviews = relationship("Review", back_populates="product")
    chat_rooms = relationship("ChatRoom", back_populates="product")
    reports = relationship("Report", back_populates="reported_product")

    @property
    def primary_image(self):
        for image in self.images:
            if image.is_primary:
                return image.image_url
        return self.images[0].image_url if self.images else None

    def is_available(self) -> bool:
        return self.status == ProductStatus.APPROVED

    def can_edit(self, user) -> bool:
        return self.seller_id == user.id or user.is_admin
