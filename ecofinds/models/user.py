from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum as SqlEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ecofinds.database import Base
from enum import Enum


class UserRole(Enum):
    USER = "user"
    ADMIN = "admin"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    OTHER = "other"
    PREFER_NOT_TO_SAY = "prefer-not-to-say"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(20), unique=True, index=True, nullable=True)
    password_hash = Column(String, nullable=False)
    age = Column(Integer, nullable=True)
    gender = Column(
        SqlEnum(
            Gender,
            values_callable=lambda obj: [e.value for e in obj],
            native_enum=False,
        ),
        nullable=True,
    )
    avatar = Column(String(500), nullable=True)
    avatar_key = Column(String(500), nullable=True)  # Cloudinary public_id of an uploaded avatar
    location = Column(String(100), nullable=True)
    pincode = Column(String(10), nullable=True)
    role = Column(
        SqlEnum(
            UserRole,
            values_callable=lambda obj: [e.value for e in obj],
            native_enum=False,
        ),
        default=UserRole.USER,
        nullable=False,
    )
    is_active = Column(Boolean, default=True)
    is_verified = Column(Boolean, default=False)

    # Denormalized counters, written only through services.counters
    followers_count = Column(Integer, default=0, nullable=False)
    following_count = Column(Integer, default=0, nullable=False)
    listings_count = Column(Integer, default=0, nullable=False)
    sales_count = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    products = relationship("Product", back_populates="seller")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN
