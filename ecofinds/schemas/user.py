import re
from pydantic import BaseModel, EmailStr, ConfigDict, Field, field_validator
from datetime import datetime
from typing import Optional

from ecofinds.models.user import Gender, UserRole
from ecofinds.schemas.common import PHONE_PATTERN, Pincode


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: EmailStr
    phone: str
    password: str = Field(..., min_length=6)
    age: Optional[int] = Field(None, ge=13, le=120)
    gender: Optional[Gender] = None
    location: Optional[str] = Field(None, max_length=100)
    pincode: Optional[Pincode] = None

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("phone")
    @classmethod
    def check_phone(cls, v: str) -> str:
        if not re.match(PHONE_PATTERN, v):
            raise ValueError("Please provide a valid Indian phone number")
        return v


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class UpdateProfileRequest(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    age: Optional[int] = Field(None, ge=13, le=120)
    gender: Optional[Gender] = None
    location: Optional[str] = Field(None, max_length=100)
    pincode: Optional[Pincode] = None


class ChangePasswordRequest(BaseModel):
    currentPassword: str = Field(..., min_length=1)
    newPassword: str = Field(..., min_length=6)


class UserStatusUpdate(BaseModel):
    is_active: Optional[bool] = None
    is_verified: Optional[bool] = None


class UserPublic(BaseModel):
    id: int
    name: str
    avatar: Optional[str] = None
    location: Optional[str] = None
    is_verified: bool
    followers_count: int
    following_count: int
    listings_count: int
    sales_count: int
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class UserResponse(UserPublic):
    email: EmailStr
    phone: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[Gender] = None
    pincode: Optional[Pincode] = None
    role: UserRole
    is_active: bool


class UserSummary(BaseModel):
    id: int
    name: str
    avatar: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class Token(BaseModel):
    access_token: str
    token_type: str
