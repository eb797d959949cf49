from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Literal, Optional
from datetime import datetime
from ecofinds.models.report import ReportReason
from ecofinds.schemas.user import UserSummary


class RoomCreate(BaseModel):
    product_id: int = Field(..., gt=0)
    seller_id: int = Field(..., gt=0)


class MessageCreate(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)
    message_type: Literal["text", "image"] = "text"
    attachment_url: Optional[str] = Field(None, max_length=1000)

    @field_validator("message")
    @classmethod
    def not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Message cannot be empty")
        return v


class MarkMessagesRead(BaseModel):
    message_ids: Optional[List[int]] = None


class MessageReport(BaseModel):
    reason: ReportReason
    description: Optional[str] = Field(None, max_length=1000)


class MessageResponse(BaseModel):
    id: int
    room_id: int
    sender_id: int
    message: str
    message_type: str
    attachment_url: Optional[str] = None
    is_read: bool
    created_at: Optional[datetime] = None
    sender: Optional[UserSummary] = None

    model_config = ConfigDict(from_attributes=True)


class RoomProduct(BaseModel):
    id: int
    title: str
    price: float
    status: str
    primary_image: Optional[str] = None


class RoomResponse(BaseModel):
    id: int
    buyer_id: int
    seller_id: int
    product_id: Optional[int] = None
    last_message_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    product: Optional[RoomProduct] = None
    other_user: Optional[UserSummary] = None
    last_message: Optional[MessageResponse] = None
    unread_count: int = 0
