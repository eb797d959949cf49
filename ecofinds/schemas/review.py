from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from ecofinds.schemas.user import UserSummary


class ReviewCreate(BaseModel):
    product_id: int = Field(..., gt=0)
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=500)


class ReviewResponse(BaseModel):
    id: int
    buyer_id: int
    seller_id: int
    product_id: Optional[int] = None
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    buyer: Optional[UserSummary] = None

    model_config = ConfigDict(from_attributes=True)
