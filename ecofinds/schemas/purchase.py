from pydantic import BaseModel, ConfigDict, Field
from typing import Optional
from datetime import datetime
from ecofinds.models.purchase import PaymentMethod, PurchaseStatus
from ecofinds.schemas.user import UserSummary


class PurchaseCreate(BaseModel):
    product_id: int = Field(..., gt=0)
    quantity: int = Field(1, ge=1, le=10)
    payment_method: PaymentMethod


class PurchaseStatusUpdate(BaseModel):
    status: PurchaseStatus
    transaction_id: Optional[str] = Field(None, max_length=100)


class PurchaseResponse(BaseModel):
    id: int
    buyer_id: int
    seller_id: int
    product_id: Optional[int] = None
    product_title: str
    price: float
    quantity: int
    payment_method: PaymentMethod
    transaction_id: Optional[str] = None
    status: PurchaseStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    buyer: Optional[UserSummary] = None
    seller: Optional[UserSummary] = None
    product_image: Optional[str] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


def purchase_out(purchase) -> PurchaseResponse:
    out = PurchaseResponse.model_validate(purchase)
    if purchase.product is not None:
        out.product_image = purchase.product.primary_image
    return out
