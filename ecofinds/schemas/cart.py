from pydantic import BaseModel, Field
from typing import List, Optional
from ecofinds.models.cart import MAX_QUANTITY, MIN_QUANTITY


class CartAdd(BaseModel):
    product_id: int = Field(..., gt=0)
    quantity: int = Field(1, ge=MIN_QUANTITY, le=MAX_QUANTITY)


class CartUpdate(BaseModel):
    quantity: int = Field(..., ge=MIN_QUANTITY, le=MAX_QUANTITY)


class CartItemResponse(BaseModel):
    id: int
    product_id: int
    quantity: int
    title: str
    price: float
    condition: str
    status: str
    primary_image: Optional[str] = None
    seller_id: int
    seller_name: str
    line_total: float


class CartSummary(BaseModel):
    subtotal: float
    service_fee: float
    total: float
    item_count: int


class CartView(BaseModel):
    items: List[CartItemResponse]
    summary: CartSummary
