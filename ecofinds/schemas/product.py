from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime
from ecofinds.models.product import ProductCondition, ProductStatus
from ecofinds.schemas.common import Pincode
from ecofinds.schemas.user import UserSummary

MAX_PRICE = 10_000_000


class ProductCreate(BaseModel):
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10, max_length=2000)
    price: float = Field(..., gt=0, le=MAX_PRICE)
    category_id: int = Field(..., gt=0)
    condition: ProductCondition
    brand: Optional[str] = Field(None, max_length=100)
    location: str = Field(..., min_length=2, max_length=100)
    pincode: Optional[Pincode] = None


class ProductUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=200)
    description: Optional[str] = Field(None, min_length=10, max_length=2000)
    price: Optional[float] = Field(None, gt=0, le=MAX_PRICE)
    category_id: Optional[int] = Field(None, gt=0)
    condition: Optional[ProductCondition] = None
    brand: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = Field(None, min_length=2, max_length=100)
    pincode: Optional[Pincode] = None


class ProductStatusUpdate(BaseModel):
    status: ProductStatus
    rejection_reason: Optional[str] = Field(None, max_length=500)


class ProductImageResponse(BaseModel):
    id: int
    image_url: str
    is_primary: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class CategoryBrief(BaseModel):
    id: int
    name: str
    icon: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class ProductSummary(BaseModel):
    id: int
    title: str
    price: float
    condition: ProductCondition
    brand: Optional[str] = None
    location: Optional[str] = None
    status: ProductStatus
    views_count: int
    favorites_count: int
    primary_image: Optional[str] = None
    seller_id: int
    category_id: int
    seller: Optional[UserSummary] = None
    category: Optional[CategoryBrief] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class ProductResponse(ProductSummary):
    description: Optional[str] = None
    pincode: Optional[str] = None
    rejection_reason: Optional[str] = None
    updated_at: Optional[datetime] = None
    images: List[ProductImageResponse] = []


class ProductDetail(ProductResponse):
    is_favorited: bool = False
    similar_products: List[ProductSummary] = []
