from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

PromotionType = Literal["featured", "deal", "flash_sale"]
PromotionStatus = Literal["active", "inactive", "scheduled", "expired"]


class PromotionCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    title_en: Optional[str] = None
    description: Optional[str] = None
    promotion_type: PromotionType
    discount_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: PromotionStatus = "active"
    priority: int = 0


class PromotionUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    title_en: Optional[str] = None
    description: Optional[str] = None
    promotion_type: Optional[PromotionType] = None
    discount_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[PromotionStatus] = None
    priority: Optional[int] = None


class PromotionOut(BaseModel):
    id: int
    title: str
    title_en: Optional[str] = None
    description: Optional[str] = None
    promotion_type: str
    discount_percentage: Optional[float] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: str
    priority: int

    class Config:
        from_attributes = True


class PromotionProductIn(BaseModel):
    product_id: int
    custom_price: Optional[Decimal] = Field(None, gt=0)


class PromotionProductPrice(BaseModel):
    custom_price: Optional[Decimal] = Field(None, gt=0)


class PromotionProductOut(BaseModel):
    id: int
    promotion_id: int
    product_id: int
    custom_price: Optional[float] = None

    class Config:
        from_attributes = True


class PromotedProduct(BaseModel):
    product_id: int
    name: str
    slug: str
    price: float
    compare_at_price: Optional[float] = None
    custom_price: Optional[float] = None
    effective_price: float
    featured_image: Optional[str] = None


class ActivePromotionOut(PromotionOut):
    products: List[PromotedProduct] = []
