from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

ProductStatus = Literal["active", "draft", "archived"]


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    slug: str = Field(min_length=1, max_length=170)
    description: Optional[str] = None
    description_en: Optional[str] = None
    image_url: Optional[str] = None
    parent_id: Optional[int] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=150)
    slug: Optional[str] = Field(None, min_length=1, max_length=170)
    description: Optional[str] = None
    description_en: Optional[str] = None
    image_url: Optional[str] = None
    parent_id: Optional[int] = None


class CategoryOut(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    description_en: Optional[str] = None
    image_url: Optional[str] = None
    parent_id: Optional[int] = None

    class Config:
        from_attributes = True


class ProductCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    slug: str = Field(min_length=1, max_length=220)
    description: Optional[str] = None
    description_en: Optional[str] = None
    price: Decimal = Field(ge=0)
    compare_at_price: Optional[Decimal] = Field(None, ge=0)
    quantity: int = Field(0, ge=0)
    track_quantity: bool = True
    category_id: Optional[int] = None
    featured_image: Optional[str] = None
    status: ProductStatus = "draft"


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    slug: Optional[str] = Field(None, min_length=1, max_length=220)
    description: Optional[str] = None
    description_en: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0)
    compare_at_price: Optional[Decimal] = Field(None, ge=0)
    quantity: Optional[int] = Field(None, ge=0)
    track_quantity: Optional[bool] = None
    category_id: Optional[int] = None
    featured_image: Optional[str] = None
    status: Optional[ProductStatus] = None


class ProductOut(BaseModel):
    id: int
    name: str
    slug: str
    description: Optional[str] = None
    description_en: Optional[str] = None
    price: float
    compare_at_price: Optional[float] = None
    effective_price: Optional[float] = None
    quantity: int
    track_quantity: bool
    category_id: Optional[int] = None
    featured_image: Optional[str] = None
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class ProductList(BaseModel):
    products: List[ProductOut]
    total: int


class GovernorateCreate(BaseModel):
    name_ar: str = Field(min_length=1, max_length=100)
    name_en: str = Field(min_length=1, max_length=100)
    shipping_cost: Decimal = Field(Decimal("0"), ge=0)
    is_free_shipping: bool = False
    is_active: bool = True


class GovernorateUpdate(BaseModel):
    name_ar: Optional[str] = Field(None, min_length=1, max_length=100)
    name_en: Optional[str] = Field(None, min_length=1, max_length=100)
    shipping_cost: Optional[Decimal] = Field(None, ge=0)
    is_free_shipping: Optional[bool] = None
    is_active: Optional[bool] = None


class GovernorateOut(BaseModel):
    id: int
    name_ar: str
    name_en: str
    shipping_cost: float
    is_free_shipping: bool
    is_active: bool

    class Config:
        from_attributes = True


class BulkShippingUpdate(BaseModel):
    governorate_ids: List[int] = Field(min_length=1)
    shipping_cost: Decimal = Field(ge=0)
    is_free_shipping: bool = False


class FreeShippingSettingsIn(BaseModel):
    enabled: bool
    min_order_amount: Decimal = Field(Decimal("0"), ge=0)


class FreeShippingSettingsOut(BaseModel):
    enabled: bool
    min_order_amount: float


class ShippingQuoteOut(BaseModel):
    governorate_id: int
    subtotal: float
    shipping_cost: float
    free_shipping_applied: bool


class PaymentMethodUpdate(BaseModel):
    is_active: Optional[bool] = None
    vodafone_number: Optional[str] = None
    instapay_email: Optional[str] = None
    instructions_ar: Optional[str] = None
    instructions_en: Optional[str] = None


class PaymentMethodOut(BaseModel):
    id: int
    method_type: str
    is_active: bool
    vodafone_number: Optional[str] = None
    instapay_email: Optional[str] = None
    instructions_ar: Optional[str] = None
    instructions_en: Optional[str] = None

    class Config:
        from_attributes = True
