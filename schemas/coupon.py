from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

DiscountType = Literal["percentage", "fixed"]
CouponStatus = Literal["active", "inactive", "expired"]


class CouponCreate(BaseModel):
    code: str = Field(min_length=1, max_length=64)
    description: Optional[str] = None
    discount_type: DiscountType
    discount_value: Decimal = Field(gt=0)
    min_purchase_amount: Optional[Decimal] = Field(None, ge=0)
    max_discount_amount: Optional[Decimal] = Field(None, gt=0)
    usage_limit: Optional[int] = Field(None, gt=0)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    status: CouponStatus = "active"


class CouponUpdate(BaseModel):
    code: Optional[str] = Field(None, min_length=1, max_length=64)
    description: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = Field(None, gt=0)
    min_purchase_amount: Optional[Decimal] = Field(None, ge=0)
    max_discount_amount: Optional[Decimal] = Field(None, gt=0)
    usage_limit: Optional[int] = Field(None, gt=0)
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    status: Optional[CouponStatus] = None


class CouponOut(BaseModel):
    id: int
    code: str
    description: Optional[str] = None
    discount_type: str
    discount_value: float
    min_purchase_amount: Optional[float] = None
    max_discount_amount: Optional[float] = None
    usage_limit: Optional[int] = None
    used_count: int
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    status: str

    class Config:
        from_attributes = True


class CouponValidateRequest(BaseModel):
    code: str = Field(min_length=1)
    order_total: Decimal = Field(gt=0, alias="orderTotal")

    class Config:
        populate_by_name = True


class CouponBrief(BaseModel):
    id: int
    code: str
    discount_type: str
    discount_value: float

    class Config:
        from_attributes = True


class CouponValidateOut(BaseModel):
    valid: bool = True
    coupon: CouponBrief
    discount_amount: float


class CouponUsageOut(BaseModel):
    id: int
    coupon_id: int
    user_id: str
    order_id: Optional[int] = None
    discount_amount: float
    order_total: float
    used_at: datetime

    class Config:
        from_attributes = True


class CouponStats(BaseModel):
    used_count: int
    remaining: Optional[int] = None
    total_discount: float
    total_orders: float


class CouponStatsOut(BaseModel):
    coupon: CouponOut
    stats: CouponStats


class CouponList(BaseModel):
    coupons: List[CouponOut]
    total: int
