from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

OrderStatus = Literal["pending", "confirmed", "processing", "shipped", "delivered", "cancelled"]
PaymentStatus = Literal["pending", "paid", "failed", "refunded"]


class OrderItemIn(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)


class OrderCreate(BaseModel):
    # Contact fields are checked by the order service so each gets its own message
    full_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    governorate_id: Optional[int] = None
    items: Optional[List[OrderItemIn]] = None
    shipping_address: Optional[Dict[str, Any]] = None
    billing_address: Optional[Dict[str, Any]] = None
    notes: Optional[str] = None
    payment_method: Optional[str] = None
    payment_proof_url: Optional[str] = None
    coupon_code: Optional[str] = None
    # Client-declared amounts, advisory unless TRUST_CLIENT_TOTALS is enabled
    subtotal: Optional[Decimal] = Field(None, ge=0)
    shipping_cost: Optional[Decimal] = Field(None, ge=0)
    tax: Optional[Decimal] = Field(None, ge=0)
    discount: Optional[Decimal] = Field(None, ge=0)
    total_amount: Optional[Decimal] = Field(None, ge=0)


class OrderStatusUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None


class OrderItemOut(BaseModel):
    id: int
    product_id: Optional[int] = None
    product_name: str
    product_image: Optional[str] = None
    quantity: int
    price: float
    total: float

    class Config:
        from_attributes = True


class OrderOut(BaseModel):
    id: int
    order_number: str
    user_id: str
    status: str
    payment_status: str
    currency: str
    subtotal: float
    shipping_cost: float
    tax: float
    discount: float
    coupon_code: Optional[str] = None
    total_amount: float
    shipping_address: Dict[str, Any]
    billing_address: Dict[str, Any]
    governorate_id: Optional[int] = None
    full_name: str
    phone: str
    notes: Optional[str] = None
    payment_method: str
    payment_proof_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    items: List[OrderItemOut] = []

    class Config:
        from_attributes = True


class OrderList(BaseModel):
    orders: List[OrderOut]
    total: int
