from typing import List, Optional

from pydantic import BaseModel, Field


class CartItemIn(BaseModel):
    product_id: int
    quantity: int = Field(gt=0)


class CartItemUpdate(BaseModel):
    quantity: int


class CartMergeRequest(BaseModel):
    items: List[CartItemIn]


class CartProductOut(BaseModel):
    id: int
    name: str
    slug: str
    price: float
    effective_price: float
    featured_image: Optional[str] = None
    quantity: int
    track_quantity: bool
    status: str


class CartLineOut(BaseModel):
    id: int
    product_id: int
    quantity: int
    line_total: float
    product: CartProductOut


class CartOut(BaseModel):
    items: List[CartLineOut]
    subtotal: float
    item_count: int


class CartMergeOut(BaseModel):
    cart: CartOut
    merged: List[int]
    skipped: List[int]
