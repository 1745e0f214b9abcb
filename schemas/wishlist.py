from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from schemas.catalog import ProductOut


class WishlistAdd(BaseModel):
    product_id: int


class WishlistCheck(BaseModel):
    product_ids: List[int] = Field(max_length=200)


class WishlistItemOut(BaseModel):
    id: int
    product_id: int
    created_at: datetime
    product: ProductOut

    class Config:
        from_attributes = True


class WishlistOut(BaseModel):
    wishlist: List[WishlistItemOut]


class WishlistStatus(BaseModel):
    wishlist_product_ids: List[int]
