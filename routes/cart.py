from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.db import get_db
from schemas.cart import CartItemIn, CartItemUpdate, CartMergeRequest, CartOut, CartMergeOut
from security.auth import AuthUser, get_current_user
from services import cart as cart_service

router = APIRouter(prefix="/cart", tags=["cart"])


@router.get("/", response_model=CartOut)
def get_cart(user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return cart_service.get_cart(db, user.id)


@router.post("/items", response_model=CartOut, status_code=201)
def add_item(data: CartItemIn, user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    cart_service.add_item(db, user.id, data.product_id, data.quantity)
    return cart_service.get_cart(db, user.id)


@router.patch("/items/{item_id}", response_model=CartOut)
def update_item(
    item_id: int, data: CartItemUpdate, user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)
):
    cart_service.update_item(db, user.id, item_id, data.quantity)
    return cart_service.get_cart(db, user.id)


@router.delete("/items/{item_id}", response_model=CartOut)
def remove_item(item_id: int, user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    cart_service.remove_item(db, user.id, item_id)
    return cart_service.get_cart(db, user.id)


@router.delete("/", status_code=204)
def clear_cart(user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    cart_service.clear_cart(db, user.id)


@router.post("/merge", response_model=CartMergeOut)
def merge_guest_cart(data: CartMergeRequest, user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    """Call once right after login with the device-local cart."""
    return cart_service.merge_guest_cart(db, user.id, data.items)
