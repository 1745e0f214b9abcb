from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.db import get_db
from schemas.wishlist import WishlistAdd, WishlistCheck, WishlistOut, WishlistStatus
from security.auth import AuthUser, get_current_user
from services import wishlist as wishlist_service

router = APIRouter(prefix="/wishlist", tags=["wishlist"])


@router.get("/", response_model=WishlistOut)
def get_wishlist(user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"wishlist": wishlist_service.get_wishlist(db, user.id)}


@router.post("/", status_code=201)
def add_to_wishlist(data: WishlistAdd, user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    item = wishlist_service.add(db, user.id, data.product_id)
    return {"id": item.id, "product_id": item.product_id, "created_at": item.created_at}


@router.delete("/{product_id}")
def remove_from_wishlist(product_id: int, user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    wishlist_service.remove(db, user.id, product_id)
    return {"message": "Removed from wishlist"}


@router.post("/check", response_model=WishlistStatus)
def check_wishlist(data: WishlistCheck, user: AuthUser = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"wishlist_product_ids": wishlist_service.saved_product_ids(db, user.id, data.product_ids)}
